"""
Runtime configuration loaded from environment variables.

Values can be set in the process environment or in a .env file at the
project root (loaded with python-dotenv).
"""
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Redis connection
REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))

# Accuracy (meters) applied when a reported location has none
DEFAULT_ACCURACY = float(os.getenv("DEFAULT_ACCURACY", "20"))

# Stream consumed by the derived-location computation
EVENT_STREAM_NAME = os.getenv("EVENT_STREAM_NAME", "tracking:events")
EVENT_STREAM_MAX_LENGTH = int(os.getenv("EVENT_STREAM_MAX_LENGTH", "10000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "3000"))
