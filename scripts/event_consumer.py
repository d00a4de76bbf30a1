"""
Event Consumer - Listens to the location update stream and prints events.

Stand-in for the derived-location computation: it shows the records each
accepted report produced, as they arrive.

Run this in a separate terminal while sending location reports.

Usage:
    python scripts/event_consumer.py

Press Ctrl+C to stop.
"""
import asyncio
import json
import os
import sys
from datetime import datetime

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

# Add project root to path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.tracking.config import EVENT_STREAM_NAME, REDIS_HOST, REDIS_PORT
from src.tracking.events import read_events, get_stream_length


def format_timestamp(iso_string: str) -> str:
    """Convert ISO timestamp to readable format."""
    try:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        return dt.strftime("%H:%M:%S")
    except ValueError:
        return iso_string


def print_event(event_id: str, event_data: dict):
    """Print an event in a readable format."""
    event_type = event_data.get("event_type", "unknown")
    timestamp = format_timestamp(event_data.get("timestamp", ""))

    if event_type == "location_updated":
        records = json.loads(event_data.get("records", "[]"))
        print(f"  [{timestamp}] LOCATION UPDATE: {len(records)} record(s)")
        for record in records:
            location = record["location"]
            print(
                f"              {record['id']}: "
                f"({location['latitude']}, {location['longitude']}) "
                f"±{location['accuracy']}m"
            )
    else:
        print(f"  [{timestamp}] {event_type}: {event_data}")


async def main():
    """Main consumer loop."""
    print("=" * 60)
    print("GO-TRACK - Location Event Consumer")
    print("=" * 60)
    print(f"Connecting to Redis at {REDIS_HOST}:{REDIS_PORT}...")

    r = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, decode_responses=True)
    try:
        await r.ping()
        print("Connected!")
    except RedisConnectionError:
        print("ERROR: Could not connect to Redis.")
        sys.exit(1)

    stream_length = await get_stream_length(r)
    print(f"Stream '{EVENT_STREAM_NAME}' has {stream_length} events")
    print()
    print("Listening for new events... (press Ctrl+C to stop)")
    print("-" * 60)

    # "$" starts from now, "0" would replay the whole stream
    last_id = "$"

    try:
        while True:
            events_list = await read_events(r, last_id=last_id, count=10, block_ms=1000)

            for event_id, event_data in events_list:
                print_event(event_id, event_data)
                last_id = event_id
    finally:
        final_length = await get_stream_length(r)
        print(f"Final stream length: {final_length} events")
        await r.aclose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print()
        print("-" * 60)
        print("Consumer stopped.")
