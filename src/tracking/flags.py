"""
Flag resolution.

A flag is a named location stored ahead of time. Reports that carry a flag
name use the flag's position and multiplier instead of their own location.
"""
from redis.asyncio import Redis

from src.tracking.exceptions import FlagNotFoundError
from src.tracking.models import FlagLocation
from src.tracking.store import read_document, write_document


def get_flag_key(name: str) -> str:
    """Get Redis key for a named flag."""
    return f"flag:{name}"


async def resolve_flag(r: Redis, name: str) -> FlagLocation:
    """
    Look up a flag by name.

    Raises:
        FlagNotFoundError: No flag is stored under this name
        PersistenceError: The read failed
    """
    document = await read_document(r, get_flag_key(name))
    if document is None:
        raise FlagNotFoundError(name)
    return FlagLocation.model_validate(document)


async def store_flag(r: Redis, name: str, flag: FlagLocation) -> None:
    """Create or replace a flag."""
    await write_document(r, get_flag_key(name), flag.model_dump())
