"""
Read/write queries for device history and trackees, plus the diagnostic
key-value check used to verify Redis connectivity.
"""
from typing import Any

from redis.asyncio import Redis

from src.tracking.exceptions import InvalidInputError, NotFoundError
from src.tracking.models import LocationTimestamp, Trackee
from src.tracking.store import (
    TRACKEE_HASH,
    read_document,
    read_hash_document,
    read_hash_documents,
    read_history,
    write_document,
    write_hash_document,
)

DIAGNOSTIC_PREFIX = "diagnostic:"


async def get_last_locations(r: Redis, device_id: str, n: int = 1) -> list[LocationTimestamp]:
    """
    Get the n most recent location records of a device.

    Args:
        r: Redis client
        device_id: Device identifier
        n: Maximum number of records

    Returns:
        Records ordered most-recent-first

    Raises:
        InvalidInputError: n is less than 1
        NotFoundError: The device has no history
    """
    if n < 1:
        raise InvalidInputError(f"n must be at least 1, got {n}")

    records = await read_history(r, device_id, n)
    if not records:
        raise NotFoundError(f"No data found for device id {device_id}")
    return [LocationTimestamp.model_validate(record) for record in records]


async def get_trackees(r: Redis) -> list[Trackee]:
    documents = await read_hash_documents(r, TRACKEE_HASH)
    return [Trackee.model_validate(document) for document in documents]


async def get_trackee_by_id(r: Redis, trackee_id: str) -> Trackee:
    """Raises NotFoundError when no trackee has this id."""
    document = await read_hash_document(r, TRACKEE_HASH, trackee_id)
    if document is None:
        raise NotFoundError(f"No trackee found with id {trackee_id}")
    return Trackee.model_validate(document)


async def update_trackee(r: Redis, trackee: Trackee) -> None:
    """Create or replace a trackee, keyed by its own id."""
    await write_hash_document(r, TRACKEE_HASH, trackee.id, trackee.model_dump())


async def get_value(r: Redis, key: str) -> Any:
    # Diagnostic only: None when the key was never set
    return await read_document(r, DIAGNOSTIC_PREFIX + key)


async def set_value(r: Redis, key: str, value: Any) -> None:
    await write_document(r, DIAGNOSTIC_PREFIX + key, value)
