"""
Redis persistence gateway.

Key layout:
    flag:<name>                 JSON document (FlagLocation)
    device:<id>:locations       sorted set of "<entry id>:<JSON LocationTimestamp>", scored by timestamp
    trackees                    hash of trackee id -> JSON document
    diagnostic:<key>            JSON value written by the connectivity check

Every RedisError is re-raised as PersistenceError.
"""
import json
import logging
import uuid
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.tracking import metrics
from src.tracking.exceptions import PersistenceError

logger = logging.getLogger(__name__)

TRACKEE_HASH = "trackees"


def get_history_key(device_id: str) -> str:
    """Get Redis key for a device's location history."""
    return f"device:{device_id}:locations"


def encode_history_member(record: dict) -> str:
    """
    Encode a record as a history member.

    Each member gets its own entry id, so identical records appended twice
    stay two entries.
    """
    return f"{uuid.uuid4().hex}:{json.dumps(record)}"


def decode_history_member(member: str) -> dict:
    _, _, raw = member.partition(":")
    return json.loads(raw)


def _record_operation(operation: str, status: str) -> None:
    metrics.redis_operations_total.labels(operation=operation, status=status).inc()


def _failed(operation: str, key: str, err: RedisError) -> PersistenceError:
    _record_operation(operation, "error")
    logger.error("Redis %s failed for %s: %s", operation, key, err)
    return PersistenceError(str(err))


async def read_document(r: Redis, key: str) -> Optional[Any]:
    """
    Point read of a JSON document.

    Returns:
        The decoded document, or None when the key does not exist
    """
    try:
        raw = await r.get(key)
    except RedisError as err:
        raise _failed("get", key, err) from err
    _record_operation("get", "success")
    return json.loads(raw) if raw is not None else None


async def write_document(r: Redis, key: str, document: Any) -> None:
    """Point write (overwrite) of a JSON document."""
    try:
        await r.set(key, json.dumps(document))
    except RedisError as err:
        raise _failed("set", key, err) from err
    _record_operation("set", "success")


async def append_history(r: Redis, device_id: str, record: dict) -> None:
    """
    Append one location record to a device's history.

    The history is a sorted set scored by the record timestamp, so reads come
    back in time order whatever order concurrent writes landed in. Records are
    never merged or overwritten.

    Args:
        r: Redis client
        device_id: Device identifier
        record: Serialized LocationTimestamp (must contain "timestamp")
    """
    key = get_history_key(device_id)
    try:
        await r.zadd(key, {encode_history_member(record): record["timestamp"]})
    except RedisError as err:
        raise _failed("zadd", key, err) from err
    _record_operation("zadd", "success")


async def read_history(r: Redis, device_id: str, limit: int) -> list[dict]:
    """
    Read the most recent records of a device's history.

    Args:
        r: Redis client
        device_id: Device identifier
        limit: Maximum number of records to return

    Returns:
        Records ordered most-recent-first (empty list if no history or limit < 1)
    """
    if limit < 1:
        return []

    key = get_history_key(device_id)
    try:
        raw_records = await r.zrevrange(key, 0, limit - 1)
    except RedisError as err:
        raise _failed("zrevrange", key, err) from err
    _record_operation("zrevrange", "success")
    return [decode_history_member(raw) for raw in raw_records] if raw_records else []


async def read_hash_document(r: Redis, name: str, field: str) -> Optional[Any]:
    try:
        raw = await r.hget(name, field)
    except RedisError as err:
        raise _failed("hget", name, err) from err
    _record_operation("hget", "success")
    return json.loads(raw) if raw is not None else None


async def read_hash_documents(r: Redis, name: str) -> list[Any]:
    try:
        raw_documents = await r.hgetall(name)
    except RedisError as err:
        raise _failed("hgetall", name, err) from err
    _record_operation("hgetall", "success")
    return [json.loads(raw) for raw in raw_documents.values()] if raw_documents else []


async def write_hash_document(r: Redis, name: str, field: str, document: Any) -> None:
    try:
        await r.hset(name, field, json.dumps(document))
    except RedisError as err:
        raise _failed("hset", name, err) from err
    _record_operation("hset", "success")
