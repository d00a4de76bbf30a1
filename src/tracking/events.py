"""
Location update events using Redis Streams.

After a report is persisted, its records are published to a stream so the
derived-location computation can pick them up without slowing the API down.
Publishing happens in a background task after the response is sent; if it
fails the error is logged and counted here and the client never sees it.

Stream name: EVENT_STREAM_NAME (default "tracking:events")
Event types: "location_updated"
"""
import json
import logging
from datetime import datetime, timezone

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.tracking import metrics
from src.tracking.config import EVENT_STREAM_MAX_LENGTH, EVENT_STREAM_NAME
from src.tracking.models import LocationTimestamp

logger = logging.getLogger(__name__)


async def publish_location_update(
    redis_client: Redis,
    records: list[LocationTimestamp]
) -> str:
    """
    Publish one location_updated event carrying all records of a report.

    Args:
        redis_client: Redis connection
        records: Records persisted for one report

    Returns:
        Event ID assigned by Redis (e.g., "1234567890123-0")
    """
    event_data = {
        "event_type": "location_updated",
        "record_count": str(len(records)),
        "device_ids": ",".join(record.id for record in records),
        "records": json.dumps([record.model_dump() for record in records]),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    # MAXLEN ~ keeps approximately EVENT_STREAM_MAX_LENGTH events
    event_id = await redis_client.xadd(
        EVENT_STREAM_NAME,
        event_data,
        maxlen=EVENT_STREAM_MAX_LENGTH,
        approximate=True
    )

    return event_id


async def notify_location_update(
    redis_client: Redis,
    records: list[LocationTimestamp]
) -> None:
    """
    Fire-and-forget wrapper around publish_location_update.

    Never raises for Redis failures; they are logged and counted instead.
    """
    try:
        event_id = await publish_location_update(redis_client, records)
    except RedisError:
        metrics.derived_notifications_total.labels(status="error").inc()
        logger.exception("Failed to publish location update for %d records", len(records))
        return

    metrics.derived_notifications_total.labels(status="success").inc()
    logger.debug("Published location update %s", event_id)


async def read_events(
    redis_client: Redis,
    last_id: str = "0",
    count: int = 100,
    block_ms: int = None
) -> list:
    """Read (event_id, event_data) pairs after last_id ("$" for only new events)."""
    if block_ms is not None:
        result = await redis_client.xread(
            {EVENT_STREAM_NAME: last_id},
            count=count,
            block=block_ms
        )
    else:
        result = await redis_client.xread(
            {EVENT_STREAM_NAME: last_id},
            count=count
        )

    if not result:
        return []

    return result[0][1]


async def get_stream_length(redis_client: Redis) -> int:
    """Number of events currently in the stream."""
    return await redis_client.xlen(EVENT_STREAM_NAME)
