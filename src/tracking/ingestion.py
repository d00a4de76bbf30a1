"""
Location report ingestion.

Turns one inbound report into one persisted LocationTimestamp per identified
device:

1. Validate the raw body into a DirectReport or FlaggedReport
2. Resolve the base location (the caller's, or a stored flag's)
3. Build the per-device records with a single shared timestamp
4. Append every record to its device history, all writes in flight at once

Notifying the derived computation is left to the caller (the HTTP layer runs
it as a background task once the response is out).
"""
import asyncio
import logging
from typing import Any, Callable

from pydantic import ValidationError
from redis.asyncio import Redis

from src.tracking import metrics
from src.tracking.config import DEFAULT_ACCURACY
from src.tracking.exceptions import InvalidDevicesError, InvalidLocationError
from src.tracking.flags import resolve_flag
from src.tracking.models import (
    DeviceDistance,
    DirectReport,
    FlaggedReport,
    Location,
    LocationReport,
    LocationReportIn,
    LocationTimestamp,
    ReportedLocation,
)
from src.tracking.records import build_records
from src.tracking.store import append_history
from src.tracking.time_utils import now_millis

logger = logging.getLogger(__name__)


def parse_location(raw: Any) -> Location:
    """
    Validate a caller-supplied location and apply the default accuracy.

    Raises:
        InvalidLocationError: Missing, malformed, or without latitude/longitude
    """
    if not isinstance(raw, dict):
        raise InvalidLocationError()
    try:
        reported = ReportedLocation.model_validate(raw)
    except ValidationError as err:
        raise InvalidLocationError() from err
    if not reported.is_complete:
        raise InvalidLocationError()

    accuracy = reported.accuracy if reported.accuracy is not None else DEFAULT_ACCURACY
    return Location(latitude=reported.latitude, longitude=reported.longitude, accuracy=accuracy)


def parse_devices(raw: Any) -> list[DeviceDistance]:
    """
    Validate the devices list.

    Entries without an id are dropped without error. Entries with an id must
    carry a numeric distance.

    Raises:
        InvalidDevicesError: Not a list, or an identified entry is malformed
    """
    if not isinstance(raw, list):
        raise InvalidDevicesError()

    devices = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("id"):
            continue
        try:
            devices.append(DeviceDistance.model_validate(entry))
        except ValidationError as err:
            raise InvalidDevicesError() from err
    return devices


def parse_report(body: Any) -> LocationReport:
    """
    Resolve a raw body into a direct or flagged report.

    A non-empty flag wins over any location in the same body, which is then
    not validated at all. A missing body, or one that is not a JSON object,
    has neither and is an InvalidLocationError.
    """
    if isinstance(body, dict):
        body = LocationReportIn.model_validate(body)
    elif not isinstance(body, LocationReportIn):
        raise InvalidLocationError()

    flag = body.flag if isinstance(body.flag, str) and body.flag else None
    location = None if flag else parse_location(body.location)
    devices = parse_devices(body.devices)

    if flag:
        return FlaggedReport(flag=flag, devices=devices)
    return DirectReport(location=location, devices=devices)


async def persist_records(r: Redis, records: list[LocationTimestamp]) -> None:
    """
    Append each record to its device history concurrently.

    Waits until every write has settled, then raises the first failure
    (a PersistenceError for Redis errors). Writes that landed stay in place.
    """
    results = await asyncio.gather(*(
        append_history(r, record.id, record.model_dump())
        for record in records
    ), return_exceptions=True)

    failures = [result for result in results if isinstance(result, BaseException)]
    metrics.location_records_persisted_total.inc(len(records) - len(failures))
    if failures:
        logger.error("%d of %d location writes failed", len(failures), len(records))
        raise failures[0]


async def ingest(
    r: Redis,
    report: LocationReport,
    clock: Callable[[], int] = now_millis
) -> list[LocationTimestamp]:
    """
    Build and persist the location records for one report.

    Args:
        r: Redis client
        report: Validated report (see parse_report)
        clock: Source of epoch millis, called exactly once

    Returns:
        The persisted records

    Raises:
        FlagNotFoundError: The report names a flag that is not stored
        PersistenceError: A read or write failed
    """
    if isinstance(report, FlaggedReport):
        flag = await resolve_flag(r, report.flag)
        base = flag.base_location(DEFAULT_ACCURACY)
        multiplier = flag.multiplier
    else:
        base = report.location
        multiplier = 1

    timestamp = clock()
    records = build_records(base, timestamp, report.devices, multiplier)

    await persist_records(r, records)
    logger.info("Stored %d location records at %d", len(records), timestamp)
    return records
