from typing import Iterable

from src.tracking.accuracy import compute_accuracy
from src.tracking.models import DeviceDistance, Location, LocationTimestamp


def build_records(
    base: Location,
    timestamp: int,
    devices: Iterable[DeviceDistance],
    multiplier: float = 1
) -> list[LocationTimestamp]:
    """
    Build one timestamped location record per identified device.

    Devices without an id are skipped. Every record shares the base
    latitude/longitude and the given timestamp; only accuracy differs.

    Args:
        base: Resolved base location
        timestamp: Epoch millis, taken once per request
        devices: Device distances from the report
        multiplier: Distance multiplier (the flag's, or 1)

    Returns:
        List of LocationTimestamp in device order
    """
    records = []
    for device in devices:
        if not device.id:
            continue
        accuracy = compute_accuracy(base.accuracy, device.distance, multiplier)
        records.append(LocationTimestamp(
            id=device.id,
            timestamp=timestamp,
            location=Location(latitude=base.latitude, longitude=base.longitude, accuracy=accuracy)
        ))
    return records
