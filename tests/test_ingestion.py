"""
Unit tests for location report ingestion.

Redis is an AsyncMock; the clock is a fixed lambda so timestamps are known.
"""
import json

import pytest
from unittest.mock import AsyncMock
from redis.exceptions import RedisError
from src.tracking.exceptions import (
    FlagNotFoundError,
    InvalidDevicesError,
    InvalidLocationError,
    PersistenceError,
)
from src.tracking.ingestion import ingest, parse_report
from src.tracking.models import DirectReport, FlaggedReport, LocationReportIn
from src.tracking.queries import get_last_locations
from src.tracking.store import decode_history_member

T = 1700000000000


def clock():
    return T


def report(**body):
    return parse_report(LocationReportIn(**body))


def persisted(mock_redis):
    """Decode the records handed to ZADD, in call order."""
    records = []
    for call in mock_redis.zadd.call_args_list:
        key, mapping = call[0]
        for member, score in mapping.items():
            records.append((key, decode_history_member(member), score))
    return records


@pytest.fixture
def mock_redis():
    return AsyncMock()


@pytest.fixture
def zone_a(mock_redis):
    mock_redis.get.return_value = json.dumps(
        {"latitude": 9, "longitude": 9, "accuracy": 5, "multiplier": 3}
    )
    return mock_redis


@pytest.mark.unit
class TestParseReport:
    """Test suite for request validation."""

    def test_direct_report(self):
        parsed = report(location={"latitude": 1, "longitude": 2, "accuracy": 10},
                        devices=[{"id": "d1", "distance": 5}])

        assert isinstance(parsed, DirectReport)
        assert parsed.location.accuracy == 10
        assert [d.id for d in parsed.devices] == ["d1"]

    def test_default_accuracy(self):
        """Test that a location without accuracy gets 20."""
        parsed = report(location={"latitude": 1, "longitude": 2}, devices=[])
        assert parsed.location.accuracy == 20

    def test_zero_coordinates_accepted(self):
        parsed = report(location={"latitude": 0, "longitude": 0}, devices=[])
        assert (parsed.location.latitude, parsed.location.longitude) == (0, 0)

    def test_flag_report(self):
        parsed = report(flag="zoneA", devices=[{"id": "d1", "distance": 2}])
        assert isinstance(parsed, FlaggedReport)
        assert parsed.flag == "zoneA"

    def test_flag_wins_over_location(self):
        """Test that a flag plus a location is a flagged report."""
        parsed = report(flag="zoneA", location={"latitude": 1, "longitude": 2}, devices=[])
        assert isinstance(parsed, FlaggedReport)

    def test_flag_ignores_broken_location(self):
        parsed = report(flag="zoneA", location="garbage", devices=[])
        assert isinstance(parsed, FlaggedReport)

    @pytest.mark.parametrize("body", [
        {"devices": []},
        {"location": {"latitude": 1}, "devices": []},
        {"location": {"longitude": 2}, "devices": []},
        {"location": {"latitude": "north", "longitude": 2}, "devices": []},
        {"location": [1, 2], "devices": []},
        {"flag": "", "devices": []},
        {"flag": 7, "devices": []},
    ])
    def test_invalid_location(self, body):
        with pytest.raises(InvalidLocationError):
            report(**body)

    @pytest.mark.parametrize("body", [None, [], "x", 5, [{"location": {"latitude": 1, "longitude": 2}}]])
    def test_non_object_body_is_invalid_location(self, body):
        with pytest.raises(InvalidLocationError):
            parse_report(body)

    def test_plain_dict_body(self):
        parsed = parse_report({"location": {"latitude": 1, "longitude": 2}, "devices": []})
        assert isinstance(parsed, DirectReport)

    @pytest.mark.parametrize("devices", [None, "d1", {"id": "d1", "distance": 1}, 5])
    def test_devices_must_be_list(self, devices):
        with pytest.raises(InvalidDevicesError):
            report(location={"latitude": 1, "longitude": 2}, devices=devices)

    def test_identified_device_needs_numeric_distance(self):
        with pytest.raises(InvalidDevicesError):
            report(location={"latitude": 1, "longitude": 2},
                   devices=[{"id": "d1", "distance": "far"}])

    def test_devices_without_id_dropped(self):
        """Test id-less entries are dropped even when otherwise malformed."""
        parsed = report(location={"latitude": 1, "longitude": 2},
                        devices=[{"distance": 3}, {"id": "", "distance": "x"}, "junk",
                                 {"id": "d2", "distance": 4}])
        assert [d.id for d in parsed.devices] == ["d2"]


@pytest.mark.unit
class TestIngest:
    """Test suite for ingest."""

    @pytest.mark.asyncio
    async def test_direct_scenario(self, mock_redis):
        parsed = report(location={"latitude": 1, "longitude": 2, "accuracy": 10},
                        devices=[{"id": "d1", "distance": 5}])

        records = await ingest(mock_redis, parsed, clock=clock)

        expected = {"id": "d1", "timestamp": T,
                    "location": {"latitude": 1, "longitude": 2, "accuracy": 15}}
        assert [r.model_dump() for r in records] == [expected]
        assert persisted(mock_redis) == [("device:d1:locations", expected, T)]
        mock_redis.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_flag_scenario(self, zone_a):
        parsed = report(flag="zoneA", devices=[{"id": "d1", "distance": 2}])

        records = await ingest(zone_a, parsed, clock=clock)

        assert records[0].model_dump() == {
            "id": "d1", "timestamp": T,
            "location": {"latitude": 9, "longitude": 9, "accuracy": 11},
        }
        zone_a.get.assert_awaited_once_with("flag:zoneA")

    @pytest.mark.asyncio
    async def test_flag_overrides_caller_location(self, zone_a):
        """Test the stored flag is used even when the caller sends a location."""
        parsed = report(flag="zoneA", location={"latitude": 1, "longitude": 2, "accuracy": 100},
                        devices=[{"id": "d1", "distance": 2}])

        records = await ingest(zone_a, parsed, clock=clock)

        location = records[0].location
        assert (location.latitude, location.longitude, location.accuracy) == (9, 9, 11)

    @pytest.mark.asyncio
    async def test_missing_flag_writes_nothing(self, mock_redis):
        mock_redis.get.return_value = None
        parsed = report(flag="missing", devices=[{"id": "d1", "distance": 1}])

        with pytest.raises(FlagNotFoundError):
            await ingest(mock_redis, parsed, clock=clock)

        mock_redis.zadd.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_write_per_identified_device(self, mock_redis):
        """Test k of m devices have ids -> exactly k writes sharing one timestamp."""
        devices = [{"id": "a", "distance": 1}, {"distance": 2},
                   {"id": "b", "distance": 3}, {"id": "", "distance": 4}]
        parsed = report(location={"latitude": 1, "longitude": 2}, devices=devices)

        await ingest(mock_redis, parsed, clock=clock)

        writes = persisted(mock_redis)
        assert sorted(key for key, _, _ in writes) == ["device:a:locations", "device:b:locations"]
        assert {record["timestamp"] for _, record, _ in writes} == {T}
        assert {(record["location"]["latitude"], record["location"]["longitude"])
                for _, record, _ in writes} == {(1, 2)}

    @pytest.mark.asyncio
    async def test_only_idless_devices_succeeds_with_no_writes(self, mock_redis):
        parsed = report(location={"latitude": 1, "longitude": 2}, devices=[{"distance": 2}])

        records = await ingest(mock_redis, parsed, clock=clock)

        assert records == []
        mock_redis.zadd.assert_not_called()

    @pytest.mark.asyncio
    async def test_clock_called_once(self, mock_redis):
        ticks = iter(range(T, T + 100))
        parsed = report(location={"latitude": 1, "longitude": 2},
                        devices=[{"id": f"d{i}", "distance": i} for i in range(5)])

        records = await ingest(mock_redis, parsed, clock=lambda: next(ticks))

        assert {r.timestamp for r in records} == {T}

    @pytest.mark.asyncio
    async def test_write_failure_is_persistence_error(self, mock_redis):
        """Test any failed write fails the whole ingestion, other writes still issued."""
        mock_redis.zadd.side_effect = [1, RedisError("READONLY"), 1]
        parsed = report(location={"latitude": 1, "longitude": 2},
                        devices=[{"id": f"d{i}", "distance": i} for i in range(3)])

        with pytest.raises(PersistenceError):
            await ingest(mock_redis, parsed, clock=clock)

        assert mock_redis.zadd.call_count == 3

    @pytest.mark.asyncio
    async def test_several_write_failures_all_awaited(self, mock_redis):
        """Test every write settles before the first failure is raised."""
        mock_redis.zadd.side_effect = [RedisError("first"), 1, RedisError("second")]
        parsed = report(location={"latitude": 1, "longitude": 2},
                        devices=[{"id": f"d{i}", "distance": i} for i in range(3)])

        with pytest.raises(PersistenceError) as exc_info:
            await ingest(mock_redis, parsed, clock=clock)

        assert "first" in exc_info.value.message
        assert mock_redis.zadd.call_count == 3


@pytest.mark.unit
class TestIngestIntoStore:
    """Test suite for ingestion read back through the Query Service."""

    @pytest.mark.asyncio
    async def test_duplicate_device_entries_both_stored(self, fake_redis):
        parsed = report(location={"latitude": 1, "longitude": 2},
                        devices=[{"id": "d1", "distance": 5}, {"id": "d1", "distance": 5}])

        records = await ingest(fake_redis, parsed, clock=clock)
        stored = await get_last_locations(fake_redis, "d1", 10)

        assert len(records) == 2
        assert stored == records

    @pytest.mark.asyncio
    async def test_each_device_gets_its_record(self, fake_redis):
        parsed = report(location={"latitude": 1, "longitude": 2, "accuracy": 10},
                        devices=[{"id": "a", "distance": 1}, {"id": "b", "distance": 3}])

        await ingest(fake_redis, parsed, clock=clock)

        assert [r["location"]["accuracy"] for r in fake_redis.history("a")] == [11]
        assert [r["location"]["accuracy"] for r in fake_redis.history("b")] == [13]
