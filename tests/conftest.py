"""
Shared fixtures.

FakeRedis keeps data in dicts and implements the handful of async commands
the store uses, with Redis ordering rules, so history can be written and read
back without a server.
"""
import json
from dataclasses import dataclass, field
from typing import Any

import pytest


@dataclass
class FakeRedis:
    strings: dict[str, str] = field(default_factory=dict)
    sorted_sets: dict[str, dict[str, float]] = field(default_factory=dict)
    hashes: dict[str, dict[str, str]] = field(default_factory=dict)
    streams: dict[str, list[tuple[str, dict[str, Any]]]] = field(default_factory=dict)

    async def get(self, key: str):
        return self.strings.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.strings[key] = value
        return True

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        zset = self.sorted_sets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        # Highest score first; equal scores by member, also descending
        ordered = sorted(self.sorted_sets.get(key, {}).items(),
                         key=lambda item: (item[1], item[0]), reverse=True)
        if end < 0:
            end += len(ordered)
        return [member for member, _ in ordered[start:end + 1]]

    async def hget(self, name: str, key: str):
        return self.hashes.get(name, {}).get(key)

    async def hset(self, name: str, key: str, value: str) -> int:
        bucket = self.hashes.setdefault(name, {})
        added = int(key not in bucket)
        bucket[key] = value
        return added

    async def hgetall(self, name: str) -> dict[str, str]:
        return dict(self.hashes.get(name, {}))

    async def xadd(self, name: str, fields: dict[str, Any], maxlen=None, approximate=True) -> str:
        stream = self.streams.setdefault(name, [])
        event_id = f"{len(stream) + 1}-0"
        stream.append((event_id, dict(fields)))
        if maxlen is not None:
            del stream[:-maxlen]
        return event_id

    def history(self, device_id: str) -> list[dict]:
        """Every stored record of a device, decoded, in no particular order."""
        members = self.sorted_sets.get(f"device:{device_id}:locations", {})
        return [json.loads(member.partition(":")[2]) for member in members]


@pytest.fixture
def fake_redis():
    return FakeRedis()
