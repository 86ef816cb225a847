from datetime import UTC, datetime, timedelta

import pytest

from app.models.acs import DeviceClass
from app.services.acs.cache import DeviceParameter, ParameterCache, parse_number


def _parameter(device_id="dev-1", path="A.DeviceInfo.ProcessorStatus.Load", value="42"):
    return DeviceParameter(device_id=device_id, path=path, value=value)


def test_set_and_get_snapshot():
    cache = ParameterCache(ttl_seconds=60)
    cache.set("dev-1", [_parameter()], DeviceClass.olt)

    entry = cache.entry("dev-1")
    assert entry.device_class == DeviceClass.olt
    assert [p.path for p in cache.get("dev-1")] == ["A.DeviceInfo.ProcessorStatus.Load"]
    assert set(cache.as_mapping("dev-1")) == {"A.DeviceInfo.ProcessorStatus.Load"}


def test_set_replaces_previous_snapshot():
    cache = ParameterCache()
    cache.set("dev-1", [_parameter(value="1")])
    cache.set("dev-1", [_parameter(path="A.MemoryStatus.Free", value="2")])

    assert [p.path for p in cache.get("dev-1")] == ["A.MemoryStatus.Free"]


def test_expired_entry_is_absent():
    cache = ParameterCache(ttl_seconds=60)
    now = datetime.now(UTC)
    cache.set("dev-1", [_parameter()], now=now - timedelta(seconds=61))

    assert cache.entry("dev-1", now) is None
    assert cache.get("dev-1", now) == []


def test_evict_expired_drops_entries_and_locks():
    cache = ParameterCache(ttl_seconds=60)
    now = datetime.now(UTC)
    cache.set("stale", [_parameter("stale")], now=now - timedelta(minutes=5))
    cache.set("fresh", [_parameter("fresh")], now=now)
    cache.lock("stale")

    assert cache.evict_expired(now) == ["stale"]
    assert cache.device_ids() == ["fresh"]
    assert len(cache) == 1


def test_lock_is_per_device():
    cache = ParameterCache()
    assert cache.lock("dev-1") is cache.lock("dev-1")
    assert cache.lock("dev-1") is not cache.lock("dev-2")


def test_metric_name_is_last_path_segment():
    assert _parameter().metric == "Load"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("42", 42.0),
        (" -27.5 ", -27.5),
        (7, 7.0),
        ("up", None),
        (None, None),
        (True, None),
        ("nan", None),
    ],
)
def test_parse_number(value, expected):
    assert parse_number(value) == expected
