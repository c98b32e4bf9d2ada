import pytest

from cqschedule.cache import ScheduleCache
from cqschedule.errors import CacheMiss, DecodeError


def test_load_missing_raises_cache_miss(tmp_path) -> None:
    cache = ScheduleCache(tmp_path / "cache.json")
    assert not cache.exists()
    with pytest.raises(CacheMiss):
        cache.load()


def test_save_then_load(tmp_path, payload_bytes, document) -> None:
    cache = ScheduleCache(tmp_path / "sub" / "cache.json")
    cache.save(payload_bytes)
    assert cache.exists()
    assert cache.load() == document
    assert cache.path.read_bytes() == payload_bytes


def test_save_overwrites_whole_file(tmp_path, payload_bytes) -> None:
    cache = ScheduleCache(tmp_path / "cache.json")
    cache.save(b"x" * 10000)
    cache.save(payload_bytes)
    assert cache.path.read_bytes() == payload_bytes
    assert [p.name for p in tmp_path.iterdir()] == ["cache.json"]


def test_corrupt_cache(tmp_path) -> None:
    cache = ScheduleCache(tmp_path / "cache.json")
    cache.save(b"{broken")
    with pytest.raises(DecodeError):
        cache.load()


def test_clear(tmp_path, payload_bytes) -> None:
    cache = ScheduleCache(tmp_path / "cache.json")
    cache.clear()
    cache.save(payload_bytes)
    cache.clear()
    assert not cache.exists()
