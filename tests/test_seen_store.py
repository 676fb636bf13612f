import json
from pathlib import Path

import pytest

from market_alert_bot.seen_store import SeenStore, SeenStoreConfig, normalize_title


class _Clock:
    def __init__(self, t: float = 1_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


def test_record_and_query_roundtrip() -> None:
    store = SeenStore()
    assert store.has("id-1") is False
    store.record("id-1", "Fed holds rates")
    assert store.has("id-1") is True
    assert "id-1" in store
    assert len(store) == 1


def test_recording_same_id_twice_keeps_one_entry() -> None:
    store = SeenStore()
    store.record("id-1", "first")
    store.record("id-1", "second")
    assert store.ids() == ["id-1"]


def test_overflow_keeps_newest_half() -> None:
    store = SeenStore(SeenStoreConfig(capacity=10))
    for i in range(10):
        store.record(f"id-{i}", f"title {i}")
    assert len(store) == 10

    store.record("id-10", "title 10")
    assert len(store) == 5
    assert store.ids() == ["id-6", "id-7", "id-8", "id-9", "id-10"]
    assert store.has("id-0") is False
    assert store.stats()["evictions"] == 1


def test_lookup_does_not_refresh_eviction_order() -> None:
    store = SeenStore(SeenStoreConfig(capacity=4))
    for i in range(4):
        store.record(f"id-{i}", f"t{i}")
    assert store.has("id-0")
    store.record("id-4", "t4")
    assert store.ids() == ["id-3", "id-4"]


def test_capacity_below_two_is_rejected() -> None:
    with pytest.raises(ValueError):
        SeenStore(SeenStoreConfig(capacity=1))


def test_similar_title_matches_containment_both_ways() -> None:
    store = SeenStore()
    store.record("a", "Fed raises rates")
    assert store.is_similar_title("FED RAISES RATES by 25bp") is True
    assert store.is_similar_title("  raises rates ") is True
    assert store.is_similar_title("Oil prices slide") is False


def test_empty_title_never_matches() -> None:
    store = SeenStore()
    store.record("a", "Fed raises rates")
    assert store.is_similar_title("") is False
    assert store.is_similar_title("   ") is False


def test_title_window_boundary() -> None:
    clock = _Clock(0.0)
    store = SeenStore(SeenStoreConfig(title_window_seconds=3600), clock=clock)
    store.record("a", "Sensex hits record high")

    clock.t = 3600.0
    assert store.is_similar_title("Sensex hits record high") is True

    clock.t = 3600.5
    assert store.is_similar_title("Sensex hits record high") is False
    # expired titles are purged, the id stays
    assert store.stats()["recent_titles"] == 0
    assert store.has("a") is True


def test_normalize_title() -> None:
    assert normalize_title("  Fed RAISES Rates ") == "fed raises rates"
    assert normalize_title(None) == ""


def test_snapshot_save_and_load(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    store = SeenStore()
    for i in range(3):
        store.record(f"id-{i}", f"title {i}")
    assert store.save_snapshot(path) is True
    assert json.loads(path.read_text(encoding="utf-8")) == ["id-0", "id-1", "id-2"]

    fresh = SeenStore()
    assert fresh.load_snapshot(path) == 3
    assert fresh.ids() == ["id-0", "id-1", "id-2"]
    # titles are not persisted
    assert fresh.is_similar_title("title 1") is False


def test_load_missing_snapshot_starts_empty(tmp_path: Path) -> None:
    store = SeenStore()
    assert store.load_snapshot(tmp_path / "nope.json") == 0
    assert len(store) == 0


@pytest.mark.parametrize("payload", ["{not json", '{"ids": ["a"]}', '"a"'])
def test_corrupt_snapshot_starts_empty(tmp_path: Path, payload: str) -> None:
    path = tmp_path / "cache.json"
    path.write_text(payload, encoding="utf-8")
    store = SeenStore()
    store.record("pre", "existing")
    assert store.load_snapshot(path) == 0
    assert len(store) == 0


def test_oversized_snapshot_is_trimmed_to_newest(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text(json.dumps([f"id-{i}" for i in range(8)]), encoding="utf-8")
    store = SeenStore(SeenStoreConfig(capacity=5))
    assert store.load_snapshot(path) == 5
    assert store.ids() == ["id-3", "id-4", "id-5", "id-6", "id-7"]


def test_snapshot_save_failure_is_reported(tmp_path: Path) -> None:
    target = tmp_path / "cache.json"
    target.mkdir()
    store = SeenStore()
    store.record("a", "t")
    assert store.save_snapshot(target) is False
    # temp file is cleaned up
    assert list(tmp_path.iterdir()) == [target]


def test_save_creates_parent_directory(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "cache.json"
    store = SeenStore()
    store.record("a", "t")
    assert store.save_snapshot(path) is True
    assert json.loads(path.read_text(encoding="utf-8")) == ["a"]


def test_snapshot_primes_membership(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text('["id1","id2"]', encoding="utf-8")
    store = SeenStore()
    store.load_snapshot(path)
    assert store.has("id1") is True
    assert store.has("id3") is False


def test_overflow_with_odd_capacity_rounds_down() -> None:
    store = SeenStore(SeenStoreConfig(capacity=7))
    for i in range(8):
        store.record(f"id-{i}", f"title {i}")
    assert len(store) == 3
    assert store.ids() == ["id-5", "id-6", "id-7"]


def test_unstatable_snapshot_path_starts_empty(tmp_path: Path, monkeypatch) -> None:
    def _denied(self, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "exists", _denied)
    store = SeenStore()
    assert store.load_snapshot(tmp_path / "locked" / "cache.json") == 0
    assert len(store) == 0
