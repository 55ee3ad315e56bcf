from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path

import pytest

from core.content.models import FieldEdit
from core.store.ids import generate_snapshot_id
from core.store.snapshot_store import JsonSnapshotStore
from core.utils.errors import SnapshotLookupError

_BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _ticking_clock():
    ticks = count()
    return lambda: _BASE_TIME + timedelta(seconds=next(ticks))


def test_store_initializes_empty(tmp_path: Path) -> None:
    store = JsonSnapshotStore(tmp_path / "snapshots.json")

    assert store.latest() is None
    assert store.list_all() == []


def test_saved_snapshot_is_latest_content(tmp_path: Path) -> None:
    store = JsonSnapshotStore(tmp_path / "snapshots.json", id_factory=lambda: "abc123")

    created = store.create([FieldEdit(id="title", text="Hello")])

    assert created.snapshot_id == "abc123"
    latest = store.latest()
    assert latest is not None
    assert latest.snapshot_id == "abc123"
    assert FieldEdit(id="title", text="Hello") in latest.edits


def test_latest_follows_creation_time(tmp_path: Path) -> None:
    ids = iter(["first", "second"])
    store = JsonSnapshotStore(
        tmp_path / "snapshots.json", id_factory=lambda: next(ids), clock=_ticking_clock()
    )
    store.create([FieldEdit(id="title", text="one")])
    store.create([FieldEdit(id="title", text="two")])

    latest = store.latest()

    assert latest is not None
    assert latest.snapshot_id == "second"
    assert store.get("first").edits == (FieldEdit(id="title", text="one"),)


def test_latest_prefers_later_insert_on_equal_timestamps(tmp_path: Path) -> None:
    ids = iter(["a", "b"])
    store = JsonSnapshotStore(
        tmp_path / "snapshots.json", id_factory=lambda: next(ids), clock=lambda: _BASE_TIME
    )
    store.create([])
    store.create([])

    latest = store.latest()

    assert latest is not None
    assert latest.snapshot_id == "b"


def test_get_unknown_snapshot_raises_lookup_error(tmp_path: Path) -> None:
    store = JsonSnapshotStore(tmp_path / "snapshots.json")

    with pytest.raises(SnapshotLookupError) as exc_info:
        store.get("missing")

    assert exc_info.value.snapshot_id == "missing"
    assert isinstance(exc_info.value, LookupError)


def test_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "snapshots.json"
    JsonSnapshotStore(path, id_factory=lambda: "keep").create(
        [FieldEdit(id="title", text="persisted")]
    )

    loaded = JsonSnapshotStore(path).get("keep")

    assert loaded.edits == (FieldEdit(id="title", text="persisted"),)
    assert loaded.created_at.tzinfo is not None


def test_store_raises_on_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "snapshots.json"
    path.write_text("{invalid", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid snapshot store JSON"):
        JsonSnapshotStore(path).latest()


def test_generated_ids_are_short_and_url_safe() -> None:
    snapshot_id = generate_snapshot_id()

    assert len(snapshot_id) == 9
    assert all(char.isalnum() or char in "_-" for char in snapshot_id)


def test_generate_id_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        generate_snapshot_id(0)
