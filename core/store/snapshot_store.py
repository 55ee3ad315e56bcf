"""Local JSON store for page content snapshots."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from core.content.models import FieldEdit, Snapshot
from core.store.ids import generate_snapshot_id
from core.utils.errors import SnapshotLookupError

_STORE_VERSION = 1


class SnapshotStore(Protocol):
    """Persistence boundary for snapshots."""

    def create(self, edits: Sequence[FieldEdit]) -> Snapshot:
        """Persist edits under a new snapshot id."""

    def get(self, snapshot_id: str) -> Snapshot:
        """Return one snapshot or raise ``SnapshotLookupError``."""

    def latest(self) -> Snapshot | None:
        """Return the most recently created snapshot, if any."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JsonSnapshotStore:
    """Persist snapshots in a single JSON file, last write wins."""

    def __init__(
        self,
        store_path: Path,
        *,
        id_factory: Callable[[], str] = generate_snapshot_id,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store_path = store_path
        self._id_factory = id_factory
        self._clock = clock
        self._lock = threading.Lock()

    def create(self, edits: Sequence[FieldEdit]) -> Snapshot:
        snapshot = Snapshot(
            snapshot_id=self._id_factory(),
            edits=tuple(edits),
            created_at=self._clock(),
        )
        with self._lock:
            snapshots = self._read_snapshots()
            snapshots.append(snapshot)
            self._write_snapshots(snapshots)
        return snapshot

    def get(self, snapshot_id: str) -> Snapshot:
        with self._lock:
            snapshots = self._read_snapshots()
        # Ids may collide; the newest snapshot under an id is returned.
        for snapshot in reversed(snapshots):
            if snapshot.snapshot_id == snapshot_id:
                return snapshot
        raise SnapshotLookupError(
            f"Snapshot not found: {snapshot_id}", snapshot_id=snapshot_id
        )

    def latest(self) -> Snapshot | None:
        with self._lock:
            snapshots = self._read_snapshots()
        if not snapshots:
            return None
        indexed = list(enumerate(snapshots))
        _, newest = max(indexed, key=lambda item: (item[1].created_at, item[0]))
        return newest

    def _read_snapshots(self) -> list[Snapshot]:
        if not self._store_path.exists():
            return []

        try:
            raw = json.loads(self._store_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid snapshot store JSON: {self._store_path}") from exc

        try:
            return [Snapshot.model_validate(item) for item in raw.get("snapshots", [])]
        except ValidationError as exc:
            raise ValueError(f"Invalid snapshot store schema: {self._store_path}") from exc

    def _write_snapshots(self, snapshots: list[Snapshot]) -> None:
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._store_path.with_suffix(f"{self._store_path.suffix}.tmp")

        payload = {
            "version": _STORE_VERSION,
            "snapshots": [
                snapshot.model_dump(mode="json", by_alias=True) for snapshot in snapshots
            ],
        }
        temp_path.write_text(
            json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
            encoding="utf-8",
        )
        temp_path.replace(self._store_path)
