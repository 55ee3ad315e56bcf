"""httpx transport for the publish coordinator."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from core.content.models import EditBatch, LatestContent, Snapshot, SnapshotCreated
from core.utils.errors import InvalidationError, SnapshotLookupError, StoreWriteError


class HttpPublishClient:
    """Talk to the page service's save, revalidate and lookup endpoints."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def save(self, edits: EditBatch) -> str:
        payload = [edit.model_dump(mode="json") for edit in edits]
        response = await self._client.post("/api/save", json=payload)
        if not response.is_success:
            raise StoreWriteError(response.text.strip(), status_code=response.status_code)

        try:
            created = SnapshotCreated.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise StoreWriteError(
                f"Unexpected save response: {exc}", status_code=response.status_code
            ) from exc
        return created.snapshot_id

    async def revalidate(self) -> None:
        response = await self._client.post("/api/revalidate")
        if not response.is_success:
            raise InvalidationError(
                f"revalidate returned {response.status_code}: {response.text.strip()}"
            )

    async def fetch_latest(self) -> EditBatch:
        response = await self._client.get("/api/content/latest")
        response.raise_for_status()
        return LatestContent.model_validate(response.json()).edits

    async def fetch_snapshot(self, snapshot_id: str) -> EditBatch:
        path = f"/api/snapshots/{quote(snapshot_id, safe='')}"
        response = await self._client.get(path)
        if response.status_code in {403, 404}:
            raise SnapshotLookupError(
                f"Snapshot not available: {snapshot_id}",
                snapshot_id=snapshot_id,
                forbidden=response.status_code == 403,
            )
        response.raise_for_status()
        return Snapshot.model_validate(response.json()).edits


def build_async_client(base_url: str, **kwargs: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, follow_redirects=False, **kwargs)
