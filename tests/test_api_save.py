from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx
import pytest

import apps.api.main as api_main
from apps.api.main import REQUEST_ID_HEADER, app
from core.store.snapshot_store import JsonSnapshotStore


@pytest.fixture(autouse=True)
def _isolated_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    store_path = tmp_path / "snapshots.json"
    monkeypatch.setenv("MALLEABLE_STORE_PATH", str(store_path))
    monkeypatch.delenv("MALLEABLE_FIELDS_PATH", raising=False)
    monkeypatch.delenv("MALLEABLE_MAX_BODY_BYTES", raising=False)
    return store_path


def _client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


@pytest.mark.anyio
async def test_save_returns_snapshot_id_and_updates_latest(_isolated_store: Path) -> None:
    async with _client() as client:
        response = await client.post("/api/save", json=[{"id": "title", "text": "Hello"}])
        latest = await client.get("/api/content/latest")

    assert response.status_code == 200
    snapshot_id = response.json()["snapshotId"]
    assert snapshot_id
    assert response.headers[REQUEST_ID_HEADER]

    payload = latest.json()
    assert payload["snapshotId"] == snapshot_id
    assert {"id": "title", "text": "Hello"} in payload["edits"]
    assert JsonSnapshotStore(_isolated_store).get(snapshot_id).edits[0].text == "Hello"


@pytest.mark.anyio
async def test_latest_content_is_empty_before_first_save() -> None:
    async with _client() as client:
        response = await client.get("/api/content/latest")

    assert response.status_code == 200
    assert response.json() == {"snapshotId": None, "edits": []}


@pytest.mark.anyio
async def test_save_accepts_legacy_inner_text_payload() -> None:
    async with _client() as client:
        response = await client.post("/api/save", json=[{"id": "title", "innerText": "Hi"}])
        snapshot_id = response.json()["snapshotId"]
        lookup = await client.get(f"/api/snapshots/{snapshot_id}")

    assert lookup.status_code == 200
    assert lookup.json()["edits"] == [{"id": "title", "text": "Hi"}]
    assert lookup.json()["createdAt"]


@pytest.mark.anyio
async def test_save_rejects_non_array_body_with_plain_text() -> None:
    async with _client() as client:
        response = await client.post("/api/save", json={"id": "title", "text": "Hello"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")
    assert "JSON array" in response.text


@pytest.mark.anyio
async def test_save_rejects_oversized_body(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MALLEABLE_MAX_BODY_BYTES", "32")

    async with _client() as client:
        response = await client.post(
            "/api/save", json=[{"id": "title", "text": "x" * 100}]
        )

    assert response.status_code == 413
    assert response.text == "Payload Too Large"


@pytest.mark.anyio
async def test_save_store_failure_returns_plain_text_500(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="malleable.api")

    def _fail(self, edits):  # noqa: ANN001
        raise OSError("disk full")

    monkeypatch.setattr(JsonSnapshotStore, "create", _fail)

    async with _client() as client:
        response = await client.post("/api/save", json=[{"id": "title", "text": "Hello"}])

    assert response.status_code == 500
    assert response.text == "Internal Server Error"
    request_id = response.headers[REQUEST_ID_HEADER]
    messages = [record.message for record in caplog.records if record.name == "malleable.api"]
    assert any(
        '"event":"error"' in message
        and request_id in message
        and '"failure_stage":"store_write"' in message
        for message in messages
    )


@pytest.mark.anyio
async def test_published_page_changes_only_after_revalidate() -> None:
    async with _client() as client:
        before = await client.get("/")
        await client.post("/api/save", json=[{"id": "title", "text": "Fresh title"}])
        stale = await client.get("/")
        revalidated = await client.post("/api/revalidate")
        after = await client.get("/")

    assert before.status_code == 200
    assert before.headers["X-Malleable-Page-Mode"] == "published"
    assert "Fresh title" not in stale.text
    assert revalidated.status_code == 200
    assert revalidated.json() == {"revalidated": True}
    assert "Fresh title" in after.text


@pytest.mark.anyio
async def test_revalidate_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken_render(registry, view):  # noqa: ANN001
        raise RuntimeError("template exploded")

    async with _client() as client:
        await client.get("/")
        monkeypatch.setattr(api_main, "render_page", _broken_render)
        response = await client.post("/api/revalidate")

    assert response.status_code == 500
    assert response.text == "Internal Server Error"


@pytest.mark.anyio
async def test_unknown_snapshot_lookup_returns_404() -> None:
    async with _client() as client:
        response = await client.get("/api/snapshots/missing")

    assert response.status_code == 404
    payload = response.json()
    assert payload["error_code"] == "SNAPSHOT_NOT_FOUND"
    assert payload["detail"]["request_id"] == response.headers[REQUEST_ID_HEADER]


@pytest.mark.anyio
async def test_fields_lists_registry_in_order(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fields_path = tmp_path / "fields.yaml"
    fields_path.write_text(
        "fields:\n  - id: headline\n    tag: h1\n  - id: body\n", encoding="utf-8"
    )
    monkeypatch.setenv("MALLEABLE_FIELDS_PATH", str(fields_path))

    async with _client() as client:
        response = await client.get("/api/fields")

    assert response.status_code == 200
    assert response.json()["fields"] == [
        {"id": "headline", "tag": "h1"},
        {"id": "body", "tag": "p"},
    ]


@pytest.mark.anyio
async def test_corrupt_store_returns_internal_error(_isolated_store: Path) -> None:
    _isolated_store.write_text("{invalid", encoding="utf-8")

    async with _client() as client:
        response = await client.get("/api/content/latest")

    assert response.status_code == 500
    assert json.loads(response.text)["error_code"] == "INTERNAL_ERROR"
