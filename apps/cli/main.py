"""Typer CLI entrypoint for malleable-page."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import httpx
import typer
from pydantic import TypeAdapter, ValidationError

from apps.client.http_client import HttpPublishClient, build_async_client
from core.capture.edit_capture import TextFieldController
from core.content.content_map import ContentMap, build_content_map
from core.content.models import FieldEdit
from core.fields.registry import FieldRegistry, load_field_registry
from core.publish.coordinator import PublishCoordinator
from core.publish.states import PublishPhase, PublishState
from core.store.snapshot_store import JsonSnapshotStore
from core.utils.errors import SnapshotLookupError

app = typer.Typer(help="Malleable page content CLI", rich_markup_mode=None)

_edit_list_adapter = TypeAdapter(list[FieldEdit])

EXIT_ERROR = 1
EXIT_PARTIAL = 2
EXIT_DRAFT_UNAVAILABLE = 3


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("fields")
def fields_command(
    fields: Annotated[Path | None, typer.Option("--fields", dir_okay=False)] = None,
) -> None:
    """List editable field ids in render order."""

    registry = _load_registry_or_exit(fields)
    for definition in registry:
        typer.echo(f"{definition.id}\t{definition.tag}")


@app.command("show")
def show_command(
    store: Annotated[Path, typer.Option(..., dir_okay=False)],
    snapshot: Annotated[str | None, typer.Option("--snapshot")] = None,
    fields: Annotated[Path | None, typer.Option("--fields", dir_okay=False)] = None,
) -> None:
    """Print the content map of the latest snapshot, or of one snapshot."""

    registry = _load_registry_or_exit(fields)
    snapshot_store = JsonSnapshotStore(store)

    if snapshot is None:
        latest = snapshot_store.latest()
        content = build_content_map(latest.edits if latest else (), registry)
    else:
        try:
            found = snapshot_store.get(snapshot)
        except SnapshotLookupError as exc:
            typer.echo(f"ERROR: {exc}")
            raise typer.Exit(code=EXIT_DRAFT_UNAVAILABLE) from exc
        content = build_content_map(found.edits, registry)

    typer.echo(_dump_content(content, registry))


@app.command("save")
def save_command(
    store: Annotated[Path, typer.Option(..., dir_okay=False)],
    edits: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
) -> None:
    """Store an edit batch file directly as a new snapshot."""

    batch = _load_edits_or_exit(edits)
    created = JsonSnapshotStore(store).create(batch)
    typer.echo(created.snapshot_id)


@app.command("publish")
def publish_command(
    base_url: Annotated[str, typer.Option(...)],
    edits: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    fields: Annotated[Path | None, typer.Option("--fields", dir_okay=False)] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Give up on the save request after N seconds."),
    ] = 30.0,
) -> None:
    """Edit the live page through the service and publish the result."""

    registry = _load_registry_or_exit(fields)
    batch = _load_edits_or_exit(edits)
    try:
        state = asyncio.run(_publish(base_url, registry, batch, timeout))
    except httpx.HTTPError as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from exc

    if state.phase is PublishPhase.ERROR:
        typer.echo(f"ERROR: {state.message}")
        raise typer.Exit(code=EXIT_ERROR)
    if state.warning:
        typer.echo(f"WARNING: {state.warning}")
        typer.echo(f"snapshot_id={state.snapshot_id}")
        raise typer.Exit(code=EXIT_PARTIAL)
    typer.echo(f"snapshot_id={state.snapshot_id}")
    typer.echo(f"share_path=/api/share/{state.snapshot_id}")


@app.command("preview")
def preview_command(
    base_url: Annotated[str, typer.Option(...)],
    snapshot_id: Annotated[str, typer.Argument()],
    fields: Annotated[Path | None, typer.Option("--fields", dir_okay=False)] = None,
) -> None:
    """Print the content a preview link would show."""

    registry = _load_registry_or_exit(fields)
    try:
        state, content = asyncio.run(_preview(base_url, registry, snapshot_id))
    except httpx.HTTPError as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from exc

    if state.phase is PublishPhase.DRAFT_UNAVAILABLE:
        typer.echo(f"ERROR: draft unavailable: {state.message}")
        raise typer.Exit(code=EXIT_DRAFT_UNAVAILABLE)
    typer.echo(_dump_content(content, registry))


async def _publish(
    base_url: str,
    registry: FieldRegistry,
    batch: list[FieldEdit],
    timeout: float | None,
) -> PublishState:
    controllers = {item.id: TextFieldController(field_id=item.id) for item in registry}
    async with build_async_client(base_url) as http_client:
        coordinator = PublishCoordinator(
            HttpPublishClient(http_client),
            list(controllers.values()),
            registry=registry,
            save_timeout_seconds=timeout,
        )
        await coordinator.load_latest()
        coordinator.toggle_edit()
        for edit in batch:
            controller = controllers.get(edit.id)
            if controller is None:
                typer.echo(f"WARNING: ignoring unknown field id: {edit.id}")
                continue
            controller.text = edit.text
        return await coordinator.share()


async def _preview(
    base_url: str, registry: FieldRegistry, snapshot_id: str
) -> tuple[PublishState, ContentMap]:
    controllers = [TextFieldController(field_id=item.id) for item in registry]
    async with build_async_client(base_url) as http_client:
        coordinator = PublishCoordinator(
            HttpPublishClient(http_client), controllers, registry=registry
        )
        state = await coordinator.open_preview(snapshot_id)
        return state, coordinator.content


def _load_registry_or_exit(path: Path | None) -> FieldRegistry:
    try:
        return load_field_registry(path)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from exc


def _load_edits_or_exit(path: Path) -> list[FieldEdit]:
    try:
        return _edit_list_adapter.validate_json(path.read_bytes())
    except ValidationError as exc:
        typer.echo(f"ERROR: invalid edits file {path}: expected a JSON array of {{id, text}}")
        raise typer.Exit(code=EXIT_ERROR) from exc


def _dump_content(content: ContentMap, registry: FieldRegistry) -> str:
    ordered = {field_id: content.get(field_id, "") for field_id in registry.ids()}
    return json.dumps(ordered, ensure_ascii=False, indent=2)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
