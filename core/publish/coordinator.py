"""Edit / save / preview coordination for one page view."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol, TypeVar

from core.capture.edit_capture import FieldController, capture_edits
from core.content.content_map import EMPTY_CONTENT, ContentMap, build_content_map, field_text
from core.content.models import EditBatch, FieldEdit
from core.fields.registry import FieldRegistry
from core.publish.states import (
    VIEWING,
    InvalidTransitionError,
    PublishEvent,
    PublishPhase,
    PublishState,
    is_allowed,
    transition,
)
from core.utils.errors import EditCaptureError, SnapshotLookupError, StoreWriteError

logger = logging.getLogger("malleable.publish")

SaveSource = Literal["pointer", "keyboard"]
T = TypeVar("T")

GENERIC_SAVE_ERROR = "An error occurred while saving your snapshot. Please try again in a bit."
DRAFT_MISSING_MESSAGE = "The requested preview edit does not exist!"
DRAFT_LOAD_FAILED_MESSAGE = (
    "An error has occurred while loading the preview. Please refresh the page to try again."
)


class PublishClient(Protocol):
    """Network boundary used by the coordinator."""

    async def save(self, edits: EditBatch) -> str:
        """Persist edits and return the new snapshot id."""

    async def revalidate(self) -> None:
        """Regenerate the publicly served page."""

    async def fetch_latest(self) -> EditBatch:
        """Return the edits of the most recent snapshot."""

    async def fetch_snapshot(self, snapshot_id: str) -> EditBatch:
        """Return the edits of one snapshot or raise ``SnapshotLookupError``."""


@dataclass(frozen=True)
class KeyEvent:
    """Keyboard event reduced to what the save shortcut needs."""

    key: str
    meta: bool = False
    ctrl: bool = False

    @property
    def is_save_shortcut(self) -> bool:
        return self.key == "Enter" and (self.meta or self.ctrl)


class PublishCoordinator:
    """Drive edit mode, single-flight saves and preview for one page view.

    The state itself is the save guard: ``request_save`` checks and enters
    SAVING synchronously, before any await, so a second trigger in the same
    loop turn is dropped.
    """

    def __init__(
        self,
        client: PublishClient,
        controllers: Sequence[FieldController],
        *,
        registry: FieldRegistry | None = None,
        content: ContentMap = EMPTY_CONTENT,
        strict_capture: bool = True,
        save_timeout_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._controllers = list(controllers)
        self._registry = registry
        self._strict_capture = strict_capture
        self._save_timeout_seconds = save_timeout_seconds
        self._state = VIEWING
        self._content = content
        self._display_content()

    @property
    def state(self) -> PublishState:
        return self._state

    @property
    def content(self) -> ContentMap:
        return self._content

    @property
    def controllers(self) -> list[FieldController]:
        return list(self._controllers)

    def toggle_edit(self) -> PublishState:
        """Enter edit mode, or cancel it when already editing."""

        entering = self._state.phase is not PublishPhase.EDITING
        self._apply(PublishEvent.TOGGLE_EDIT)
        if not entering:
            # Cancelling drops unsaved text.
            self._display_content()
        self._set_active(entering)
        return self._state

    def request_save(self, source: SaveSource = "pointer") -> asyncio.Task[PublishState] | None:
        """Start a save unless one cannot start now; returns the save task."""

        loop = asyncio.get_running_loop()
        if not self._state.can_save:
            _log_event(logging.DEBUG, "save_dropped", source=source, phase=self._state.phase.value)
            return None

        self._apply(PublishEvent.REQUEST_SAVE)
        try:
            batch = capture_edits(self._controllers, strict=self._strict_capture)
        except EditCaptureError:
            self._apply(PublishEvent.SAVE_ABORTED)
            raise

        return loop.create_task(self._run_save(batch, source))

    def handle_key(self, event: KeyEvent) -> asyncio.Task[PublishState] | None:
        """Map the save shortcut to ``request_save`` while editing."""

        if not event.is_save_shortcut or self._state.phase is not PublishPhase.EDITING:
            return None
        return self.request_save("keyboard")

    async def share(self, source: SaveSource = "pointer") -> PublishState:
        task = self.request_save(source)
        if task is None:
            return self._state
        return await task

    def dismiss_error(self) -> PublishState:
        self._apply(PublishEvent.DISMISS_ERROR)
        return self._state

    def clear_snapshot(self) -> PublishState:
        """Dismiss the share link shown after a save."""

        self._apply(PublishEvent.CLEAR_SNAPSHOT)
        return self._state

    async def load_latest(self) -> ContentMap:
        """Replace the displayed content with the latest published edits.

        Only allowed while viewing; drafts and unsaved text are never
        overwritten. A result that arrives after the state changed is dropped.
        """

        before = self._state
        if not is_allowed(before, PublishEvent.RELOAD_LATEST):
            raise InvalidTransitionError(before, PublishEvent.RELOAD_LATEST)

        edits = await self._client.fetch_latest()
        if self._state is not before:
            _log_event(logging.INFO, "reload_discarded", phase=self._state.phase.value)
            return self._content

        self._replace_content(edits)
        self._apply(PublishEvent.RELOAD_LATEST)
        return self._content

    async def open_preview(self, snapshot_id: str) -> PublishState:
        """Show one snapshot as a draft preview.

        A failed lookup enters DRAFT_UNAVAILABLE with empty content; the
        published content is never shown in its place.
        """

        before = self._state
        if not is_allowed(before, PublishEvent.OPEN_PREVIEW):
            raise InvalidTransitionError(before, PublishEvent.OPEN_PREVIEW)

        edits: EditBatch | None = None
        message: str | None = None
        try:
            edits = await self._client.fetch_snapshot(snapshot_id)
        except SnapshotLookupError:
            message = DRAFT_MISSING_MESSAGE
        except Exception as exc:  # noqa: BLE001
            _log_event(
                logging.ERROR,
                "preview_error",
                snapshot_id=snapshot_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            message = DRAFT_LOAD_FAILED_MESSAGE

        if self._state is not before:
            _log_event(logging.INFO, "preview_discarded", snapshot_id=snapshot_id)
            return self._state

        if edits is None:
            self._replace_content(())
            self._apply(
                PublishEvent.PREVIEW_UNAVAILABLE, message=message, snapshot_id=snapshot_id
            )
            _log_event(logging.WARNING, "preview_unavailable", snapshot_id=snapshot_id)
        else:
            self._replace_content(edits)
            self._apply(PublishEvent.OPEN_PREVIEW, snapshot_id=snapshot_id)
            _log_event(logging.INFO, "preview", snapshot_id=snapshot_id, field_count=len(edits))
        return self._state

    async def exit_preview(self) -> PublishState:
        edits = await self._client.fetch_latest()
        self._replace_content(edits)
        self._apply(PublishEvent.EXIT_PREVIEW)
        return self._state

    async def _run_save(self, batch: EditBatch, source: SaveSource) -> PublishState:
        _log_event(logging.INFO, "save_start", source=source, field_count=len(batch))
        snapshot_id: str | None = None
        try:
            try:
                snapshot_id = await self._bounded(self._client.save(batch))
            except StoreWriteError as exc:
                return self._fail_save(exc.message or GENERIC_SAVE_ERROR, exc)
            except asyncio.TimeoutError as exc:
                return self._fail_save(
                    f"save timed out after {self._save_timeout_seconds} seconds", exc
                )
            except Exception as exc:  # noqa: BLE001
                return self._fail_save(str(exc) or GENERIC_SAVE_ERROR, exc)

            warnings: list[str] = []
            try:
                await self._client.revalidate()
            except Exception as exc:  # noqa: BLE001
                warnings.append(f"published page was not regenerated: {exc}")

            try:
                latest = await self._client.fetch_latest()
            except Exception as exc:  # noqa: BLE001
                warnings.append(f"latest content could not be reloaded: {exc}")
            else:
                self._replace_content(latest)

            warning = None
            if warnings:
                warning = f"Saved snapshot {snapshot_id}, but " + "; ".join(warnings)
                _log_event(logging.WARNING, "save_partial", snapshot_id=snapshot_id, warning=warning)
            else:
                _log_event(logging.INFO, "save_done", snapshot_id=snapshot_id)

            self._set_active(False)
            self._apply(PublishEvent.SAVE_SUCCEEDED, snapshot_id=snapshot_id, warning=warning)
            return self._state
        finally:
            if self._state.phase is PublishPhase.SAVING:
                # Cancelled mid-flight; release the guard.
                self._release_cancelled(snapshot_id)

    def _release_cancelled(self, snapshot_id: str | None) -> None:
        if snapshot_id is None:
            self._apply(PublishEvent.SAVE_FAILED, message="save cancelled")
            return

        # The write already happened; only publishing was cut short.
        warning = f"Saved snapshot {snapshot_id}, but publishing was cancelled"
        _log_event(logging.WARNING, "save_partial", snapshot_id=snapshot_id, warning=warning)
        self._set_active(False)
        self._apply(PublishEvent.SAVE_SUCCEEDED, snapshot_id=snapshot_id, warning=warning)

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        if self._save_timeout_seconds is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._save_timeout_seconds)

    def _fail_save(self, message: str, exc: BaseException) -> PublishState:
        _log_event(
            logging.ERROR,
            "save_error",
            error_type=type(exc).__name__,
            message=message,
        )
        self._apply(PublishEvent.SAVE_FAILED, message=message)
        return self._state

    def _apply(self, event: PublishEvent, **fields: Any) -> None:
        previous = self._state
        self._state = transition(previous, event, **fields)
        logger.debug(
            "transition %s: %s -> %s", event.value, previous.phase.value, self._state.phase.value
        )

    def _replace_content(self, edits: Sequence[FieldEdit]) -> None:
        self._content = build_content_map(edits, self._registry)
        self._display_content()

    def _display_content(self) -> None:
        for controller in self._controllers:
            if controller.field_id:
                controller.display(field_text(self._content, controller.field_id))

    def _set_active(self, active: bool) -> None:
        for controller in self._controllers:
            controller.active = active


def _log_event(level: int, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    logger.log(
        level, json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    )
