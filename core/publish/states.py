"""Publish state machine states and transitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PublishPhase(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"
    ERROR = "error"
    PREVIEWING = "previewing"
    DRAFT_UNAVAILABLE = "draft_unavailable"


class PublishEvent(str, Enum):
    TOGGLE_EDIT = "toggle_edit"
    REQUEST_SAVE = "request_save"
    SAVE_SUCCEEDED = "save_succeeded"
    SAVE_FAILED = "save_failed"
    SAVE_ABORTED = "save_aborted"
    DISMISS_ERROR = "dismiss_error"
    OPEN_PREVIEW = "open_preview"
    PREVIEW_UNAVAILABLE = "preview_unavailable"
    EXIT_PREVIEW = "exit_preview"
    CLEAR_SNAPSHOT = "clear_snapshot"
    RELOAD_LATEST = "reload_latest"


@dataclass(frozen=True)
class PublishState:
    """Current phase plus the data that phase carries.

    ``message`` is set for ERROR and DRAFT_UNAVAILABLE, ``snapshot_id`` for
    PREVIEWING and for VIEWING after a save, ``warning`` for a save whose
    write succeeded but whose publish/refresh step failed.
    """

    phase: PublishPhase
    message: str | None = None
    snapshot_id: str | None = None
    warning: str | None = None

    @property
    def can_save(self) -> bool:
        return self.phase is PublishPhase.EDITING

    @property
    def is_editing(self) -> bool:
        return self.phase in {PublishPhase.EDITING, PublishPhase.SAVING}


VIEWING = PublishState(PublishPhase.VIEWING)
EDITING = PublishState(PublishPhase.EDITING)
SAVING = PublishState(PublishPhase.SAVING)

_ALLOWED: dict[PublishPhase, frozenset[PublishEvent]] = {
    PublishPhase.VIEWING: frozenset(
        {
            PublishEvent.TOGGLE_EDIT,
            PublishEvent.OPEN_PREVIEW,
            PublishEvent.PREVIEW_UNAVAILABLE,
            PublishEvent.CLEAR_SNAPSHOT,
            PublishEvent.RELOAD_LATEST,
        }
    ),
    PublishPhase.EDITING: frozenset({PublishEvent.TOGGLE_EDIT, PublishEvent.REQUEST_SAVE}),
    PublishPhase.SAVING: frozenset(
        {PublishEvent.SAVE_SUCCEEDED, PublishEvent.SAVE_FAILED, PublishEvent.SAVE_ABORTED}
    ),
    PublishPhase.ERROR: frozenset({PublishEvent.DISMISS_ERROR}),
    PublishPhase.PREVIEWING: frozenset(
        {
            PublishEvent.TOGGLE_EDIT,
            PublishEvent.OPEN_PREVIEW,
            PublishEvent.PREVIEW_UNAVAILABLE,
            PublishEvent.EXIT_PREVIEW,
        }
    ),
    PublishPhase.DRAFT_UNAVAILABLE: frozenset(
        {PublishEvent.OPEN_PREVIEW, PublishEvent.PREVIEW_UNAVAILABLE, PublishEvent.EXIT_PREVIEW}
    ),
}


class InvalidTransitionError(RuntimeError):
    """Raised when an event is not accepted in the current phase."""

    def __init__(self, state: PublishState, event: PublishEvent) -> None:
        super().__init__(f"Event {event.value} not allowed in phase {state.phase.value}")
        self.state = state
        self.event = event


def is_allowed(state: PublishState, event: PublishEvent) -> bool:
    return event in _ALLOWED[state.phase]


def transition(
    state: PublishState,
    event: PublishEvent,
    *,
    message: str | None = None,
    snapshot_id: str | None = None,
    warning: str | None = None,
) -> PublishState:
    """Return the state that follows ``event``; raise when it is not allowed."""

    if not is_allowed(state, event):
        raise InvalidTransitionError(state, event)

    if event is PublishEvent.TOGGLE_EDIT:
        return VIEWING if state.phase is PublishPhase.EDITING else EDITING
    if event is PublishEvent.REQUEST_SAVE:
        return SAVING
    if event is PublishEvent.SAVE_SUCCEEDED:
        return PublishState(PublishPhase.VIEWING, snapshot_id=snapshot_id, warning=warning)
    if event is PublishEvent.SAVE_FAILED:
        return PublishState(PublishPhase.ERROR, message=message or "save failed")
    if event is PublishEvent.SAVE_ABORTED:
        return EDITING
    if event is PublishEvent.DISMISS_ERROR:
        return EDITING
    if event is PublishEvent.OPEN_PREVIEW:
        return PublishState(PublishPhase.PREVIEWING, snapshot_id=snapshot_id)
    if event is PublishEvent.PREVIEW_UNAVAILABLE:
        return PublishState(
            PublishPhase.DRAFT_UNAVAILABLE,
            message=message or "The requested preview edit does not exist!",
            snapshot_id=snapshot_id,
        )
    if event is PublishEvent.RELOAD_LATEST:
        return state
    # EXIT_PREVIEW, CLEAR_SNAPSHOT
    return VIEWING
