"""Capture the current text of active editable fields into an edit batch."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from core.content.models import EditBatch, FieldEdit
from core.utils.errors import EditCaptureError

logger = logging.getLogger("malleable.capture")


class FieldController(Protocol):
    """One editable surface bound to a field id."""

    field_id: str | None
    editable: bool
    active: bool

    def current_text(self) -> str:
        """Return the text currently displayed by the control."""

    def display(self, text: str) -> None:
        """Replace the displayed text with stored content."""


@dataclass
class TextFieldController:
    """In-memory controller holding the displayed text of one field."""

    field_id: str | None
    text: str = ""
    editable: bool = True
    active: bool = False

    def current_text(self) -> str:
        return self.text

    def display(self, text: str) -> None:
        self.text = text


def capture_edits(
    controllers: Iterable[FieldController], *, strict: bool = True
) -> EditBatch:
    """Build an edit batch from editable controllers that are in edit mode.

    Text is captured verbatim. A control without a field id raises
    ``EditCaptureError`` in strict mode and is skipped otherwise.
    """

    edits: list[FieldEdit] = []
    for position, controller in enumerate(controllers):
        if not (controller.editable and controller.active):
            continue

        field_id = controller.field_id
        if not field_id:
            if strict:
                raise EditCaptureError(
                    f"Editable control at position {position} has no field id",
                    position=position,
                )
            logger.warning("skipping editable control without field id: position=%d", position)
            continue

        edits.append(FieldEdit(id=field_id, text=controller.current_text()))

    return tuple(edits)
