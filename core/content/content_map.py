"""Fold an edit batch into the id -> text view used for rendering."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from core.content.models import FieldEdit
from core.fields.registry import FieldRegistry

ContentMap = Mapping[str, str]

EMPTY_CONTENT: ContentMap = MappingProxyType({})


def build_content_map(
    edits: Iterable[FieldEdit], registry: FieldRegistry | None = None
) -> ContentMap:
    """Build a read-only content map from edits.

    Later entries win for duplicate ids. When ``registry`` is given, ids it
    does not declare are dropped.
    """

    values: dict[str, str] = {}
    for edit in edits:
        if registry is not None and edit.id not in registry:
            continue
        values[edit.id] = edit.text
    return MappingProxyType(values)


def field_text(content: ContentMap, field_id: str) -> str:
    """Return the text for ``field_id``, empty when the source never set it."""

    return content.get(field_id, "")
