from __future__ import annotations

import pytest

from core.content.content_map import build_content_map, field_text
from core.content.models import FieldEdit
from core.fields.registry import FieldDefinition, FieldRegistry, load_field_registry


def test_content_map_reads_back_every_edit_verbatim() -> None:
    registry = load_field_registry()
    edits = (
        FieldEdit(id="title", text="  Hello <world> & more\n"),
        FieldEdit(id="feature-1-emoji", text="⚡"),
        FieldEdit(id="explanation-1-pre-curl", text="$ curl -sI https://example.com\n"),
    )

    content = build_content_map(edits, registry)

    for edit in edits:
        assert field_text(content, edit.id) == edit.text


def test_content_map_uses_later_entry_for_duplicate_ids() -> None:
    edits = [
        FieldEdit(id="title", text="first"),
        FieldEdit(id="title-2", text="other"),
        FieldEdit(id="title", text="second"),
    ]

    content = build_content_map(edits)

    assert dict(content) == {"title": "second", "title-2": "other"}


def test_content_map_drops_ids_unknown_to_registry() -> None:
    registry = FieldRegistry([FieldDefinition(id="title")])

    content = build_content_map(
        [FieldEdit(id="title", text="kept"), FieldEdit(id="legacy-banner", text="dropped")],
        registry,
    )

    assert dict(content) == {"title": "kept"}


def test_missing_fields_render_as_empty_text() -> None:
    content = build_content_map([])

    assert field_text(content, "title") == ""


def test_content_map_is_read_only() -> None:
    content = build_content_map([FieldEdit(id="title", text="x")])

    with pytest.raises(TypeError):
        content["title"] = "y"  # type: ignore[index]


def test_field_edit_accepts_legacy_inner_text_key() -> None:
    edit = FieldEdit.model_validate({"id": "title", "innerText": "Hello"})

    assert edit.text == "Hello"
    assert edit.model_dump() == {"id": "title", "text": "Hello"}
