"""Render the field registry and a page view into HTML."""

from __future__ import annotations

from html import escape

from core.content.content_map import field_text
from core.fields.registry import FieldRegistry
from core.render.models import PageView

PAGE_TITLE = "Malleable Page"
EXIT_PREVIEW_PATH = "/api/exit"
EDITOR_SCRIPT_PATH = "/static/editor.js"


def render_page(registry: FieldRegistry, view: PageView) -> str:
    """Render a complete HTML document for ``view``.

    Every registry field is emitted as one element carrying ``data-field-id``;
    fields the view has no text for render empty. The draft-unavailable view
    renders only the explanation, never field content.
    """

    parts = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escape(PAGE_TITLE)}</title>",
        f'<script defer src="{EDITOR_SCRIPT_PATH}"></script>',
        "</head>",
        f'<body data-page-mode="{view.mode}">',
        '<main class="layout">',
    ]

    if view.is_preview:
        parts.append(
            f'<aside role="alert"><a href="{EXIT_PREVIEW_PATH}">Preview Mode</a></aside>'
        )

    if view.mode == "draft_unavailable":
        parts.extend(_render_unavailable(view))
    else:
        parts.extend(render_fields(registry, view))

    parts.extend(["</main>", "</body>", "</html>"])
    return "\n".join(parts)


def render_fields(registry: FieldRegistry, view: PageView) -> list[str]:
    lines: list[str] = []
    for definition in registry:
        text = escape(field_text(view.content, definition.id))
        lines.append(
            f'<{definition.tag} id="{escape(definition.id)}" '
            f'data-field-id="{escape(definition.id)}">'
            f'<span data-editable="true">{text}</span>'
            f"</{definition.tag}>"
        )
    return lines


def _render_unavailable(view: PageView) -> list[str]:
    message = view.message or "This draft is unavailable."
    return [
        "<h1>Oops</h1>",
        "<h2>Something unique to your preview went wrong.</h2>",
        '<div class="explanation">',
        "<p>The production website is <strong>still available</strong> and "
        "this does not affect other users.</p>",
        "</div>",
        "<hr>",
        "<h2>Reason</h2>",
        f'<div class="explanation"><p data-draft-unavailable="true">{escape(message)}</p></div>',
    ]
