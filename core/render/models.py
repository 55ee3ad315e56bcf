"""Page view models consumed by the renderer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from core.content.content_map import EMPTY_CONTENT, ContentMap, build_content_map
from core.content.models import Snapshot
from core.fields.registry import FieldRegistry

PageMode = Literal["published", "preview", "draft_unavailable"]


@dataclass(frozen=True)
class PageView:
    """Content source for one render of the page."""

    mode: PageMode
    content: ContentMap = field(default_factory=lambda: EMPTY_CONTENT)
    snapshot_id: str | None = None
    message: str | None = None

    @property
    def is_preview(self) -> bool:
        return self.mode != "published"


def published_view(snapshot: Snapshot | None, registry: FieldRegistry) -> PageView:
    if snapshot is None:
        return PageView(mode="published")
    return PageView(
        mode="published",
        content=build_content_map(snapshot.edits, registry),
        snapshot_id=snapshot.snapshot_id,
    )


def preview_view(snapshot: Snapshot, registry: FieldRegistry) -> PageView:
    return PageView(
        mode="preview",
        content=build_content_map(snapshot.edits, registry),
        snapshot_id=snapshot.snapshot_id,
    )


def draft_unavailable_view(snapshot_id: str | None, message: str) -> PageView:
    return PageView(mode="draft_unavailable", snapshot_id=snapshot_id, message=message)
