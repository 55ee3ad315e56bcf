"""Data models for field edits and stored snapshots."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class FieldEdit(BaseModel):
    """Current text of one editable field.

    ``innerText`` is accepted on input for payloads produced by older page
    scripts; output always uses ``text``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    text: str = Field(validation_alias=AliasChoices("text", "innerText"))


EditBatch = tuple[FieldEdit, ...]


class Snapshot(BaseModel):
    """Immutable stored set of field edits."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    snapshot_id: str = Field(alias="snapshotId")
    edits: tuple[FieldEdit, ...] = ()
    created_at: datetime = Field(alias="createdAt")


class SnapshotCreated(BaseModel):
    """Save endpoint success payload."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    snapshot_id: str = Field(alias="snapshotId")


class LatestContent(BaseModel):
    """Latest-content lookup payload; empty when nothing has been saved yet."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    snapshot_id: str | None = Field(default=None, alias="snapshotId")
    edits: tuple[FieldEdit, ...] = ()
