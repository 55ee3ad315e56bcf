"""Editable field registry declared by the page template."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Literal

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError

FieldTag = Literal["h1", "h2", "h3", "h4", "div", "span", "pre", "p"]


class FieldDefinition(BaseModel):
    """One editable field and the element it renders as."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    tag: FieldTag = "p"


class _RegistryFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fields: list[FieldDefinition] = Field(min_length=1)


class FieldRegistry:
    """Fixed, ordered set of editable field ids."""

    def __init__(self, fields: list[FieldDefinition]) -> None:
        if not fields:
            raise ValueError("Field registry must define at least one field")
        seen: set[str] = set()
        for item in fields:
            if item.id in seen:
                raise ValueError(f"Duplicate field id: {item.id}")
            seen.add(item.id)
        self._fields = tuple(fields)
        self._by_id = {item.id: item for item in self._fields}

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._by_id

    def ids(self) -> list[str]:
        return [item.id for item in self._fields]

    def get(self, field_id: str) -> FieldDefinition | None:
        return self._by_id.get(field_id)


def load_field_registry(path: Path | None = None) -> FieldRegistry:
    """Load and validate the field registry from YAML."""

    registry_path = path or Path(__file__).with_name("page_fields.yaml")

    try:
        raw = yaml.safe_load(registry_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Field registry file not found: {registry_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in field registry: {registry_path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Field registry must contain a mapping: {registry_path}")

    try:
        parsed = _RegistryFile.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid field registry schema: {registry_path}") from exc

    return FieldRegistry(parsed.fields)
