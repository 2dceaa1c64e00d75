"""Content snapshot models shared by the export and apply steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from core.manifest.models import Shape

SCHEMA_VERSION = 1
META_KEY = "_meta"

FlatMap = dict[str, str | None]
RecordList = list[dict[str, str | None] | None]
KeyedRecords = dict[str, dict[str, str | None] | None]

_FLAT_MAP_ADAPTER: TypeAdapter[FlatMap] = TypeAdapter(FlatMap)
_RECORD_LIST_ADAPTER: TypeAdapter[RecordList] = TypeAdapter(RecordList)
_KEYED_RECORDS_ADAPTER: TypeAdapter[KeyedRecords] = TypeAdapter(KeyedRecords)


class SnapshotMeta(BaseModel):
    """Optional provenance block stored under ``_meta``."""

    model_config = ConfigDict(extra="allow")

    schema_version: int = SCHEMA_VERSION
    generated_at: str | None = None
    primary_locale: str | None = None
    secondary_locale: str | None = None
    locale: str | None = None
    occurrences: dict[str, int] = Field(default_factory=dict)


@dataclass
class ContentSnapshot:
    """Category name -> flat map, record list or keyed record map."""

    categories: dict[str, Any] = field(default_factory=dict)
    meta: SnapshotMeta | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ContentSnapshot:
        categories = {key: value for key, value in payload.items() if key != META_KEY}
        raw_meta = payload.get(META_KEY)
        meta = SnapshotMeta.model_validate(raw_meta) if isinstance(raw_meta, dict) else None
        return cls(categories=categories, meta=meta)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.meta is not None:
            payload[META_KEY] = self.meta.model_dump(mode="json", exclude_none=True)
        payload.update(self.categories)
        return payload

    def expected_occurrences(self, key: str) -> int | None:
        if self.meta is None:
            return None
        return self.meta.occurrences.get(key)


def coerce_category(value: Any, shape: Shape) -> FlatMap | RecordList | KeyedRecords:
    """Validate one category value against its declared shape.

    Raises:
        pydantic.ValidationError: if the value does not have the shape.
    """

    if shape == "map":
        return _FLAT_MAP_ADAPTER.validate_python(value)
    if shape == "keyed_records":
        return _KEYED_RECORDS_ADAPTER.validate_python(value)
    return _RECORD_LIST_ADAPTER.validate_python(value)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()
