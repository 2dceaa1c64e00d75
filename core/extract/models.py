"""Data models for export results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict

from core.snapshot.models import ContentSnapshot

CategorySource = Literal["artifact", "reference", "defaults", "empty"]


class CategoryExport(BaseModel):
    """Where one category's values came from and how many were exported."""

    model_config = ConfigDict(extra="forbid")

    name: str
    kind: str
    artifact: str | None
    source: CategorySource
    count: int


@dataclass
class ExtractionResult:
    snapshot: ContentSnapshot
    entries: list[CategoryExport] = field(default_factory=list)

    def entry(self, name: str) -> CategoryExport | None:
        for item in self.entries:
            if item.name == name:
                return item
        return None
