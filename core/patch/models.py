"""Data models for patch reports."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PatchStatus = Literal["updated", "unchanged", "skipped", "not_found", "shifted", "invalid"]


class PatchEntry(BaseModel):
    """Outcome for one record field, key or whole category."""

    model_config = ConfigDict(extra="forbid")

    category: str
    status: PatchStatus
    index: int | None = None
    key: str | None = None
    field: str | None = None
    detail: str | None = None


class ArtifactReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    entries: list[PatchEntry] = Field(default_factory=list)
    changed: bool = False
    written: bool = False
    aborted: bool = False
    error: str | None = None

    def count(self, status: PatchStatus) -> int:
        return sum(1 for entry in self.entries if entry.status == status)


class ApplyReport(BaseModel):
    """Per-artifact results of one apply run."""

    model_config = ConfigDict(extra="forbid")

    artifacts: list[ArtifactReport] = Field(default_factory=list)

    @property
    def updated_paths(self) -> list[str]:
        return [artifact.path for artifact in self.artifacts if artifact.changed]

    @property
    def has_aborted(self) -> bool:
        return any(artifact.aborted for artifact in self.artifacts)

    def count(self, status: PatchStatus) -> int:
        return sum(artifact.count(status) for artifact in self.artifacts)
