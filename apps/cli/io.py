"""CLI path helpers for the project-level snapshot documents."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from core.manifest.models import Manifest


@dataclass(frozen=True)
class ProjectPaths:
    """Fixed document paths for one project root."""

    root: Path
    manifest: Path
    snapshot: Path
    translated: Path
    reference: Path


def build_project_paths(root: Path, manifest_path: Path, manifest: Manifest) -> ProjectPaths:
    """Resolve manifest-relative document paths under root."""

    return ProjectPaths(
        root=root,
        manifest=manifest_path,
        snapshot=root / manifest.paths.snapshot,
        translated=root / manifest.paths.translated,
        reference=root / manifest.paths.reference,
    )


def display_path(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)
