"""Manifest loading utilities for the export/apply pipeline."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from core.manifest.models import Manifest
from core.utils.errors import ManifestError

PROJECT_MANIFEST_NAME = "bisync.yaml"


def default_manifest_path() -> Path:
    return Path(__file__).with_name("manifest.yaml")


def find_manifest(root: Path) -> Path:
    """Prefer a project-level manifest over the packaged default."""

    candidate = root / PROJECT_MANIFEST_NAME
    if candidate.is_file():
        return candidate
    return default_manifest_path()


def load_manifest(path: Path | None = None) -> Manifest:
    """Load and validate a pipeline manifest from YAML."""

    manifest_path = path or default_manifest_path()

    try:
        raw = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ManifestError(
            f"Manifest file not found: {manifest_path}", path=manifest_path
        ) from exc
    except yaml.YAMLError as exc:
        raise ManifestError(
            f"Invalid YAML in manifest file: {manifest_path}", path=manifest_path
        ) from exc

    if not isinstance(raw, dict):
        raise ManifestError(
            f"Manifest file must contain a mapping: {manifest_path}", path=manifest_path
        )

    try:
        return Manifest.model_validate(raw)
    except ValidationError as exc:
        raise ManifestError(
            f"Invalid manifest schema: {manifest_path}\n{exc}", path=manifest_path
        ) from exc
