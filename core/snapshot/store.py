"""JSON persistence for content snapshots and the bilingual reference."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from core.snapshot.models import ContentSnapshot
from core.utils.atomic_io import write_text_atomic
from core.utils.errors import SnapshotError


def read_json_object(path: Path) -> dict[str, Any]:
    """Read a JSON object document; I/O errors propagate unchanged."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Invalid snapshot JSON: {path}", path=path) from exc

    if not isinstance(raw, dict):
        raise SnapshotError(f"Snapshot must contain a JSON object: {path}", path=path)
    return raw


def read_snapshot(path: Path) -> ContentSnapshot:
    payload = read_json_object(path)
    try:
        return ContentSnapshot.from_payload(payload)
    except ValidationError as exc:
        raise SnapshotError(f"Invalid snapshot metadata: {path}\n{exc}", path=path) from exc


def read_reference(path: Path) -> dict[str, Any] | None:
    """Read the bilingual reference document if one exists."""

    if not path.is_file():
        return None
    return read_json_object(path)


def write_json_document(path: Path, payload: dict[str, Any]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
    write_text_atomic(path, text)


def write_snapshot(path: Path, snapshot: ContentSnapshot) -> None:
    write_json_document(path, snapshot.to_payload())
