from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from core.snapshot.models import ContentSnapshot, SnapshotMeta, coerce_category
from core.snapshot.store import read_reference, read_snapshot, write_snapshot
from core.utils.errors import SnapshotError


def test_write_and_read_snapshot_keeps_meta_and_unicode(tmp_path: Path) -> None:
    path = tmp_path / "out" / "content-snapshot.json"
    snapshot = ContentSnapshot(
        categories={"plans": [{"title": "أساسي"}, None], "hero": {"Back": None}},
        meta=SnapshotMeta(locale="en", occurrences={"plans.title": 2}),
    )

    write_snapshot(path, snapshot)

    raw = path.read_text(encoding="utf-8")
    assert raw.endswith("\n")
    assert "أساسي" in raw
    assert list(json.loads(raw))[0] == "_meta"
    loaded = read_snapshot(path)
    assert loaded.categories == snapshot.categories
    assert loaded.expected_occurrences("plans.title") == 2
    assert loaded.expected_occurrences("missing") is None
    assert not list(path.parent.glob("*.tmp"))


def test_snapshot_without_meta_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "translated-snapshot.json"
    path.write_text(json.dumps({"plans": [{"title": "x"}]}), encoding="utf-8")

    loaded = read_snapshot(path)

    assert loaded.meta is None
    assert loaded.expected_occurrences("plans.title") is None
    assert loaded.to_payload() == {"plans": [{"title": "x"}]}


def test_read_snapshot_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "translated-snapshot.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SnapshotError, match="Invalid snapshot JSON"):
        read_snapshot(path)


def test_read_snapshot_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "translated-snapshot.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(SnapshotError, match="JSON object"):
        read_snapshot(path)


def test_read_snapshot_propagates_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_snapshot(tmp_path / "missing.json")


def test_read_reference_returns_none_when_absent(tmp_path: Path) -> None:
    assert read_reference(tmp_path / "bilingual-reference.json") is None


def test_coerce_category_checks_shape() -> None:
    assert coerce_category({"a": "b", "c": None}, "map") == {"a": "b", "c": None}
    assert coerce_category([{"t": "x"}, None], "records") == [{"t": "x"}, None]
    assert coerce_category({"/": {"t": "x"}, "/a": None}, "keyed_records") == {
        "/": {"t": "x"},
        "/a": None,
    }

    with pytest.raises(ValidationError):
        coerce_category([{"t": "x"}], "map")
    with pytest.raises(ValidationError):
        coerce_category([{"t": 3}], "records")
    with pytest.raises(ValidationError):
        coerce_category([{"t": "x"}], "keyed_records")


def test_read_snapshot_rejects_invalid_meta(tmp_path: Path) -> None:
    path = tmp_path / "translated-snapshot.json"
    payload = {"_meta": {"occurrences": {"plans.title": "many"}}, "plans": []}
    path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(SnapshotError, match="Invalid snapshot metadata"):
        read_snapshot(path)
