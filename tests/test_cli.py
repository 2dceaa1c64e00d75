from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from apps.cli.main import app

runner = CliRunner()

MANIFEST = """
artifacts:
  - path: src/plans.ts
    categories:
      - name: plans
        kind: pair
        fields:
          - name: title
  - path: src/blog-posts.ts
    categories:
      - name: blogPosts
        kind: document
"""

PLANS = """export const plans = [
  { title: { en: 'Essential', ar: 'old' } },
];
"""

BLOG = """export const blogPosts = [
  {
    slug: 'intro',
    content: {
      en: `Hello`,
      ar: `قديم`,
    },
  },
];
"""


def _write_project(root: Path, blog: str = BLOG) -> None:
    (root / "bisync.yaml").write_text(MANIFEST, encoding="utf-8")
    (root / "src").mkdir()
    (root / "src" / "plans.ts").write_text(PLANS, encoding="utf-8")
    (root / "src" / "blog-posts.ts").write_text(blog, encoding="utf-8")


def _write_translated(root: Path) -> None:
    payload = {"plans": [{"title": "أساسي"}], "blogPosts": {"intro": "مرحبا"}}
    (root / "translated-snapshot.json").write_text(
        json.dumps(payload, ensure_ascii=False), encoding="utf-8"
    )


def test_cli_export_writes_content_snapshot() -> None:
    with runner.isolated_filesystem() as tmp:
        root = Path(tmp)
        _write_project(root)

        result = runner.invoke(app, ["export"])

        assert result.exit_code == 0, result.output
        assert "categories: 2" in result.output
        assert "wrote: content-snapshot.json" in result.output
        payload = json.loads((root / "content-snapshot.json").read_text(encoding="utf-8"))
        assert payload["plans"] == [{"title": "Essential"}]
        assert payload["blogPosts"] == {"intro": "Hello"}
        assert payload["_meta"]["occurrences"] == {"plans.title": 1}


def test_cli_apply_updates_artifacts() -> None:
    with runner.isolated_filesystem() as tmp:
        root = Path(tmp)
        _write_project(root)
        _write_translated(root)

        result = runner.invoke(app, ["apply"])

        assert result.exit_code == 0, result.output
        assert "updated: src/plans.ts" in result.output
        assert "updated: src/blog-posts.ts" in result.output
        plans = (root / "src" / "plans.ts").read_text(encoding="utf-8")
        assert "{ title: { en: 'Essential', ar: 'أساسي' } }," in plans
        blog = (root / "src" / "blog-posts.ts").read_text(encoding="utf-8")
        assert "ar: `مرحبا`," in blog

        second = runner.invoke(app, ["apply"])

        assert second.exit_code == 0, second.output
        assert "no artifacts changed" in second.output


def test_cli_apply_fails_when_an_artifact_is_aborted() -> None:
    with runner.isolated_filesystem() as tmp:
        root = Path(tmp)
        broken = BLOG.replace("ar: `قديم`,", "ar: `never closed,")
        _write_project(root, blog=broken)
        _write_translated(root)

        result = runner.invoke(app, ["apply"])

        assert result.exit_code == 1
        assert "aborted: src/blog-posts.ts" in result.output
        assert "updated: src/plans.ts" in result.output
        assert (root / "src" / "blog-posts.ts").read_text(encoding="utf-8") == broken


def test_cli_apply_requires_translated_snapshot() -> None:
    with runner.isolated_filesystem() as tmp:
        _write_project(Path(tmp))

        result = runner.invoke(app, ["apply"])

        assert result.exit_code == 1
        assert "ERROR: FileNotFoundError" in result.output


def test_cli_reports_invalid_manifest() -> None:
    with runner.isolated_filesystem() as tmp:
        Path(tmp, "bisync.yaml").write_text("artifacts: []\n", encoding="utf-8")

        result = runner.invoke(app, ["export"])

        assert result.exit_code == 1
        assert "ERROR: Invalid manifest schema" in result.output


@pytest.mark.parametrize("command", ["export", "apply", "sources"])
def test_every_command_reports_invalid_manifest(command: str) -> None:
    with runner.isolated_filesystem() as tmp:
        Path(tmp, "bisync.yaml").write_text("artifacts: []\n", encoding="utf-8")

        result = runner.invoke(app, [command])

        assert result.exit_code == 1
        assert "ERROR: Invalid manifest schema" in result.output


@pytest.mark.parametrize("command", ["export", "sources"])
def test_missing_artifact_is_reported_as_error(command: str) -> None:
    with runner.isolated_filesystem() as tmp:
        Path(tmp, "bisync.yaml").write_text(MANIFEST, encoding="utf-8")

        result = runner.invoke(app, [command])

        assert result.exit_code == 1
        assert "ERROR: FileNotFoundError" in result.output


def test_cli_apply_reports_invalid_translated_snapshot() -> None:
    with runner.isolated_filesystem() as tmp:
        root = Path(tmp)
        _write_project(root)
        (root / "translated-snapshot.json").write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["apply"])

        assert result.exit_code == 1
        assert "ERROR: Invalid snapshot JSON" in result.output


def test_cli_sources_writes_bilingual_reference() -> None:
    with runner.isolated_filesystem() as tmp:
        root = Path(tmp)
        _write_project(root)

        result = runner.invoke(app, ["sources"])

        assert result.exit_code == 0, result.output
        assert "wrote: bilingual-reference.json" in result.output
        payload = json.loads((root / "bilingual-reference.json").read_text(encoding="utf-8"))
        assert payload["plans"] == [{"title": {"en": "Essential", "ar": "old"}}]
        assert payload["blogPosts"] == {"intro": {"en": "Hello", "ar": "قديم"}}
