"""Typer CLI entrypoint for bisync."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from apps.cli.io import ProjectPaths, build_project_paths, display_path
from apps.cli.summary import render_apply_summary, render_export_summary
from core.extract.extractor import build_bilingual_reference, extract_snapshot
from core.manifest.loader import find_manifest, load_manifest
from core.manifest.models import Manifest
from core.patch.engine import apply_snapshot
from core.snapshot.store import (
    read_reference,
    read_snapshot,
    write_json_document,
    write_snapshot,
)
from core.utils.errors import ManifestError, SnapshotError

app = typer.Typer(help="Bilingual content sync CLI", rich_markup_mode=None)
logger = logging.getLogger("bisync.cli")

LOG_FORMAT = "%(levelname)s %(name)s %(message)s"


@app.callback()
def cli_callback() -> None:
    """Configure logging once for every command."""

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


@app.command("export")
def export_command() -> None:
    """Extract primary-locale text into the content snapshot."""

    root = Path.cwd()
    with _exit_on_error():
        manifest, paths = _load_project(root)
        reference = read_reference(paths.reference)
        result = extract_snapshot(manifest, root, reference=reference)
        write_snapshot(paths.snapshot, result.snapshot)

    typer.echo(render_export_summary(result, target=display_path(paths.snapshot, root)))


@app.command("apply")
def apply_command() -> None:
    """Write the translated snapshot back into the artifacts."""

    root = Path.cwd()
    with _exit_on_error():
        manifest, paths = _load_project(root)
        snapshot = read_snapshot(paths.translated)
        reference = read_reference(paths.reference)
        report = apply_snapshot(manifest, root, snapshot, reference=reference)

    typer.echo(render_apply_summary(report))
    if report.has_aborted:
        typer.echo("ERROR: some artifacts were left unmodified after a scan failure")
        raise typer.Exit(code=1)


@app.command("sources")
def sources_command() -> None:
    """Write the bilingual reference document pairing both locales."""

    root = Path.cwd()
    with _exit_on_error():
        manifest, paths = _load_project(root)
        reference = read_reference(paths.reference)
        payload = build_bilingual_reference(manifest, root, reference)
        write_json_document(paths.reference, payload)

    categories = sum(1 for key in payload if not key.startswith("_"))
    typer.echo(f"categories: {categories}")
    typer.echo(f"wrote: {display_path(paths.reference, root)}")


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Report project and I/O failures as ``ERROR: ...`` and exit 1."""

    try:
        yield
    except (ManifestError, SnapshotError) as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=1) from exc


def _load_project(root: Path) -> tuple[Manifest, ProjectPaths]:
    manifest_path = find_manifest(root)
    manifest = load_manifest(manifest_path)
    logger.debug("manifest loaded from %s", manifest_path)
    return manifest, build_project_paths(root, manifest_path, manifest)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
