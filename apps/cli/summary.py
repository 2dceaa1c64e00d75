"""Human-readable export/apply summaries for CLI output."""

from __future__ import annotations

from collections import Counter

from core.extract.models import ExtractionResult
from core.patch.models import ApplyReport

_STATUS_ORDER = ("updated", "unchanged", "skipped", "not_found", "shifted", "invalid")


def render_export_summary(result: ExtractionResult, *, target: str) -> str:
    """Render one line per category plus the written snapshot path."""

    lines: list[str] = []
    width = max((len(entry.name) for entry in result.entries), default=0)
    for entry in result.entries:
        suffix = "" if entry.source == "artifact" else f" ({entry.source})"
        lines.append(f"  {entry.name.ljust(width)}  {entry.count}{suffix}")

    sources: Counter[str] = Counter(entry.source for entry in result.entries)
    fallback_text = ", ".join(
        f"{source}={sources[source]}"
        for source in ("reference", "defaults", "empty")
        if sources[source]
    )
    lines.append(f"categories: {len(result.entries)}")
    lines.append(f"fallbacks: {fallback_text or 'none'}")
    lines.append(f"wrote: {target}")
    return "\n".join(lines)


def render_apply_summary(report: ApplyReport) -> str:
    """Render one line per updated or aborted artifact and a status tally."""

    lines: list[str] = []
    for artifact in report.artifacts:
        if artifact.aborted:
            lines.append(f"aborted: {artifact.path} ({artifact.error})")
        elif artifact.changed:
            lines.append(f"updated: {artifact.path}")

    if not report.updated_paths and not report.has_aborted:
        lines.append("no artifacts changed")

    tally = ", ".join(
        f"{status}={report.count(status)}" for status in _STATUS_ORDER if report.count(status)
    )
    lines.append(f"entries: {tally or 'none'}")

    shifted = sorted(
        {
            entry.category
            for artifact in report.artifacts
            for entry in artifact.entries
            if entry.status == "shifted"
        }
    )
    if shifted:
        lines.append(f"refused (occurrence count changed): {', '.join(shifted)}")
    return "\n".join(lines)
