"""Span replacement applied right-to-left against one text snapshot."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class TextEdit:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str


def apply_edits(text: str, edits: Iterable[TextEdit]) -> str:
    """Apply edits located against ``text``; every other byte is kept.

    Raises:
        ValueError: if two edits overlap or a span falls outside ``text``.
    """

    ordered = sorted(edits, key=lambda edit: (edit.start, edit.end))
    if not ordered:
        return text

    previous_end = 0
    for edit in ordered:
        if edit.start < previous_end or edit.start > edit.end or edit.end > len(text):
            raise ValueError(f"Invalid or overlapping edit span: {edit.start}..{edit.end}")
        previous_end = edit.end

    result = text
    for edit in reversed(ordered):
        result = result[: edit.start] + edit.replacement + result[edit.end :]
    return result
