"""Pattern locator for localized-field micro-patterns.

Only a closed family of textual shapes is recognised:

- ``PairPattern``: ``label: { en: '...', ar: '...' }``
- ``KeyedPairPattern``: ``to: '/x', label: { en: '...', ar: '...' }``
- ``TernaryPattern``: ``language === 'ar' ? '...' : '...'``

Literals may use single or double quotes and may not span lines. The
extractor and the patch engine both count occurrences through this module, so
their ordinal conventions cannot drift apart.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from functools import cached_property

from core.scan.models import FieldMatch, LiteralSpan

_LITERAL_BODY = r"'(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\""
_NOT_IDENT_BEFORE = r"(?<![\w$])"


def literal_group(name: str) -> str:
    """Regex fragment capturing one quoted literal in group ``name``."""

    return f"(?P<{name}>{_LITERAL_BODY})"


def literal_span(match: re.Match[str], group: str) -> LiteralSpan:
    """Build a ``LiteralSpan`` from a captured quoted literal."""

    start, end = match.span(group)
    text = match.group(group)
    return LiteralSpan(start=start + 1, end=end - 1, quote=text[0], raw=text[1:-1])


def field_label(name: str) -> str:
    """Regex fragment for an object key written bare or quoted."""

    escaped = re.escape(name)
    return rf"{_NOT_IDENT_BEFORE}(?:{escaped}|'{escaped}'|\"{escaped}\")"


def _locale_pair(primary_locale: str, secondary_locale: str) -> str:
    return (
        r"\{\s*"
        rf"{field_label(primary_locale)}\s*:\s*{literal_group('primary')}\s*,\s*"
        rf"{field_label(secondary_locale)}\s*:\s*{literal_group('secondary')}\s*,?\s*"
        r"\}"
    )


@dataclass(frozen=True)
class PairPattern:
    """A labelled primary/secondary literal pair."""

    label: str
    primary_locale: str = "en"
    secondary_locale: str = "ar"
    followed_by: str | None = None

    @cached_property
    def regex(self) -> re.Pattern[str]:
        source = (
            rf"{field_label(self.label)}\s*:\s*"
            f"{_locale_pair(self.primary_locale, self.secondary_locale)}"
        )
        if self.followed_by:
            source += f"(?={self.followed_by})"
        return re.compile(source)


@dataclass(frozen=True)
class KeyedPairPattern:
    """A literal key field directly followed by a labelled locale pair."""

    key_field: str
    label: str
    primary_locale: str = "en"
    secondary_locale: str = "ar"

    @cached_property
    def regex(self) -> re.Pattern[str]:
        return re.compile(
            rf"{field_label(self.key_field)}\s*:\s*{literal_group('key')}\s*,\s*"
            rf"{field_label(self.label)}\s*:\s*"
            f"{_locale_pair(self.primary_locale, self.secondary_locale)}"
        )


@dataclass(frozen=True)
class TernaryPattern:
    """An inline ``condition ? secondary : primary`` literal choice."""

    condition: str = "language === 'ar'"

    @cached_property
    def regex(self) -> re.Pattern[str]:
        return re.compile(
            rf"{re.escape(self.condition)}\s*\?\s*{literal_group('secondary')}"
            rf"\s*:\s*{literal_group('primary')}"
        )


LocalizedPattern = PairPattern | KeyedPairPattern | TernaryPattern


def iter_occurrences(
    text: str,
    pattern: LocalizedPattern,
    start: int = 0,
    end: int | None = None,
) -> Iterator[FieldMatch]:
    """Yield every occurrence of ``pattern`` in ``text[start:end]`` in document order."""

    stop = len(text) if end is None else end
    for match in pattern.regex.finditer(text, start, stop):
        key = literal_span(match, "key") if "key" in match.groupdict() else None
        yield FieldMatch(
            start=match.start(),
            end=match.end(),
            primary=literal_span(match, "primary"),
            secondary=literal_span(match, "secondary"),
            key=key,
        )


def find_occurrence(
    text: str,
    pattern: LocalizedPattern,
    k: int,
    start: int = 0,
    end: int | None = None,
) -> FieldMatch | None:
    """Return the k-th (0-indexed) occurrence of ``pattern`` or None."""

    if k < 0:
        raise ValueError(f"Occurrence index must be non-negative: {k}")

    for index, occurrence in enumerate(iter_occurrences(text, pattern, start, end)):
        if index == k:
            return occurrence
    return None


def count_occurrences(
    text: str,
    pattern: LocalizedPattern,
    start: int = 0,
    end: int | None = None,
) -> int:
    return sum(1 for _ in iter_occurrences(text, pattern, start, end))


def resolve_region(
    text: str,
    region_start: str | None,
    region_end: str | None,
) -> tuple[int, int] | None:
    """Resolve a literal start/end anchor pair into a search window.

    The end anchor is searched after the start anchor. A missing anchor means
    the region cannot be located.
    """

    start = 0
    if region_start is not None:
        position = text.find(region_start)
        if position < 0:
            return None
        start = position + len(region_start)

    end = len(text)
    if region_end is not None:
        position = text.find(region_end, start)
        if position < 0:
            return None
        end = position

    return start, end
