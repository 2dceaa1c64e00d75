"""Coarse structural locator and item parser for bracketed blocks.

A block is found by searching an ordered list of literal anchors, then an
opener such as ``ar: {`` or ``features: [``. A block closed on the opener's own
line ends at its matching bracket. Otherwise its end is the first following
line that starts, at the opener line's indentation, with the closing bracket.
Items are recognised by fixed per-kind shapes and anything between items
(comments, blank lines) is kept as an opaque gap.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace

from core.scan.locator import literal_group, literal_span
from core.scan.models import BlockItem, BlockSpan, ItemKind, ParsedBlock, RecordField
from core.scan.scanner import find_block_end
from core.text.escaping import unescape_literal

_CLOSERS = {"{": "}", "[": "]"}
_QUOTES = "'\"`"

_COMMA_TAIL = r"(?P<comma>[ \t]*,)?"
_KEY = r"(?P<key>'(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\"|[A-Za-z_$][\w$.-]*)"
_OBJECT = r"\{(?P<body>(?:'(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\"|[^{}'\"])*)\}"

_ITEM_PATTERNS: dict[ItemKind, re.Pattern[str]] = {
    "entry": re.compile(rf"{_KEY}\s*:\s*{literal_group('value')}{_COMMA_TAIL}"),
    "record": re.compile(_OBJECT + _COMMA_TAIL),
    "literal": re.compile(rf"{literal_group('value')}{_COMMA_TAIL}"),
    "keyed_record": re.compile(rf"{_KEY}\s*:\s*{_OBJECT}{_COMMA_TAIL}"),
}

_RECORD_FIELD_RE = re.compile(
    rf"(?P<name>[A-Za-z_$][\w$]*)\s*:\s*"
    rf"(?:{literal_group('value')}|(?P<raw>[^,'\"]+?))\s*(?=,|$)"
)
_GAP_RE = re.compile(r"(?:\s+|//[^\n]*|/\*.*?\*/)+", re.DOTALL)


def compile_opener(opener: str) -> re.Pattern[str]:
    """Compile an opener literal, letting any run of spaces match any whitespace."""

    stripped = opener.strip()
    if not stripped or stripped[-1] not in _CLOSERS:
        raise ValueError(f"Block opener must end with '{{' or '[': {opener!r}")
    parts = [re.escape(part) for part in stripped.split()]
    return re.compile(r"(?<![\w$])" + r"\s*".join(parts))


def find_closing_bracket(
    text: str,
    start: int,
    stop: int | None = None,
    *,
    single_line: bool = False,
) -> int | None:
    """Offset of the first closing bracket left unmatched after ``start``.

    Quoted literals and comments are skipped. With ``single_line`` the scan
    gives up at the first newline outside a literal.
    """

    limit = len(text) if stop is None else stop
    depth = 0
    index = start
    while index < limit:
        char = text[index]
        if char == "\n" and single_line:
            return None
        if char in _QUOTES:
            end = find_block_end(text, char, index + 1)
            if end is None or end >= limit:
                return None
            if single_line and "\n" in text[index:end]:
                return None
            index = end + 1
            continue
        if text.startswith("//", index):
            if single_line:
                return None
            newline = text.find("\n", index, limit)
            index = limit if newline < 0 else newline
            continue
        if text.startswith("/*", index):
            close = text.find("*/", index + 2, limit)
            if close < 0 or (single_line and "\n" in text[index:close]):
                return None
            index = close + 2
            continue
        if char in _CLOSERS:
            depth += 1
        elif char in _CLOSERS.values():
            if depth == 0:
                return index
            depth -= 1
        index += 1
    return None


def locate_block(
    text: str,
    anchors: Sequence[str],
    opener: str,
    start: int = 0,
    end: int | None = None,
) -> BlockSpan | None:
    """Locate a block body after ``anchors`` (searched in order) and ``opener``."""

    stop = len(text) if end is None else end
    cursor = start
    for anchor in anchors:
        position = text.find(anchor, cursor, stop)
        if position < 0:
            return None
        cursor = position + len(anchor)

    match = compile_opener(opener).search(text, cursor, stop)
    if match is None:
        return None

    line_start = text.rfind("\n", 0, match.start()) + 1
    line = text[line_start : match.start()]
    indent = line[: len(line) - len(line.lstrip())]
    open_char = text[match.end() - 1]
    closer = _CLOSERS[open_char]

    body_end = find_closing_bracket(text, match.end(), stop, single_line=True)
    if body_end is None:
        closing_line = re.compile(rf"^{re.escape(indent)}{re.escape(closer)}", re.MULTILINE)
        close = closing_line.search(text, match.end(), stop)
        if close is None:
            return None
        body_end = close.end() - 1
    elif text[body_end] != closer:
        return None

    return BlockSpan(
        opener_start=match.start(),
        body_start=match.end(),
        body_end=body_end,
        indent=indent,
        closer=closer,
    )


def parse_block_items(text: str, block: BlockSpan, kind: ItemKind) -> ParsedBlock | None:
    """Split a block body into items and gaps.

    Returns None when the body holds text that is neither a recognised item
    nor whitespace/comments, which means the block no longer has the expected
    shape.
    """

    pattern = _ITEM_PATTERNS[kind]
    parsed = ParsedBlock(block=block, kind=kind)
    cursor = block.body_start

    while True:
        gap = _GAP_RE.match(text, cursor, block.body_end)
        gap_end = gap.end() if gap else cursor
        parsed.gaps.append(text[cursor:gap_end])
        cursor = gap_end
        if cursor >= block.body_end:
            break

        match = pattern.match(text, cursor, block.body_end)
        if match is None:
            return None
        parsed.items.append(_build_item(text, match, kind))
        cursor = match.end()

    return parsed


def _build_item(text: str, match: re.Match[str], kind: ItemKind) -> BlockItem:
    line_start = text.rfind("\n", 0, match.start()) + 1
    prefix = text[line_start : match.start()]
    indent = prefix if not prefix.strip() else prefix[: len(prefix) - len(prefix.lstrip())]
    has_comma = match.group("comma") is not None

    key_raw = match.group("key") if kind in ("entry", "keyed_record") else None
    key = None
    if key_raw is not None:
        key = unescape_literal(key_raw[1:-1]) if key_raw[0] in "'\"" else key_raw

    if kind == "entry":
        return BlockItem(
            start=match.start(),
            end=match.end(),
            indent=indent,
            has_comma=has_comma,
            key_raw=key_raw,
            key=key,
            literal=literal_span(match, "value"),
        )

    if kind in ("record", "keyed_record"):
        body_start = match.start("body")
        fields = tuple(_parse_record_fields(match.group("body"), body_start))
        return BlockItem(
            start=match.start(),
            end=match.end(),
            indent=indent,
            has_comma=has_comma,
            key_raw=key_raw,
            key=key,
            fields=fields,
        )

    return BlockItem(
        start=match.start(),
        end=match.end(),
        indent=indent,
        has_comma=has_comma,
        literal=literal_span(match, "value"),
    )


def _parse_record_fields(body: str, offset: int) -> list[RecordField]:
    fields: list[RecordField] = []
    shift = offset + len(body) - len(body.lstrip())

    for match in _RECORD_FIELD_RE.finditer(body.strip()):
        name = match.group("name")
        if match.group("value") is None:
            fields.append(RecordField(name=name, raw=match.group("raw").strip()))
            continue

        span = literal_span(match, "value")
        literal = replace(span, start=span.start + shift, end=span.end + shift)
        fields.append(RecordField(name=name, raw=match.group("value"), literal=literal))
    return fields
