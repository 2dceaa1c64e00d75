"""Regenerate whole block bodies from parsed items.

Existing items keep their position, indentation and trailing comma; the gaps
between them (blank lines, comments) are copied verbatim. New items are
appended after the last existing item, one per line when the block is
multi-line.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from core.patch.edits import TextEdit, apply_edits
from core.scan.models import BlockItem, LiteralSpan, ParsedBlock
from core.text.escaping import escape_literal

DEFAULT_QUOTE = "'"
DEFAULT_INDENT_STEP = "  "

_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")


def rewrite_item(text: str, item: BlockItem, replacements: dict[LiteralSpan, str]) -> str:
    """Return the item's source with each literal body replaced by new plain text."""

    edits = [
        TextEdit(
            start=span.start - item.start,
            end=span.end - item.start,
            replacement=escape_literal(value, span.quote),
        )
        for span, value in replacements.items()
    ]
    return apply_edits(text[item.start : item.end], edits)


def quote_for(parsed: ParsedBlock) -> str:
    """Quote character of the last literal in the block, or the default."""

    for item in reversed(parsed.items):
        if item.literal is not None:
            return item.literal.quote
        for field in reversed(item.fields):
            if field.literal is not None:
                return field.literal.quote
    return DEFAULT_QUOTE


def render_literal(value: str, quote: str) -> str:
    return f"{quote}{escape_literal(value, quote)}{quote}"


def item_indent(parsed: ParsedBlock) -> str:
    """Indentation for a new item: the last item's, or one step inside the block."""

    if parsed.items and parsed.items[-1].indent:
        return parsed.items[-1].indent
    return parsed.block.indent + DEFAULT_INDENT_STEP


def render_key(key: str, parsed: ParsedBlock) -> str:
    """Render an object key the way the block's last key is written."""

    key_raw = parsed.items[-1].key_raw if parsed.items else None
    bare_keys = key_raw is not None and key_raw[0] not in "'\""
    if bare_keys and _IDENTIFIER_RE.fullmatch(key):
        return key
    key_quote = key_raw[0] if key_raw and key_raw[0] in "'\"" else quote_for(parsed)
    return render_literal(key, key_quote)


def render_entry(key: str, value: str, parsed: ParsedBlock) -> str:
    return f"{render_key(key, parsed)}: {render_literal(value, quote_for(parsed))}"


def render_record(values: dict[str, str], field_order: Sequence[str], parsed: ParsedBlock) -> str:
    quote = quote_for(parsed)
    members = ", ".join(f"{name}: {render_literal(values[name], quote)}" for name in field_order)
    return f"{{ {members} }}"


def render_keyed_record(
    text: str,
    key: str,
    values: dict[str, str],
    field_order: Sequence[str],
    parsed: ParsedBlock,
) -> str:
    """Render ``key: { ... }``, one field per line when the last record spans lines."""

    quote = quote_for(parsed)
    members = [f"{name}: {render_literal(values[name], quote)}" for name in field_order]
    last = parsed.items[-1] if parsed.items else None
    if last is None or "\n" not in text[last.start : last.end]:
        return f"{render_key(key, parsed)}: {{ {', '.join(members)} }}"

    indent = item_indent(parsed)
    inner = indent + DEFAULT_INDENT_STEP
    lines = "".join(f"\n{inner}{member}," for member in members)
    return f"{render_key(key, parsed)}: {{{lines}\n{indent}}}"


def render_block_body(
    parsed: ParsedBlock,
    items: Sequence[str],
    appended: Sequence[str] = (),
) -> str:
    """Assemble a block body from regenerated item texts.

    ``items`` holds the new source of every existing item, in order and
    including its own trailing comma. ``appended`` holds bare item sources
    to add after them.
    """

    if len(items) != len(parsed.items):
        raise ValueError("Every existing block item needs a regenerated text")

    gaps = parsed.gaps
    if not appended:
        return gaps[0] + "".join(item + gap for item, gap in zip(items, gaps[1:]))

    existing = list(items)
    if parsed.items:
        last = parsed.items[-1]
        if not last.has_comma:
            existing[-1] += ","
        prefix = gaps[0] + "".join(item + gap for item, gap in zip(existing[:-1], gaps[1:]))
        prefix += existing[-1]
        trailing = gaps[-1]
        trailing_comma = last.has_comma
        indent = item_indent(parsed)
    else:
        prefix = ""
        trailing = gaps[0]
        trailing_comma = "\n" in trailing
        indent = parsed.block.indent + DEFAULT_INDENT_STEP

    new_items = [f"{item}," for item in appended[:-1]]
    new_items.append(appended[-1] + ("," if trailing_comma else ""))

    if "\n" not in trailing:
        if not parsed.items:
            return trailing + ", ".join(appended)
        return prefix + "".join(f" {item}" for item in new_items) + trailing

    cut = trailing.find("\n") if parsed.items else trailing.rfind("\n")
    insertion = "".join(f"\n{indent}{item}" for item in new_items)
    return prefix + trailing[:cut] + insertion + trailing[cut:]
