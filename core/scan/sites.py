"""Resolve manifest categories to their localized-field sites in artifact text.

The extractor and the patch engine both locate and count sites through these
helpers, so an occurrence that one side sees is exactly the occurrence the
other side patches.
"""

from __future__ import annotations

import re

from core.manifest.models import (
    AnyCategory,
    BlockCategory,
    DocumentCategory,
    KeyedPairCategory,
    ListBlockCategory,
    Manifest,
    PairCategory,
    PairField,
    RecordBlockCategory,
    ScalarFieldsCategory,
    TernaryCategory,
)
from core.scan.blocks import find_closing_bracket, locate_block, parse_block_items
from core.scan.locator import (
    KeyedPairPattern,
    PairPattern,
    TernaryPattern,
    count_occurrences,
    field_label,
    literal_group,
    literal_span,
    resolve_region,
)
from core.scan.models import BlockSpan, ItemKind, LiteralSpan, ParsedBlock
from core.scan.scanner import read_delimited
from core.text.escaping import TEMPLATE_DELIMITER

LOCALE_TOKEN = "{locale}"

_BLOCK_ITEM_KINDS: dict[str, ItemKind] = {
    "dict_block": "entry",
    "record_block": "record",
    "list_block": "literal",
    "keyed_record_block": "keyed_record",
}
_TEMPLATE_OPEN_RE = re.compile(r"(?<![\w$])(?P<locale>[A-Za-z_][\w-]*)\s*:\s*`")


def substitute_locale(template: str, locale: str) -> str:
    return template.replace(LOCALE_TOKEN, locale)


def category_window(text: str, category: AnyCategory) -> tuple[int, int] | None:
    """Search window for a category, or None when its region anchors are gone."""

    if category.region is None:
        return 0, len(text)
    return resolve_region(text, category.region.start, category.region.end)


def pair_pattern(field: PairField, manifest: Manifest) -> PairPattern:
    return PairPattern(
        label=field.artifact_label,
        primary_locale=manifest.primary_locale,
        secondary_locale=manifest.secondary_locale,
        followed_by=field.followed_by,
    )


def keyed_pair_pattern(category: KeyedPairCategory, manifest: Manifest) -> KeyedPairPattern:
    return KeyedPairPattern(
        key_field=category.key_field,
        label=category.label,
        primary_locale=manifest.primary_locale,
        secondary_locale=manifest.secondary_locale,
    )


def ternary_pattern(category: TernaryCategory, manifest: Manifest) -> TernaryPattern:
    condition = substitute_locale(category.condition, manifest.secondary_locale)
    return TernaryPattern(condition=condition)


def locate_category_block(text: str, category: BlockCategory, locale: str) -> BlockSpan | None:
    window = category_window(text, category)
    if window is None:
        return None

    anchors = [substitute_locale(anchor, locale) for anchor in category.anchors]
    opener = substitute_locale(category.opener_for(locale), locale)
    return locate_block(text, anchors, opener, *window)


def parse_category_block(text: str, category: BlockCategory, locale: str) -> ParsedBlock | None:
    """Locate and parse the ``locale`` block of a whole-block category."""

    block = locate_category_block(text, category, locale)
    if block is None:
        return None
    return parse_block_items(text, block, _BLOCK_ITEM_KINDS[category.kind])


def find_scalar_fields(
    text: str,
    category: ScalarFieldsCategory,
    locale: str,
) -> dict[str, LiteralSpan] | None:
    """Map each field name to its literal inside the object holding the last anchor.

    The search runs from the end of the last anchor to the object's closing
    brace; the first labelled literal wins. Returns None when an anchor is
    missing.
    """

    window = category_window(text, category)
    if window is None:
        return None

    cursor, stop = window
    for anchor in category.anchors:
        needle = substitute_locale(anchor, locale)
        position = text.find(needle, cursor, stop)
        if position < 0:
            return None
        cursor = position + len(needle)

    scope_end = find_closing_bracket(text, cursor, stop)
    if scope_end is None:
        scope_end = stop

    spans: dict[str, LiteralSpan] = {}
    for field in category.fields:
        label = field_label(field.label_for(locale))
        match = re.compile(rf"{label}\s*:\s*{literal_group('value')}").search(
            text, cursor, scope_end
        )
        if match is not None:
            spans[field.name] = literal_span(match, "value")
    return spans


def find_document_bodies(
    text: str,
    category: DocumentCategory,
    locale: str,
) -> dict[str, tuple[int, int]] | None:
    """Map each document key to the body span of its ``locale`` template literal.

    Returns None when no key field occurs at all.

    Raises:
        UnterminatedBlockError: if a body has no unescaped closing backtick.
    """

    window = category_window(text, category)
    if window is None:
        return None

    key_re = re.compile(rf"{field_label(category.key_field)}\s*:\s*{literal_group('key')}")
    anchors = list(key_re.finditer(text, *window))
    if not anchors:
        return None

    bodies: dict[str, tuple[int, int]] = {}
    for index, anchor in enumerate(anchors):
        segment_end = anchors[index + 1].start() if index + 1 < len(anchors) else window[1]
        key = literal_span(anchor, "key").value
        span = _document_body(text, category.body_field, locale, anchor.end(), segment_end)
        if span is not None and key not in bodies:
            bodies[key] = span
    return bodies


def _document_body(
    text: str,
    body_field: str,
    locale: str,
    start: int,
    end: int,
) -> tuple[int, int] | None:
    field_re = re.compile(rf"{field_label(body_field)}\s*:\s*\{{")
    field_match = field_re.search(text, start, end)
    if field_match is None:
        return None

    cursor = field_match.end()
    while True:
        opening = _TEMPLATE_OPEN_RE.search(text, cursor, end)
        if opening is None:
            return None
        span = read_delimited(text, opening.end(), TEMPLATE_DELIMITER)
        if opening.group("locale") == locale:
            return span
        cursor = span[1] + 1


def count_ordinal_occurrences(
    text: str,
    category: AnyCategory,
    manifest: Manifest,
) -> dict[str, int]:
    """Occurrence counts keyed the way snapshot metadata records them."""

    if isinstance(category, PairCategory):
        window = category_window(text, category)
        counts: dict[str, int] = {}
        for field in category.fields:
            key = f"{category.name}.{field.name}"
            if window is None:
                counts[key] = 0
            else:
                counts[key] = count_occurrences(text, pair_pattern(field, manifest), *window)
        return counts

    if isinstance(category, (RecordBlockCategory, ListBlockCategory)):
        parsed = parse_category_block(text, category, manifest.primary_locale)
        return {category.name: 0 if parsed is None else len(parsed.items)}

    return {}
