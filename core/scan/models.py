"""Data models for located spans, pattern matches and delimited blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from core.text.escaping import unescape_literal


@dataclass(frozen=True)
class LiteralSpan:
    """Body span of one string literal; ``start``/``end`` exclude the quotes."""

    start: int
    end: int
    quote: str
    raw: str

    @property
    def value(self) -> str:
        return unescape_literal(self.raw)


@dataclass(frozen=True)
class FieldMatch:
    """One occurrence of a localized-field micro-pattern."""

    start: int
    end: int
    primary: LiteralSpan
    secondary: LiteralSpan
    key: LiteralSpan | None = None


@dataclass(frozen=True)
class BlockSpan:
    """Body of a bracketed block located by anchors and its matched closing line."""

    opener_start: int
    body_start: int
    body_end: int
    indent: str
    closer: str


@dataclass(frozen=True)
class RecordField:
    """One ``name: value`` member of a single-line record object."""

    name: str
    raw: str
    literal: LiteralSpan | None = None


ItemKind = Literal["entry", "record", "literal", "keyed_record"]


@dataclass(frozen=True)
class BlockItem:
    """One parsed item of a block body."""

    start: int
    end: int
    indent: str
    has_comma: bool
    key_raw: str | None = None
    key: str | None = None
    literal: LiteralSpan | None = None
    fields: tuple[RecordField, ...] = ()


@dataclass
class ParsedBlock:
    """Block items in document order plus the text between them."""

    block: BlockSpan
    kind: ItemKind
    items: list[BlockItem] = field(default_factory=list)
    gaps: list[str] = field(default_factory=list)
