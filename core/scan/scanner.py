"""Escape-aware scanner for delimited text blocks."""

from __future__ import annotations

from core.utils.errors import UnterminatedBlockError

ESCAPE_CHAR = "\\"


def find_block_end(
    text: str,
    delimiter: str,
    start: int,
    escape: str = ESCAPE_CHAR,
) -> int | None:
    """Return the offset of the first unescaped ``delimiter`` at or after ``start``.

    A delimiter preceded by an odd run of ``escape`` characters is part of the
    block body. The run is only counted back to ``start`` so an escape that
    belongs to the opening delimiter's context never leaks into the body.

    Returns:
        Offset of the terminating delimiter, or None when the text ends first.
    """

    if len(delimiter) != 1:
        raise ValueError(f"Delimiter must be a single character: {delimiter!r}")

    position = text.find(delimiter, start)
    while position >= 0:
        run = 0
        cursor = position - 1
        while cursor >= start and text[cursor] == escape:
            run += 1
            cursor -= 1
        if run % 2 == 0:
            return position
        position = text.find(delimiter, position + 1)
    return None


def read_delimited(text: str, start: int, delimiter: str) -> tuple[int, int]:
    """Return the ``(start, end)`` body span of a block opened just before ``start``.

    Raises:
        UnterminatedBlockError: if no unescaped closing delimiter exists.
    """

    end = find_block_end(text, delimiter, start)
    if end is None:
        raise UnterminatedBlockError(
            f"Unterminated {delimiter} block starting at offset {start}",
            delimiter=delimiter,
            start=start,
        )
    return start, end
