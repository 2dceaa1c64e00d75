from __future__ import annotations

import pytest

from core.scan.scanner import find_block_end, read_delimited
from core.utils.errors import UnterminatedBlockError


def test_find_block_end_returns_first_plain_delimiter() -> None:
    assert find_block_end("abc`def`", "`", 0) == 3


def test_find_block_end_skips_escaped_delimiter() -> None:
    text = "x \\` y`"

    assert find_block_end(text, "`", 0) == 6


def test_find_block_end_treats_even_escape_run_as_terminator() -> None:
    text = "a\\\\`b`"

    assert find_block_end(text, "`", 0) == 3


def test_find_block_end_odd_run_after_even_run_is_escaped() -> None:
    text = "a\\\\\\`b`"

    assert find_block_end(text, "`", 0) == 6


def test_find_block_end_does_not_count_escapes_before_start() -> None:
    text = "\\`x`"

    assert find_block_end(text, "`", 1) == 1


def test_find_block_end_returns_none_when_unterminated() -> None:
    assert find_block_end("abc \\`", "`", 0) is None


def test_find_block_end_rejects_multi_character_delimiter() -> None:
    with pytest.raises(ValueError, match="single character"):
        find_block_end("abc", "``", 0)


def test_read_delimited_returns_body_span() -> None:
    text = "content: `body \\` text`, next"
    start = text.index("`") + 1

    body_start, body_end = read_delimited(text, start, "`")

    assert text[body_start:body_end] == "body \\` text"


def test_read_delimited_raises_with_context() -> None:
    text = "content: `never closed"
    start = text.index("`") + 1

    with pytest.raises(UnterminatedBlockError) as exc_info:
        read_delimited(text, start, "`")

    assert exc_info.value.delimiter == "`"
    assert exc_info.value.start == start
