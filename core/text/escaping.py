"""Escaping rules for string literals embedded in artifact source text.

Two conventions are supported:

- quoted literals (``'...'`` or ``"..."``): backslash, the quote character and
  line breaks are escaped;
- template literals (backtick bodies): backslash, the backtick and the
  interpolation sigil ``${`` are escaped, line breaks stay literal.

``unescape_literal`` reverses both conventions.
"""

from __future__ import annotations

TEMPLATE_DELIMITER = "`"
INTERPOLATION_SIGIL = "${"

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


def escape_literal(value: str, quote: str = "'") -> str:
    """Escape ``value`` for the body of a ``quote``-delimited literal."""

    if quote not in {"'", '"'}:
        raise ValueError(f"Unsupported quote character: {quote!r}")

    return (
        value.replace("\\", "\\\\")
        .replace(quote, "\\" + quote)
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )


def escape_template(value: str) -> str:
    """Escape ``value`` for the body of a backtick template literal."""

    return (
        value.replace("\\", "\\\\")
        .replace(TEMPLATE_DELIMITER, "\\" + TEMPLATE_DELIMITER)
        .replace(INTERPOLATION_SIGIL, "\\" + INTERPOLATION_SIGIL)
    )


def escape_for(value: str, delimiter: str) -> str:
    """Escape ``value`` for any supported literal delimiter."""

    if delimiter == TEMPLATE_DELIMITER:
        return escape_template(value)
    return escape_literal(value, delimiter)


def unescape_literal(body: str) -> str:
    """Decode escape sequences of a literal body into plain text.

    Unknown escapes decode to the escaped character itself, so ``\\'``,
    ``\\"``, ``\\``` and ``\\$`` all collapse to their bare character.
    """

    if "\\" not in body:
        return body

    chunks: list[str] = []
    index = 0
    length = len(body)

    while index < length:
        char = body[index]
        if char != "\\" or index + 1 >= length:
            chunks.append(char)
            index += 1
            continue

        nxt = body[index + 1]
        if nxt in _SIMPLE_ESCAPES:
            chunks.append(_SIMPLE_ESCAPES[nxt])
            index += 2
        elif nxt == "\n":
            # line continuation
            index += 2
        elif nxt == "u":
            decoded, consumed = _decode_unicode_escape(body, index)
            chunks.append(decoded)
            index += consumed
        elif nxt == "x" and _is_hex(body[index + 2 : index + 4], 2):
            chunks.append(chr(int(body[index + 2 : index + 4], 16)))
            index += 4
        else:
            chunks.append(nxt)
            index += 2

    return "".join(chunks)


def _decode_unicode_escape(body: str, index: int) -> tuple[str, int]:
    if body[index + 2 : index + 3] == "{":
        close = body.find("}", index + 3)
        digits = body[index + 3 : close] if close >= 0 else ""
        if digits and _is_hex(digits, len(digits)):
            return chr(int(digits, 16)), close - index + 1
        return "u", 2

    digits = body[index + 2 : index + 6]
    if _is_hex(digits, 4):
        return chr(int(digits, 16)), 6
    return "u", 2


def _is_hex(text: str, size: int) -> bool:
    if len(text) != size:
        return False
    return all(char in "0123456789abcdefABCDEF" for char in text)
