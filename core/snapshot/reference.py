"""Read single-locale values out of the bilingual reference document.

The reference document stores flat maps as ``{key: {en: ..., ar: ...}}``,
record lists as ``[{field: {en: ..., ar: ...}}]`` and keyed records as
``{key: {field: {en: ..., ar: ...}}}``. A bare string leaf is
treated as primary-locale text.
"""

from __future__ import annotations

from typing import Any

from core.manifest.models import AnyCategory


def reference_values(
    reference: dict[str, Any] | None,
    category: AnyCategory,
    locale: str,
    primary_locale: str,
) -> Any:
    """Return ``category``'s ``locale`` values, or None when the document lacks it."""

    if not reference:
        return None
    raw = reference.get(category.name)

    if category.shape == "map":
        if not isinstance(raw, dict):
            return None
        return {key: _leaf(value, locale, primary_locale) for key, value in raw.items()}

    if category.shape == "keyed_records":
        if not isinstance(raw, dict):
            return None
        return {key: _record(value, locale, primary_locale) for key, value in raw.items()}

    if not isinstance(raw, list):
        return None
    return [_record(record, locale, primary_locale) for record in raw]


def _record(record: Any, locale: str, primary_locale: str) -> dict[str, str | None] | None:
    if not isinstance(record, dict):
        return None
    return {name: _leaf(value, locale, primary_locale) for name, value in record.items()}


def _leaf(value: Any, locale: str, primary_locale: str) -> str | None:
    if isinstance(value, dict):
        picked = value.get(locale)
        return picked if isinstance(picked, str) else None
    if isinstance(value, str) and locale == primary_locale:
        return value
    return None
