"""Extractor: read localized text out of artifacts into a content snapshot.

Extraction is read-only and best-effort. A category whose sites cannot be
located falls back to the bilingual reference document, then to the
manifest's hand-maintained defaults (primary locale only), then to an empty
value. Only I/O errors abort a run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from core.extract.models import CategoryExport, CategorySource, ExtractionResult
from core.manifest.models import (
    AnyCategory,
    DictBlockCategory,
    DocumentCategory,
    KeyedPairCategory,
    KeyedRecordBlockCategory,
    ListBlockCategory,
    Manifest,
    PairCategory,
    RecordBlockCategory,
    ScalarFieldsCategory,
    TernaryCategory,
)
from core.scan.locator import iter_occurrences
from core.scan.models import FieldMatch
from core.scan.sites import (
    category_window,
    count_ordinal_occurrences,
    find_document_bodies,
    find_scalar_fields,
    keyed_pair_pattern,
    pair_pattern,
    parse_category_block,
    ternary_pattern,
)
from core.snapshot.models import META_KEY, ContentSnapshot, SnapshotMeta, utc_timestamp
from core.snapshot.reference import reference_values
from core.text.escaping import unescape_literal
from core.utils.atomic_io import read_text_exact
from core.utils.errors import UnterminatedBlockError
from core.utils.events import log_event

logger = logging.getLogger("bisync.extract")


def extract_snapshot(
    manifest: Manifest,
    root: Path,
    *,
    locale: str | None = None,
    reference: dict[str, Any] | None = None,
) -> ExtractionResult:
    """Build a content snapshot holding every category's ``locale`` values.

    ``locale`` defaults to the primary locale. Extracting the secondary
    locale yields the snapshot whose application leaves every artifact
    unchanged.
    """

    target = locale or manifest.primary_locale
    if target not in (manifest.primary_locale, manifest.secondary_locale):
        raise ValueError(f"Unknown locale for this manifest: {target}")

    categories: dict[str, Any] = {}
    occurrences: dict[str, int] = {}
    entries: list[CategoryExport] = []

    for artifact in manifest.artifacts:
        text = read_text_exact(root / artifact.path)
        for category in artifact.categories:
            value = _extract_from_artifact(text, category, manifest, target, artifact.path)
            if value:
                source: CategorySource = "artifact"
                occurrences.update(count_ordinal_occurrences(text, category, manifest))
            else:
                log_event(
                    logger,
                    logging.INFO,
                    "category_not_found",
                    category=category.name,
                    artifact=artifact.path,
                )
                value, source = _fallback(category, manifest, target, reference)

            categories[category.name] = value
            entries.append(_export_entry(category, artifact.path, source, value))

    for category in manifest.references:
        value, source = _fallback(category, manifest, target, reference)
        categories[category.name] = value
        entries.append(_export_entry(category, None, source, value))

    meta = SnapshotMeta(
        generated_at=utc_timestamp(),
        primary_locale=manifest.primary_locale,
        secondary_locale=manifest.secondary_locale,
        locale=target,
        occurrences=occurrences,
    )
    log_event(
        logger,
        logging.INFO,
        "export_done",
        locale=target,
        categories=len(entries),
        fallbacks=sum(1 for entry in entries if entry.source != "artifact"),
    )
    snapshot = ContentSnapshot(categories=categories, meta=meta)
    return ExtractionResult(snapshot=snapshot, entries=entries)


def build_bilingual_reference(
    manifest: Manifest,
    root: Path,
    reference: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Pair primary and secondary extractions into one bilingual document.

    Flat maps become ``{key: {primary: ..., secondary: ...}}``, record lists
    ``[{field: {primary: ..., secondary: ...}}]`` and keyed records
    ``{key: {field: {primary: ..., secondary: ...}}}``. Reference-only
    categories are carried through from ``reference``.
    """

    primary_locale = manifest.primary_locale
    secondary_locale = manifest.secondary_locale
    primary = extract_snapshot(manifest, root, locale=primary_locale, reference=reference)
    secondary = extract_snapshot(manifest, root, locale=secondary_locale, reference=reference)

    payload: dict[str, Any] = {
        META_KEY: {
            "generated_at": utc_timestamp(),
            "primary_locale": primary_locale,
            "secondary_locale": secondary_locale,
        }
    }
    for category in manifest.iter_categories():
        first = primary.snapshot.categories.get(category.name)
        second = secondary.snapshot.categories.get(category.name)
        if category.shape == "map":
            payload[category.name] = _pair_maps(first or {}, second or {}, manifest)
        elif category.shape == "keyed_records":
            payload[category.name] = _pair_keyed_records(first or {}, second or {}, manifest)
        else:
            payload[category.name] = _pair_records(first or [], second or [], manifest)
    return payload


def _extract_from_artifact(
    text: str,
    category: AnyCategory,
    manifest: Manifest,
    locale: str,
    artifact_path: str,
) -> Any:
    try:
        if isinstance(category, PairCategory):
            return _extract_pairs(text, category, manifest, locale)
        if isinstance(category, (KeyedPairCategory, TernaryCategory)):
            return _extract_keyed(text, category, manifest, locale)
        if isinstance(category, DocumentCategory):
            return _extract_documents(text, category, locale)
        if isinstance(category, ScalarFieldsCategory):
            return _extract_scalar_fields(text, category, locale)
        if isinstance(category, DictBlockCategory):
            return _extract_dict_block(text, category, locale)
        if isinstance(category, (RecordBlockCategory, ListBlockCategory)):
            return _extract_record_block(text, category, locale)
        if isinstance(category, KeyedRecordBlockCategory):
            return _extract_keyed_record_block(text, category, locale)
    except UnterminatedBlockError as exc:
        log_event(
            logger,
            logging.WARNING,
            "scan_failed",
            category=category.name,
            artifact=artifact_path,
            delimiter=exc.delimiter,
            offset=exc.start,
        )
    return None


def _pick(occurrence: FieldMatch, manifest: Manifest, locale: str) -> str:
    if locale == manifest.primary_locale:
        return occurrence.primary.value
    return occurrence.secondary.value


def _extract_pairs(
    text: str,
    category: PairCategory,
    manifest: Manifest,
    locale: str,
) -> list[dict[str, str | None]] | None:
    window = category_window(text, category)
    if window is None:
        return None

    columns: dict[str, list[str]] = {}
    for field in category.fields:
        pattern = pair_pattern(field, manifest)
        columns[field.name] = [
            _pick(occurrence, manifest, locale)
            for occurrence in iter_occurrences(text, pattern, *window)
        ]

    size = max(len(values) for values in columns.values())
    return [
        {name: values[index] if index < len(values) else None for name, values in columns.items()}
        for index in range(size)
    ]


def _extract_keyed(
    text: str,
    category: KeyedPairCategory | TernaryCategory,
    manifest: Manifest,
    locale: str,
) -> dict[str, str] | None:
    window = category_window(text, category)
    if window is None:
        return None

    if isinstance(category, KeyedPairCategory):
        pattern = keyed_pair_pattern(category, manifest)
    else:
        pattern = ternary_pattern(category, manifest)

    values: dict[str, str] = {}
    for occurrence in iter_occurrences(text, pattern, *window):
        key_span = occurrence.key or occurrence.primary
        values.setdefault(key_span.value, _pick(occurrence, manifest, locale))
    return values


def _extract_documents(text: str, category: DocumentCategory, locale: str) -> dict[str, str] | None:
    bodies = find_document_bodies(text, category, locale)
    if bodies is None:
        return None
    return {key: unescape_literal(text[start:end]) for key, (start, end) in bodies.items()}


def _extract_scalar_fields(
    text: str,
    category: ScalarFieldsCategory,
    locale: str,
) -> dict[str, str] | None:
    spans = find_scalar_fields(text, category, locale)
    if spans is None:
        return None
    return {name: span.value for name, span in spans.items()}


def _extract_dict_block(
    text: str,
    category: DictBlockCategory,
    locale: str,
) -> dict[str, str] | None:
    parsed = parse_category_block(text, category, locale)
    if parsed is None:
        return None

    values: dict[str, str] = {}
    for item in parsed.items:
        if item.key is not None and item.literal is not None:
            values.setdefault(item.key, item.literal.value)
    return values


def _extract_record_block(
    text: str,
    category: RecordBlockCategory | ListBlockCategory,
    locale: str,
) -> list[dict[str, str | None]] | None:
    parsed = parse_category_block(text, category, locale)
    if parsed is None:
        return None

    if isinstance(category, ListBlockCategory):
        return [
            {category.field: item.literal.value if item.literal is not None else None}
            for item in parsed.items
        ]

    records: list[dict[str, str | None]] = []
    for item in parsed.items:
        present = {
            field.name: field.literal.value for field in item.fields if field.literal is not None
        }
        records.append({name: present.get(name) for name in category.fields})
    return records


def _extract_keyed_record_block(
    text: str,
    category: KeyedRecordBlockCategory,
    locale: str,
) -> dict[str, dict[str, str | None]] | None:
    parsed = parse_category_block(text, category, locale)
    if parsed is None:
        return None

    records: dict[str, dict[str, str | None]] = {}
    for item in parsed.items:
        if item.key is None:
            continue
        present = {
            field.name: field.literal.value for field in item.fields if field.literal is not None
        }
        records.setdefault(item.key, {name: present.get(name) for name in category.fields})
    return records


def _fallback(
    category: AnyCategory,
    manifest: Manifest,
    locale: str,
    reference: dict[str, Any] | None,
) -> tuple[Any, CategorySource]:
    from_reference = reference_values(reference, category, locale, manifest.primary_locale)
    if from_reference:
        return from_reference, "reference"

    if locale == manifest.primary_locale and category.defaults:
        defaults = category.defaults
        if isinstance(defaults, list):
            return [dict(record) for record in defaults], "defaults"
        return {key: _copy(value) for key, value in defaults.items()}, "defaults"

    return ([] if category.shape == "records" else {}), "empty"


def _copy(value: Any) -> Any:
    return dict(value) if isinstance(value, dict) else value


def _pair_maps(
    first: dict[str, Any],
    second: dict[str, Any],
    manifest: Manifest,
) -> dict[str, dict[str, Any]]:
    keys = list(first) + [key for key in second if key not in first]
    return {
        key: {
            manifest.primary_locale: first.get(key),
            manifest.secondary_locale: second.get(key),
        }
        for key in keys
    }


def _pair_keyed_records(
    first: dict[str, Any],
    second: dict[str, Any],
    manifest: Manifest,
) -> dict[str, dict[str, dict[str, Any]]]:
    keys = list(first) + [key for key in second if key not in first]
    return {
        key: _pair_fields(first.get(key) or {}, second.get(key) or {}, manifest)
        for key in keys
    }


def _pair_records(
    first: list[Any],
    second: list[Any],
    manifest: Manifest,
) -> list[dict[str, dict[str, Any]]]:
    paired: list[dict[str, dict[str, Any]]] = []
    for index in range(max(len(first), len(second))):
        left = first[index] if index < len(first) and first[index] else {}
        right = second[index] if index < len(second) and second[index] else {}
        paired.append(_pair_fields(left, right, manifest))
    return paired


def _pair_fields(
    left: dict[str, Any],
    right: dict[str, Any],
    manifest: Manifest,
) -> dict[str, dict[str, Any]]:
    names = list(left) + [name for name in right if name not in left]
    return {
        name: {
            manifest.primary_locale: left.get(name),
            manifest.secondary_locale: right.get(name),
        }
        for name in names
    }


def _export_entry(
    category: AnyCategory,
    artifact: str | None,
    source: CategorySource,
    value: Any,
) -> CategoryExport:
    return CategoryExport(
        name=category.name,
        kind=category.kind,
        artifact=artifact,
        source=source,
        count=len(value),
    )
