"""Patch engine: write translated snapshot values back into artifacts.

Each category is planned against the artifact text as it stands after the
previous category, and its edits are applied right-to-left in one pass. An
artifact is read once and written at most once, atomically, and only when
its text changed. A scan failure aborts that artifact alone.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from core.manifest.models import (
    AnyCategory,
    ArtifactCategory,
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
from core.patch.edits import TextEdit, apply_edits
from core.patch.models import ApplyReport, ArtifactReport, PatchEntry
from core.patch.render import (
    render_block_body,
    render_entry,
    render_keyed_record,
    render_literal,
    render_record,
    quote_for,
    rewrite_item,
)
from core.scan.locator import iter_occurrences
from core.scan.models import LiteralSpan
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
from core.snapshot.models import (
    ContentSnapshot,
    FlatMap,
    KeyedRecords,
    RecordList,
    coerce_category,
)
from core.snapshot.reference import reference_values
from core.text.escaping import escape_literal, escape_template, unescape_literal
from core.utils.atomic_io import read_text_exact, write_text_atomic
from core.utils.errors import UnterminatedBlockError
from core.utils.events import log_event

logger = logging.getLogger("bisync.patch")


def apply_snapshot(
    manifest: Manifest,
    root: Path,
    snapshot: ContentSnapshot,
    *,
    reference: dict[str, Any] | None = None,
    write: bool = True,
) -> ApplyReport:
    """Patch every manifest artifact under ``root`` from ``snapshot``.

    I/O errors propagate; a malformed delimiter only aborts its artifact.
    """

    known = {category.name for category in manifest.iter_categories()}
    for name in snapshot.categories:
        if name not in known:
            log_event(logger, logging.WARNING, "unknown_category", category=name)

    report = ApplyReport()
    for artifact in manifest.artifacts:
        path = root / artifact.path
        original = read_text_exact(path)

        try:
            patched, entries = patch_artifact_text(
                original,
                artifact.categories,
                snapshot,
                manifest,
                reference=reference,
            )
        except UnterminatedBlockError as exc:
            log_event(
                logger,
                logging.ERROR,
                "artifact_aborted",
                artifact=artifact.path,
                delimiter=exc.delimiter,
                offset=exc.start,
            )
            report.artifacts.append(
                ArtifactReport(path=artifact.path, aborted=True, error=str(exc))
            )
            continue

        changed = patched != original
        if changed and write:
            write_text_atomic(path, patched)
        report.artifacts.append(
            ArtifactReport(
                path=artifact.path,
                entries=entries,
                changed=changed,
                written=changed and write,
            )
        )
        log_event(
            logger,
            logging.INFO,
            "artifact_done",
            artifact=artifact.path,
            changed=changed,
            updated=report.artifacts[-1].count("updated"),
            not_found=report.artifacts[-1].count("not_found"),
        )

    return report


def patch_artifact_text(
    text: str,
    categories: list[ArtifactCategory],
    snapshot: ContentSnapshot,
    manifest: Manifest,
    *,
    reference: dict[str, Any] | None = None,
) -> tuple[str, list[PatchEntry]]:
    """Return the patched text and one entry per planned site.

    Raises:
        UnterminatedBlockError: if a long-form body has no closing delimiter.
    """

    entries: list[PatchEntry] = []
    for category in categories:
        merged = _merge_sources(category, snapshot, manifest, reference)
        raw = snapshot.categories.get(category.name)
        if raw is None and not merged:
            entries.append(
                PatchEntry(category=category.name, status="skipped", detail="not in snapshot")
            )
            continue

        try:
            value = coerce_category({} if raw is None else raw, category.shape)
        except ValidationError as exc:
            log_event(
                logger,
                logging.WARNING,
                "invalid_category",
                category=category.name,
                errors=exc.error_count(),
            )
            entries.append(
                PatchEntry(category=category.name, status="invalid", detail="unexpected shape")
            )
            continue

        shifted = _detect_shift(text, category, snapshot, manifest)
        if shifted:
            entries.extend(shifted)
            continue

        edits, planned = _plan_category(text, category, value, manifest, merged)
        entries.extend(planned)
        text = apply_edits(text, edits)

    return text, entries


def _plan_category(
    text: str,
    category: ArtifactCategory,
    value: Any,
    manifest: Manifest,
    merged: list[FlatMap],
) -> tuple[list[TextEdit], list[PatchEntry]]:
    if isinstance(category, PairCategory):
        return _plan_pairs(text, category, value, manifest)
    if isinstance(category, (KeyedPairCategory, TernaryCategory)):
        return _plan_keyed(text, category, value, manifest)
    if isinstance(category, DocumentCategory):
        return _plan_documents(text, category, value, manifest)
    if isinstance(category, ScalarFieldsCategory):
        return _plan_scalar_fields(text, category, value, manifest)
    if isinstance(category, DictBlockCategory):
        return _plan_dict_block(text, category, value, manifest, merged)
    if isinstance(category, KeyedRecordBlockCategory):
        return _plan_keyed_record_block(text, category, value, manifest)
    return _plan_record_block(text, category, value, manifest)


def _merge_sources(
    category: AnyCategory,
    snapshot: ContentSnapshot,
    manifest: Manifest,
    reference: dict[str, Any] | None,
) -> list[FlatMap]:
    if not isinstance(category, DictBlockCategory):
        return []

    sources: list[FlatMap] = []
    for name in category.merge:
        raw = snapshot.categories.get(name)
        if raw is None:
            merge_category = manifest.get_category(name)
            if merge_category is None:
                continue
            raw = reference_values(
                reference, merge_category, manifest.secondary_locale, manifest.primary_locale
            )
        if raw is None:
            continue
        try:
            sources.append(coerce_category(raw, "map"))
        except ValidationError:
            log_event(logger, logging.WARNING, "invalid_category", category=name)
    return sources


def _detect_shift(
    text: str,
    category: AnyCategory,
    snapshot: ContentSnapshot,
    manifest: Manifest,
) -> list[PatchEntry]:
    """One ``shifted`` entry per occurrence key whose count changed since export."""

    if not category.ordinal:
        return []

    shifted: list[PatchEntry] = []
    for key, current in count_ordinal_occurrences(text, category, manifest).items():
        expected = snapshot.expected_occurrences(key)
        if expected is None or expected == current:
            continue
        log_event(
            logger,
            logging.WARNING,
            "occurrences_shifted",
            category=category.name,
            key=key,
            expected=expected,
            current=current,
        )
        shifted.append(
            PatchEntry(
                category=category.name,
                status="shifted",
                key=key,
                detail=f"expected {expected} occurrences, found {current}",
            )
        )
    return shifted


def _literal_edit(span: LiteralSpan, value: str) -> TextEdit | None:
    if span.value == value:
        return None
    return TextEdit(span.start, span.end, escape_literal(value, span.quote))


def _not_found(category: str, **fields: Any) -> PatchEntry:
    log_event(logger, logging.INFO, "site_not_found", category=category, **fields)
    return PatchEntry(category=category, status="not_found", **fields)


def _plan_pairs(
    text: str,
    category: PairCategory,
    records: RecordList,
    manifest: Manifest,
) -> tuple[list[TextEdit], list[PatchEntry]]:
    window = category_window(text, category)
    edits: list[TextEdit] = []
    entries: list[PatchEntry] = []

    for field in category.fields:
        occurrences = []
        if window is not None:
            occurrences = list(iter_occurrences(text, pair_pattern(field, manifest), *window))

        for index, record in enumerate(records):
            value = record.get(field.name) if record is not None else None
            if value is None:
                entries.append(
                    PatchEntry(
                        category=category.name, status="skipped", index=index, field=field.name
                    )
                )
                continue
            if index >= len(occurrences):
                entries.append(_not_found(category.name, index=index, field=field.name))
                continue

            edit = _literal_edit(occurrences[index].secondary, value)
            if edit is not None:
                edits.append(edit)
            entries.append(
                PatchEntry(
                    category=category.name,
                    status="unchanged" if edit is None else "updated",
                    index=index,
                    field=field.name,
                )
            )

    return edits, entries


def _plan_keyed(
    text: str,
    category: KeyedPairCategory | TernaryCategory,
    values: FlatMap,
    manifest: Manifest,
) -> tuple[list[TextEdit], list[PatchEntry]]:
    window = category_window(text, category)
    if isinstance(category, KeyedPairCategory):
        pattern = keyed_pair_pattern(category, manifest)
    else:
        pattern = ternary_pattern(category, manifest)

    occurrences = [] if window is None else list(iter_occurrences(text, pattern, *window))
    edits: list[TextEdit] = []
    entries: list[PatchEntry] = []

    for key, value in values.items():
        if value is None:
            entries.append(PatchEntry(category=category.name, status="skipped", key=key))
            continue

        matched = [
            occurrence
            for occurrence in occurrences
            if (occurrence.key or occurrence.primary).value == key
        ]
        if not matched:
            entries.append(_not_found(category.name, key=key))
            continue

        planned = [_literal_edit(occurrence.secondary, value) for occurrence in matched]
        changed = [edit for edit in planned if edit is not None]
        edits.extend(changed)
        entries.append(
            PatchEntry(
                category=category.name,
                status="updated" if changed else "unchanged",
                key=key,
            )
        )

    return edits, entries


def _plan_documents(
    text: str,
    category: DocumentCategory,
    values: FlatMap,
    manifest: Manifest,
) -> tuple[list[TextEdit], list[PatchEntry]]:
    bodies = find_document_bodies(text, category, manifest.secondary_locale) or {}
    edits: list[TextEdit] = []
    entries: list[PatchEntry] = []

    for key, value in values.items():
        if value is None:
            entries.append(PatchEntry(category=category.name, status="skipped", key=key))
            continue
        if key not in bodies:
            entries.append(_not_found(category.name, key=key))
            continue

        start, end = bodies[key]
        if unescape_literal(text[start:end]) == value:
            entries.append(PatchEntry(category=category.name, status="unchanged", key=key))
            continue
        edits.append(TextEdit(start, end, escape_template(value)))
        entries.append(PatchEntry(category=category.name, status="updated", key=key))

    return edits, entries


def _plan_scalar_fields(
    text: str,
    category: ScalarFieldsCategory,
    values: FlatMap,
    manifest: Manifest,
) -> tuple[list[TextEdit], list[PatchEntry]]:
    spans = find_scalar_fields(text, category, manifest.secondary_locale)
    if spans is None:
        return [], [_not_found(category.name)]

    edits: list[TextEdit] = []
    entries: list[PatchEntry] = []
    for key, value in values.items():
        if value is None:
            entries.append(PatchEntry(category=category.name, status="skipped", key=key))
            continue
        span = spans.get(key)
        if span is None:
            entries.append(_not_found(category.name, key=key))
            continue

        edit = _literal_edit(span, value)
        if edit is not None:
            edits.append(edit)
        entries.append(
            PatchEntry(
                category=category.name,
                status="unchanged" if edit is None else "updated",
                key=key,
            )
        )

    return edits, entries


def _plan_dict_block(
    text: str,
    category: DictBlockCategory,
    values: FlatMap,
    manifest: Manifest,
    merged: list[FlatMap],
) -> tuple[list[TextEdit], list[PatchEntry]]:
    parsed = parse_category_block(text, category, manifest.secondary_locale)
    if parsed is None:
        return [], [_not_found(category.name)]

    overlay: FlatMap = dict(values)
    for source in merged:
        for key, value in source.items():
            if value is not None:
                overlay[key] = value

    existing_keys = {item.key for item in parsed.items}
    item_texts: list[str] = []
    updated_keys: set[str] = set()
    for item in parsed.items:
        new_value = overlay.get(item.key) if item.key is not None else None
        if new_value is None or item.literal is None or item.literal.value == new_value:
            item_texts.append(text[item.start : item.end])
            continue
        item_texts.append(rewrite_item(text, item, {item.literal: new_value}))
        updated_keys.add(item.key)

    appended = [
        render_entry(key, value, parsed)
        for key, value in overlay.items()
        if value is not None and key not in existing_keys
    ]

    entries: list[PatchEntry] = []
    for key, value in overlay.items():
        if value is None:
            status = "skipped"
        elif key in updated_keys or key not in existing_keys:
            status = "updated"
        else:
            status = "unchanged"
        detail = "appended" if value is not None and key not in existing_keys else None
        entries.append(PatchEntry(category=category.name, status=status, key=key, detail=detail))

    if not updated_keys and not appended:
        return [], entries

    body = render_block_body(parsed, item_texts, appended)
    return [TextEdit(parsed.block.body_start, parsed.block.body_end, body)], entries


def _plan_record_block(
    text: str,
    category: RecordBlockCategory | ListBlockCategory,
    records: RecordList,
    manifest: Manifest,
) -> tuple[list[TextEdit], list[PatchEntry]]:
    parsed = parse_category_block(text, category, manifest.secondary_locale)
    if parsed is None:
        return [], [_not_found(category.name)]

    field_names = [category.field] if isinstance(category, ListBlockCategory) else category.fields
    item_texts = [text[item.start : item.end] for item in parsed.items]
    appended: list[str] = []
    entries: list[PatchEntry] = []
    changed = False

    for index, record in enumerate(records):
        if record is None:
            entries.append(PatchEntry(category=category.name, status="skipped", index=index))
            continue

        if index >= len(parsed.items):
            if any(record.get(name) is None for name in field_names):
                entries.append(_incomplete(category.name, index=index))
                continue
            complete = {name: record[name] for name in field_names}
            if isinstance(category, ListBlockCategory):
                appended.append(render_literal(complete[category.field], quote_for(parsed)))
            else:
                appended.append(render_record(complete, field_names, parsed))
            entries.append(
                PatchEntry(category=category.name, status="updated", index=index, detail="appended")
            )
            continue

        item = parsed.items[index]
        if isinstance(category, ListBlockCategory):
            sites = {category.field: item.literal}
        else:
            sites = {field.name: field.literal for field in item.fields}

        replacements = _overlay_record(
            category.name, sites, record, field_names, entries, index=index
        )
        if replacements:
            item_texts[index] = rewrite_item(text, item, replacements)
            changed = True

    if not changed and not appended:
        return [], entries

    body = render_block_body(parsed, item_texts, appended)
    return [TextEdit(parsed.block.body_start, parsed.block.body_end, body)], entries


def _plan_keyed_record_block(
    text: str,
    category: KeyedRecordBlockCategory,
    records: KeyedRecords,
    manifest: Manifest,
) -> tuple[list[TextEdit], list[PatchEntry]]:
    parsed = parse_category_block(text, category, manifest.secondary_locale)
    if parsed is None:
        return [], [_not_found(category.name)]

    positions: dict[str, int] = {}
    for index, item in enumerate(parsed.items):
        if item.key is not None:
            positions.setdefault(item.key, index)

    item_texts = [text[item.start : item.end] for item in parsed.items]
    appended: list[str] = []
    entries: list[PatchEntry] = []
    changed = False

    for key, record in records.items():
        if record is None:
            entries.append(PatchEntry(category=category.name, status="skipped", key=key))
            continue

        index = positions.get(key)
        if index is None:
            if any(record.get(name) is None for name in category.fields):
                entries.append(_incomplete(category.name, key=key))
                continue
            complete = {name: record[name] for name in category.fields}
            appended.append(render_keyed_record(text, key, complete, category.fields, parsed))
            entries.append(
                PatchEntry(category=category.name, status="updated", key=key, detail="appended")
            )
            continue

        item = parsed.items[index]
        sites = {field.name: field.literal for field in item.fields}
        replacements = _overlay_record(
            category.name, sites, record, category.fields, entries, key=key
        )
        if replacements:
            item_texts[index] = rewrite_item(text, item, replacements)
            changed = True

    if not changed and not appended:
        return [], entries

    body = render_block_body(parsed, item_texts, appended)
    return [TextEdit(parsed.block.body_start, parsed.block.body_end, body)], entries


def _incomplete(category: str, **location: Any) -> PatchEntry:
    return PatchEntry(category=category, status="skipped", detail="incomplete record", **location)


def _overlay_record(
    category: str,
    sites: dict[str, LiteralSpan | None],
    record: dict[str, str | None],
    field_names: list[str],
    entries: list[PatchEntry],
    **location: Any,
) -> dict[LiteralSpan, str]:
    """Plan literal replacements for one existing record, appending its entries."""

    replacements: dict[LiteralSpan, str] = {}
    for name in field_names:
        value = record.get(name)
        span = sites.get(name)
        if value is None:
            entries.append(
                PatchEntry(category=category, status="skipped", field=name, **location)
            )
        elif span is None:
            entries.append(_not_found(category, field=name, **location))
        elif span.value == value:
            entries.append(
                PatchEntry(category=category, status="unchanged", field=name, **location)
            )
        else:
            replacements[span] = value
            entries.append(PatchEntry(category=category, status="updated", field=name, **location))
    return replacements
