"""
Two-step taxonomy import: ``preview`` parses without writing, ``commit``
upserts every parsed record by its natural key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from flask import current_app, has_app_context

from taxonomy_admin import metrics
from taxonomy_admin.utils.logging_config import get_logger

from ..cancellation import CancellationToken, is_cancelled
from ..errors import TaxonomyError, ValidationError
from ..normalize import DisplayOrderCounter, normalize_bool, normalize_display_order
from ..registry import KindSpec, resolve_kind
from ..store import TaxonomyStore
from .formats import decode_content, detect_format, parse_records

DEFAULT_PREVIEW_ROWS = 10

# Regenerated or derived on every write; never taken from the file.
DROPPED_FIELDS = frozenset({"id", "usage_count", "created_at", "updated_at", "kind"})


@dataclass
class ImportPreview:
    format: str
    records: List[Dict[str, Any]]
    notes: List[str] = field(default_factory=list)
    default_kind: str | None = None
    filename: str | None = None
    sample_size: int = DEFAULT_PREVIEW_ROWS

    @property
    def total_records(self) -> int:
        return len(self.records)

    @property
    def sample(self) -> List[Dict[str, Any]]:
        return self.records[: self.sample_size]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "filename": self.filename,
            "default_kind": self.default_kind,
            "total_records": self.total_records,
            "sample": self.sample,
            "notes": list(self.notes),
        }


@dataclass
class ImportCommitResult:
    successful: int = 0
    failed: int = 0
    inserted: int = 0
    updated: int = 0
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "successful": self.successful,
            "failed": self.failed,
            "inserted": self.inserted,
            "updated": self.updated,
            "errors": list(self.errors),
            "cancelled": self.cancelled,
        }


def _bool_defaults(spec: KindSpec) -> Dict[str, bool]:
    defaults = {"is_active": True}
    defaults.update(spec.bool_defaults)
    return defaults


class TaxonomyImporter:
    def __init__(self, store: TaxonomyStore | None = None, *, preview_rows: int | None = None) -> None:
        self.store = store or TaxonomyStore()
        if preview_rows is None and has_app_context():
            preview_rows = current_app.config.get("TAXONOMY_IMPORT_PREVIEW_ROWS")
        self.preview_rows = int(preview_rows or DEFAULT_PREVIEW_ROWS)

    def preview(
        self,
        content: bytes | str,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        default_kind: str | None = None,
    ) -> ImportPreview:
        """
        Parse ``content`` into candidate records without touching the store.

        Raises ``FormatError`` when the file cannot be parsed at all and
        ``ValidationError`` for an unknown ``default_kind``.
        """
        default_key = resolve_kind(default_kind).key if default_kind else None
        text = decode_content(content)
        fmt = detect_format(text, content_type=content_type, filename=filename)
        records, notes = parse_records(text, fmt)
        notes.extend(self._validate(records, default_key))
        get_logger(__name__).info(
            f"Import preview parsed {len(records)} {fmt} records from {filename or 'upload'} with {len(notes)} notes"
        )
        return ImportPreview(
            format=fmt,
            records=records,
            notes=notes,
            default_kind=default_key,
            filename=filename,
            sample_size=self.preview_rows,
        )

    @staticmethod
    def _validate(records, default_kind) -> List[str]:
        notes = []
        for index, record in enumerate(records, start=1):
            kind = record.get("kind") or default_kind
            if not kind:
                notes.append(f"Record {index}: no kind given and no default kind selected.")
                continue
            try:
                spec = resolve_kind(str(kind))
            except ValidationError:
                notes.append(f"Record {index}: unknown kind '{kind}'.")
                continue
            missing = [name for name in spec.natural_key if not str(record.get(name) or "").strip()]
            if missing:
                notes.append(f"Record {index}: missing {', '.join(missing)} for {spec.label}.")
        return notes

    def commit(
        self,
        preview: ImportPreview,
        *,
        default_kind: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ImportCommitResult:
        """
        Upsert every record of ``preview``, isolating failures per record.

        Records without a numeric ``display_order`` are numbered after the
        kind's record count as it stood when the commit started.
        """
        logger = get_logger(__name__)
        fallback_kind = resolve_kind(default_kind).key if default_kind else preview.default_kind
        counters: Dict[str, DisplayOrderCounter] = {}
        result = ImportCommitResult()

        for index, record in enumerate(preview.records, start=1):
            if is_cancelled(cancel_token):
                result.cancelled = True
                break
            try:
                spec = resolve_kind(str(record.get("kind") or fallback_kind or ""))
            except ValidationError as exc:
                result.failed += 1
                result.errors.append(f"Record {index}: {exc}")
                continue

            label = record.get(spec.primary_label_field) or f"record {index}"
            try:
                if spec.key not in counters:
                    counters[spec.key] = DisplayOrderCounter(self.store.count(spec))
                values = self._prepare(spec, record, counters[spec.key])
                _, created = self.store.upsert(spec, values)
            except TaxonomyError as exc:
                result.failed += 1
                result.errors.append(f"{spec.label} {label}: {exc}")
                logger.warning(f"Import of {spec.key} record {index} failed: {exc}")
                continue
            result.successful += 1
            if created:
                result.inserted += 1
            else:
                result.updated += 1

        metrics.record_import_commit(inserted=result.inserted, updated=result.updated, failed=result.failed)
        logger.info(
            f"Import commit: {result.inserted} inserted, {result.updated} updated, {result.failed} failed"
            + (" (cancelled)" if result.cancelled else "")
        )
        return result

    @staticmethod
    def _prepare(spec: KindSpec, record: Dict[str, Any], counter: DisplayOrderCounter) -> Dict[str, Any]:
        values = {key: value for key, value in record.items() if key not in DROPPED_FIELDS}
        for name, default in _bool_defaults(spec).items():
            if name in values:
                values[name] = normalize_bool(values[name], default)
        values["display_order"] = normalize_display_order(values.get("display_order"), counter)
        return values
