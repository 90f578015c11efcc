"""Export taxonomy records as JSON or CSV artifacts."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Tuple

from flask import current_app, has_app_context

from taxonomy_admin import metrics
from taxonomy_admin.utils.logging_config import get_logger

from ..errors import ValidationError
from ..pipeline.integrity import ReferenceIntegrityChecker
from ..registry import get_kind_registry, resolve_kind
from ..store import OwnerStore, TaxonomyStore
from .formats import FORMAT_JSON, MIMETYPES, SUPPORTED_FORMATS, collect_headers, dump_csv

ALL_KINDS = "all"
DEFAULT_SCHEMA_VERSION = "1.0.0"


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    content: bytes
    mimetype: str
    record_count: int


def _config(key: str, default: Any) -> Any:
    if has_app_context():
        return current_app.config.get(key, default)
    return default


class TaxonomyExporter:
    def __init__(
        self,
        store: TaxonomyStore | None = None,
        checker: ReferenceIntegrityChecker | None = None,
        *,
        wrap: bool | None = None,
        schema_version: str | None = None,
    ) -> None:
        self.store = store or TaxonomyStore()
        self.checker = checker or ReferenceIntegrityChecker(self.store, OwnerStore(self.store.session))
        self.wrap = wrap
        self.schema_version = schema_version

    def collect(self, kind: str) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        """
        Return export records for ``kind`` (or every kind) with per-kind counts.

        Each record carries its ``kind`` and derived ``usage_count``.
        """
        if kind == ALL_KINDS:
            specs = list(get_kind_registry().values())
        else:
            specs = [resolve_kind(kind)]

        records: List[Dict[str, Any]] = []
        per_kind_counts: Dict[str, int] = {}
        for spec in specs:
            usage = self.checker.usage_counts(spec)
            rows = self.store.list_records(spec)
            per_kind_counts[spec.key] = len(rows)
            for row in rows:
                payload: Dict[str, Any] = {"kind": spec.key}
                payload.update(row.to_dict())
                payload["usage_count"] = usage.get(row.id, 0)
                records.append(payload)
        return records, per_kind_counts

    def export(self, kind: str, fmt: str = FORMAT_JSON, *, today: date | None = None) -> ExportArtifact:
        fmt = (fmt or FORMAT_JSON).strip().lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ValidationError(
                f"Unsupported export format '{fmt}'. Expected one of: " + ", ".join(SUPPORTED_FORMATS),
                field="format",
            )
        kind = (kind or ALL_KINDS).strip().lower()
        key = ALL_KINDS if kind == ALL_KINDS else resolve_kind(kind).key
        records, per_kind_counts = self.collect(key)
        today = today or datetime.now(timezone.utc).date()

        if fmt == FORMAT_JSON:
            content = self._render_json(records, per_kind_counts)
        else:
            headers = collect_headers(records, extend=key == ALL_KINDS)
            content = ("\ufeff" + dump_csv(records, headers)).encode("utf-8")

        filename = f"{key}-{today.isoformat()}.{fmt}"
        metrics.record_export(fmt)
        get_logger(__name__).info(f"Exported {len(records)} taxonomy records to {filename}")
        return ExportArtifact(
            filename=filename,
            content=content,
            mimetype=MIMETYPES[fmt],
            record_count=len(records),
        )

    def _render_json(self, records, per_kind_counts) -> bytes:
        wrap = self.wrap if self.wrap is not None else bool(_config("TAXONOMY_EXPORT_WRAP", True))
        if wrap:
            payload: Any = {
                "export_date": datetime.now(timezone.utc).isoformat(),
                "schema_version": self.schema_version
                or _config("TAXONOMY_EXPORT_SCHEMA_VERSION", DEFAULT_SCHEMA_VERSION),
                "per_kind_counts": per_kind_counts,
                "records": records,
            }
        else:
            payload = records
        return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
