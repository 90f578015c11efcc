"""Prometheus metrics helpers for taxonomy administration."""

from __future__ import annotations

from prometheus_client import Counter

_bulk_items_counter = Counter(
    "taxonomy_bulk_items_total",
    "Bulk operation targets processed by action and outcome.",
    ["action", "outcome"],
)
_sync_runs_counter = Counter(
    "taxonomy_sync_runs_total",
    "Integration sync runs by outcome.",
    ["outcome"],
)
_relations_repaired_counter = Counter(
    "taxonomy_relations_repaired_total",
    "Dangling owner references nulled by integration sync.",
)
_orphans_deleted_counter = Counter(
    "taxonomy_orphans_deleted_total",
    "Orphaned taxonomy records deleted by cleanup.",
    ["kind"],
)
_assignments_reset_counter = Counter(
    "taxonomy_assignments_reset_total",
    "Owner references cleared by assignment reset.",
)
_import_records_counter = Counter(
    "taxonomy_import_records_total",
    "Imported records by outcome.",
    ["outcome"],
)
_exports_counter = Counter(
    "taxonomy_exports_total",
    "Exports generated by format.",
    ["format"],
)


def record_bulk_operation(action: str, *, successful: int, failed: int) -> None:
    """Count the outcome of every target in one bulk call."""

    if successful:
        _bulk_items_counter.labels(action=action, outcome="success").inc(successful)
    if failed:
        _bulk_items_counter.labels(action=action, outcome="failure").inc(failed)


def record_sync_run(*, repaired: int, failed: bool) -> None:
    _sync_runs_counter.labels(outcome="failure" if failed else "success").inc()
    if repaired:
        _relations_repaired_counter.inc(repaired)


def record_orphans_deleted(per_kind: dict) -> None:
    for kind, count in per_kind.items():
        if count:
            _orphans_deleted_counter.labels(kind=kind).inc(count)


def record_assignments_reset(cleared: int) -> None:
    if cleared:
        _assignments_reset_counter.inc(cleared)


def record_import_commit(*, inserted: int, updated: int, failed: int) -> None:
    """Capture per-record outcomes of an import commit."""

    for outcome, count in (("inserted", inserted), ("updated", updated), ("failed", failed)):
        if count:
            _import_records_counter.labels(outcome=outcome).inc(count)


def record_export(format_name: str) -> None:
    _exports_counter.labels(format=format_name).inc()
