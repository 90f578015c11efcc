"""
Repair operations over taxonomy records and owner references.

``sync_integration`` and ``cleanup_orphaned`` are fault tolerant per item:
one failing owner or record is reported in the result and the loop moves on.
Neither runs inside a single transaction; each write commits on its own.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from taxonomy_admin import metrics
from taxonomy_admin.utils.logging_config import get_logger

from ..cancellation import CancellationToken, is_cancelled
from ..errors import TaxonomyError
from ..registry import get_kind_registry, get_owner_relations
from ..store import OwnerStore, TaxonomyStore
from .integrity import InconsistentReference, ReferenceIntegrityChecker


@dataclass
class SyncResult:
    relations_repaired: int = 0
    records_reordered_per_kind: Dict[str, int] = field(default_factory=dict)
    owner_records_updated: int = 0
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def records_reordered(self) -> int:
        return sum(self.records_reordered_per_kind.values())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "relations_repaired": self.relations_repaired,
            "records_reordered_per_kind": dict(self.records_reordered_per_kind),
            "records_reordered": self.records_reordered,
            "owner_records_updated": self.owner_records_updated,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "cancelled": self.cancelled,
        }


@dataclass
class CleanupResult:
    deleted_count: int = 0
    deleted_per_kind: Dict[str, int] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "deleted_count": self.deleted_count,
            "deleted_per_kind": dict(self.deleted_per_kind),
            "skipped": list(self.skipped),
            "errors": list(self.errors),
            "cancelled": self.cancelled,
        }


@dataclass
class ResetResult:
    cleared_per_relation: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def total_cleared(self) -> int:
        return sum(self.cleared_per_relation.values())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "cleared_per_relation": dict(self.cleared_per_relation),
            "total_cleared": self.total_cleared,
            "errors": list(self.errors),
        }


class ReconciliationEngine:
    def __init__(
        self,
        store: TaxonomyStore | None = None,
        owners: OwnerStore | None = None,
        checker: ReferenceIntegrityChecker | None = None,
    ) -> None:
        self.store = store or TaxonomyStore()
        self.owners = owners or OwnerStore(self.store.session)
        self.checker = checker or ReferenceIntegrityChecker(self.store, self.owners)

    def sync_integration(self, cancel_token: CancellationToken | None = None) -> SyncResult:
        """
        Null dangling owner references, then renumber active records densely.

        Safe to repeat: a second run over unchanged data repairs and reorders
        nothing.
        """
        logger = get_logger(__name__)
        result = SyncResult()
        self._repair_references(result, cancel_token)
        if not result.cancelled:
            self._renumber(result, cancel_token)

        metrics.record_sync_run(repaired=result.relations_repaired, failed=bool(result.errors))
        logger.info(
            f"Integration sync finished: {result.relations_repaired} references repaired, "
            f"{result.records_reordered} records reordered, {len(result.errors)} errors"
            + (" (cancelled)" if result.cancelled else "")
        )
        return result

    def _repair_references(self, result: SyncResult, cancel_token: CancellationToken | None) -> None:
        logger = get_logger(__name__)
        try:
            inconsistent = self.checker.find_inconsistent()
        except TaxonomyError as exc:
            result.errors.append(f"Reference scan failed: {exc}")
            logger.error(f"Reference scan failed during sync: {exc}", exc_info=True)
            return

        grouped: "OrderedDict[Tuple[str, int], List[InconsistentReference]]" = OrderedDict()
        for reference in inconsistent:
            grouped.setdefault((reference.owner, reference.owner_id), []).append(reference)

        models = {relation.owner: relation.model for relation in get_owner_relations()}
        for (owner, owner_id), references in grouped.items():
            if is_cancelled(cancel_token):
                result.cancelled = True
                return
            fields = [reference.field for reference in references]
            try:
                self.owners.update_owner(models[owner], owner_id, fields)
            except TaxonomyError as exc:
                result.errors.append(f"{owner.capitalize()} {references[0].owner_label}: {exc}")
                logger.error(f"Failed to repair {owner} {owner_id}: {exc}")
                continue
            result.owner_records_updated += 1
            for reference in references:
                result.relations_repaired += 1
                warning = (
                    f"{owner.capitalize()} {reference.owner_label}: cleared {reference.field} "
                    f"(missing {reference.kind} {reference.missing_id})"
                )
                result.warnings.append(warning)
                logger.warning(warning)

    def _renumber(self, result: SyncResult, cancel_token: CancellationToken | None) -> None:
        logger = get_logger(__name__)
        for spec in get_kind_registry().values():
            result.records_reordered_per_kind[spec.key] = 0
            try:
                records = self.store.list_records(spec, active_only=True)
            except TaxonomyError as exc:
                result.errors.append(f"{spec.label}: {exc}")
                logger.error(f"Failed to load {spec.key} records for renumbering: {exc}")
                continue
            for position, record in enumerate(records, start=1):
                if record.display_order == position:
                    continue
                if is_cancelled(cancel_token):
                    result.cancelled = True
                    return
                record_id = record.id
                label = spec.record_label(record) or record_id
                try:
                    self.store.set_display_order(spec, record_id, position)
                except TaxonomyError as exc:
                    result.errors.append(f"{spec.label} {label}: {exc}")
                    continue
                result.records_reordered_per_kind[spec.key] += 1

    def cleanup_orphaned(self, cancel_token: CancellationToken | None = None) -> CleanupResult:
        """
        Delete every taxonomy record no owner references.

        Each candidate is re-counted immediately before deletion; a record that
        gained a reference since the scan is skipped with a note.
        """
        logger = get_logger(__name__)
        orphaned = self.checker.find_orphans()
        result = CleanupResult(deleted_per_kind={kind: 0 for kind in orphaned})
        registry = get_kind_registry()

        for kind, record_ids in orphaned.items():
            spec = registry[kind]
            for record_id in record_ids:
                if is_cancelled(cancel_token):
                    result.cancelled = True
                    break
                try:
                    record = self.store.get(spec, record_id)
                    label = spec.record_label(record) or record_id
                    references = self.checker.reference_count(kind, record_id)
                    if references:
                        result.skipped.append(f"{spec.label} {label}: now referenced by {references} owner(s)")
                        continue
                    self.store.delete(spec, record_id)
                except TaxonomyError as exc:
                    result.errors.append(f"{spec.label} {record_id}: {exc}")
                    logger.error(f"Failed to delete orphaned {kind} {record_id}: {exc}")
                    continue
                result.deleted_count += 1
                result.deleted_per_kind[kind] += 1
            if result.cancelled:
                break

        metrics.record_orphans_deleted(result.deleted_per_kind)
        logger.info(f"Orphan cleanup deleted {result.deleted_count} records, skipped {len(result.skipped)}")
        return result

    def reset_all_assignments(self) -> ResetResult:
        """
        Null every tracked owner reference unconditionally.

        Destructive; callers are expected to confirm with the operator first.
        """
        logger = get_logger(__name__)
        result = ResetResult()
        for relation in get_owner_relations():
            try:
                result.cleared_per_relation[relation.name] = self.owners.clear_relation(relation)
            except TaxonomyError as exc:
                result.cleared_per_relation[relation.name] = 0
                result.errors.append(f"{relation.name}: {exc}")
                logger.error(f"Failed to clear {relation.name}: {exc}")

        metrics.record_assignments_reset(result.total_cleared)
        logger.warning(f"All taxonomy assignments reset ({result.total_cleared} references cleared)")
        return result
