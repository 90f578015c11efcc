"""
Read-only reference integrity checks across taxonomy kinds and owners.

Nothing here writes. A snapshot is stale as soon as any mutating call
completes, so callers re-fetch after every sync, cleanup, bulk or import.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from taxonomy_admin.utils.logging_config import get_logger

from ..errors import TaxonomyError
from ..registry import get_kind_registry, get_owner_relations, relations_for_kind, resolve_kind
from ..store import OwnerStore, TaxonomyStore, owner_label


@dataclass(frozen=True)
class InconsistentReference:
    """Owner column pointing at a taxonomy id that no longer exists."""

    owner: str
    owner_id: int
    owner_label: str
    field: str
    relation: str
    kind: str
    missing_id: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "owner_id": self.owner_id,
            "owner_label": self.owner_label,
            "field": self.field,
            "relation": self.relation,
            "kind": self.kind,
            "missing_id": self.missing_id,
        }


@dataclass
class IntegrationStatusSnapshot:
    generated_at: datetime
    active_counts: Dict[str, int] = field(default_factory=dict)
    total_counts: Dict[str, int] = field(default_factory=dict)
    owner_reference_counts: Dict[str, int] = field(default_factory=dict)
    orphaned: Dict[str, List[int]] = field(default_factory=dict)
    inconsistent: List[InconsistentReference] = field(default_factory=list)
    degraded: bool = False
    error: str | None = None

    @classmethod
    def zeroed(cls, error: str | None = None) -> "IntegrationStatusSnapshot":
        kinds = list(get_kind_registry())
        return cls(
            generated_at=datetime.now(timezone.utc),
            active_counts={kind: 0 for kind in kinds},
            total_counts={kind: 0 for kind in kinds},
            owner_reference_counts={relation.name: 0 for relation in get_owner_relations()},
            orphaned={kind: [] for kind in kinds},
            inconsistent=[],
            degraded=True,
            error=error,
        )

    @property
    def orphaned_total(self) -> int:
        return sum(len(ids) for ids in self.orphaned.values())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "active_counts": dict(self.active_counts),
            "total_counts": dict(self.total_counts),
            "owner_reference_counts": dict(self.owner_reference_counts),
            "orphaned": {kind: list(ids) for kind, ids in self.orphaned.items()},
            "orphaned_total": self.orphaned_total,
            "inconsistent": [reference.as_dict() for reference in self.inconsistent],
            "degraded": self.degraded,
            "error": self.error,
        }


class ReferenceIntegrityChecker:
    def __init__(self, store: TaxonomyStore | None = None, owners: OwnerStore | None = None) -> None:
        self.store = store or TaxonomyStore()
        self.owners = owners or OwnerStore(self.store.session)

    def compute_status(self) -> IntegrationStatusSnapshot:
        """
        Build a snapshot of counts, orphans and inconsistent owner references.

        Store failures are logged and yield a zeroed snapshot flagged
        ``degraded`` instead of raising.
        """
        try:
            snapshot = IntegrationStatusSnapshot(generated_at=datetime.now(timezone.utc))
            for spec in get_kind_registry().values():
                snapshot.active_counts[spec.key] = self.store.count(spec, active_only=True)
                snapshot.total_counts[spec.key] = self.store.count(spec)
            for relation in get_owner_relations():
                snapshot.owner_reference_counts[relation.name] = self.owners.count_references(relation)
            snapshot.orphaned = self.find_orphans()
            snapshot.inconsistent = self.find_inconsistent()
            return snapshot
        except TaxonomyError as exc:
            get_logger(__name__).error(f"Integration status unavailable: {exc}", exc_info=True)
            return IntegrationStatusSnapshot.zeroed(error=str(exc))

    def usage_counts(self, kind) -> Dict[int, int]:
        """Map of record id to the number of owners referencing it."""
        spec = resolve_kind(kind) if isinstance(kind, str) else kind
        totals: Dict[int, int] = {}
        for relation in relations_for_kind(spec.key):
            for record_id, count in self.owners.reference_counts(relation).items():
                totals[record_id] = totals.get(record_id, 0) + count
        return totals

    def reference_count(self, kind: str, record_id: int) -> int:
        return sum(self.owners.count_references(relation, record_id) for relation in relations_for_kind(kind))

    def find_orphans(self) -> Dict[str, List[int]]:
        """Ids per kind that no owner references, in ascending order."""
        orphaned: Dict[str, List[int]] = {}
        for spec in get_kind_registry().values():
            referenced = self.usage_counts(spec)
            orphaned[spec.key] = sorted(record_id for record_id in self.store.ids(spec) if record_id not in referenced)
        return orphaned

    def find_inconsistent(self) -> List[InconsistentReference]:
        inconsistent: List[InconsistentReference] = []
        existing_by_kind: Dict[str, set] = {}
        for relation in get_owner_relations():
            if relation.kind not in existing_by_kind:
                existing_by_kind[relation.kind] = self.store.ids(relation.kind)
            existing = existing_by_kind[relation.kind]
            for owner in self.owners.iter_referencing_owners(relation):
                value = getattr(owner, relation.field)
                if value in existing:
                    continue
                inconsistent.append(
                    InconsistentReference(
                        owner=relation.owner,
                        owner_id=owner.id,
                        owner_label=owner_label(owner),
                        field=relation.field,
                        relation=relation.name,
                        kind=relation.kind,
                        missing_id=value,
                    )
                )
        return inconsistent
