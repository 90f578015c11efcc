"""
Bulk mutation executor applying one action to a mixed-kind selection.

Targets are isolated from each other: a failure is recorded as a labeled
error string and the remaining targets still run. No reconciliation runs
afterwards; callers reload their selection whenever ``successful > 0``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from taxonomy_admin import metrics
from taxonomy_admin.utils.logging_config import get_logger

from ..cancellation import CancellationToken, is_cancelled
from ..errors import NotFoundError, TaxonomyError, ValidationError
from ..registry import kind_order, resolve_kind
from ..store import TaxonomyStore

BULK_ACTIONS = ("delete", "activate", "deactivate", "update")

_DIGITS = re.compile(r"\d+")


def _whole_number(value: Any) -> int | None:
    """Exact integer id from an int, an integral float or a digit string; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str) and _DIGITS.fullmatch(value.strip()):
        return int(value.strip())
    return None


@dataclass(frozen=True)
class BulkOperationRequest:
    targets: Tuple[Tuple[str, int], ...]
    action: str
    patch: Mapping[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BulkOperationRequest":
        """
        Build a request from a JSON body.

        ``targets`` is a list of ``{"kind": ..., "id": ...}`` objects or
        ``[kind, id]`` pairs.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object")
        raw_targets = payload.get("targets") or []
        if not isinstance(raw_targets, list):
            raise ValidationError("'targets' must be a list", field="targets")
        targets = []
        for raw in raw_targets:
            if isinstance(raw, Mapping):
                kind, record_id = raw.get("kind"), raw.get("id")
            elif isinstance(raw, (list, tuple)) and len(raw) == 2:
                kind, record_id = raw
            else:
                raise ValidationError(f"Malformed target: {raw!r}", field="targets")
            number = _whole_number(record_id)
            if not kind or number is None:
                raise ValidationError(f"Malformed target: {raw!r}", field="targets")
            targets.append((str(kind), number))
        patch = payload.get("patch")
        if patch is not None and not isinstance(patch, Mapping):
            raise ValidationError("'patch' must be an object", field="patch")
        return cls(targets=tuple(targets), action=str(payload.get("action") or ""), patch=patch)


@dataclass
class BulkOperationResult:
    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": list(self.errors),
            "cancelled": self.cancelled,
        }


def _ordered_targets(targets: Iterable[Tuple[str, int]]):
    specs = []
    for kind, raw_id in set(targets):
        spec = resolve_kind(kind)
        record_id = _whole_number(raw_id)
        if record_id is None:
            raise ValidationError(f"Malformed target id for {spec.label}: {raw_id!r}", field="targets")
        specs.append((kind_order(spec.key), record_id, spec))
    specs.sort(key=lambda item: (item[0], item[1]))
    return [(spec, record_id) for _, record_id, spec in specs]


class BulkMutationExecutor:
    def __init__(self, store: TaxonomyStore | None = None) -> None:
        self.store = store or TaxonomyStore()

    def apply(
        self,
        request: BulkOperationRequest,
        cancel_token: CancellationToken | None = None,
    ) -> BulkOperationResult:
        """
        Apply ``request.action`` to every target in kind registry order, then id.

        Raises ``ValidationError`` before touching any target when the
        selection is empty, the action is unknown, a kind is unknown, a target
        id is not a whole number, or an update carries no patch.
        """
        action = (request.action or "").strip().lower()
        if action not in BULK_ACTIONS:
            raise ValidationError(
                f"Unknown bulk action '{request.action}'. Expected one of: " + ", ".join(BULK_ACTIONS),
                field="action",
            )
        if not request.targets:
            raise ValidationError("No records selected", field="targets")
        if action == "update" and not request.patch:
            raise ValidationError("Update requires a non-empty patch", field="patch")

        ordered = _ordered_targets(request.targets)
        logger = get_logger(__name__)
        result = BulkOperationResult()

        for spec, record_id in ordered:
            if is_cancelled(cancel_token):
                result.cancelled = True
                break
            result.total_processed += 1
            label = record_id
            try:
                record = self.store.get(spec, record_id)
                label = spec.record_label(record) or record_id
                self._apply_one(action, spec, record_id, request.patch)
            except NotFoundError as exc:
                result.failed += 1
                result.errors.append(f"{spec.label} {record_id}: {exc}")
                continue
            except TaxonomyError as exc:
                result.failed += 1
                result.errors.append(f"{spec.label} {label}: {exc}")
                logger.warning(f"Bulk {action} failed for {spec.key} {record_id}: {exc}")
                continue
            result.successful += 1

        metrics.record_bulk_operation(action, successful=result.successful, failed=result.failed)
        logger.info(
            f"Bulk {action}: {result.successful} succeeded, {result.failed} failed "
            f"of {result.total_processed}" + (" (cancelled)" if result.cancelled else "")
        )
        return result

    def _apply_one(self, action, spec, record_id, patch) -> None:
        if action == "delete":
            self.store.delete(spec, record_id)
        elif action == "activate":
            self.store.update(spec, record_id, {"is_active": True})
        elif action == "deactivate":
            self.store.update(spec, record_id, {"is_active": False})
        else:
            self.store.update(spec, record_id, patch)
