"""
Integrity, reconciliation and bulk mutation over the taxonomy store.
"""

from .bulk import BULK_ACTIONS, BulkMutationExecutor, BulkOperationRequest, BulkOperationResult
from .integrity import InconsistentReference, IntegrationStatusSnapshot, ReferenceIntegrityChecker
from .reconciliation import CleanupResult, ReconciliationEngine, ResetResult, SyncResult

__all__ = [
    "BULK_ACTIONS",
    "BulkMutationExecutor",
    "BulkOperationRequest",
    "BulkOperationResult",
    "InconsistentReference",
    "IntegrationStatusSnapshot",
    "ReferenceIntegrityChecker",
    "CleanupResult",
    "ReconciliationEngine",
    "ResetResult",
    "SyncResult",
]
