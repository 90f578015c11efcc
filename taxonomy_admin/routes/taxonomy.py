# taxonomy_admin/routes/taxonomy.py

"""
JSON endpoints for taxonomy integrity, reconciliation, bulk and import/export
"""

from flask import Response, current_app, jsonify, request
from flask_login import current_user

from taxonomy_admin.models import AdminLog, db
from taxonomy_admin.taxonomy.errors import FormatError, NotFoundError, TaxonomyError, ValidationError
from taxonomy_admin.taxonomy.normalize import normalize_bool
from taxonomy_admin.taxonomy.pipeline import (
    BulkMutationExecutor,
    BulkOperationRequest,
    ReconciliationEngine,
    ReferenceIntegrityChecker,
)
from taxonomy_admin.taxonomy.registry import get_kind_registry, resolve_kind
from taxonomy_admin.taxonomy.serialization import ImportPreviewCache, TaxonomyExporter, TaxonomyImporter
from taxonomy_admin.taxonomy.store import TaxonomyStore
from taxonomy_admin.utils.permissions import (
    EXPORT_TAXONOMY,
    IMPORT_TAXONOMY,
    MANAGE_TAXONOMY,
    RECONCILE_TAXONOMY,
    VIEW_TAXONOMY,
    permission_required,
)

API_PREFIX = "/admin/taxonomy/api"


def _log_admin_action(action, details):
    AdminLog.log_action(
        admin_user_id=current_user.id,
        action=action,
        details=details,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def _error_response(exc):
    """Map taxonomy errors to JSON responses"""
    if isinstance(exc, (ValidationError, FormatError)):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": f"{exc.kind} {exc.record_id} not found"}), 404
    current_app.logger.error(f"Taxonomy operation failed: {str(exc)}", exc_info=True)
    return jsonify({"error": str(exc)}), 500


def _unexpected_error(context, exc):
    db.session.rollback()
    current_app.logger.error(f"Unexpected error {context}: {str(exc)}", exc_info=True)
    return jsonify({"error": "An unexpected error occurred"}), 500


def register_taxonomy_routes(app):
    """Register taxonomy administration API routes"""

    @app.route(f"{API_PREFIX}/kinds", methods=["GET"])
    @permission_required(VIEW_TAXONOMY)
    def taxonomy_kinds():
        return jsonify({"kinds": [spec.as_dict() for spec in get_kind_registry().values()]})

    @app.route(f"{API_PREFIX}/records/<kind>", methods=["GET"])
    @permission_required(VIEW_TAXONOMY)
    def taxonomy_records(kind):
        """Records of one kind in display order, each with its usage count"""
        try:
            spec = resolve_kind(kind)
            active_only = normalize_bool(request.args.get("active_only"), False)
            store = TaxonomyStore()
            usage = ReferenceIntegrityChecker(store).usage_counts(spec)
            records = []
            for record in store.list_records(spec, active_only=active_only):
                payload = record.to_dict()
                payload["usage_count"] = usage.get(record.id, 0)
                records.append(payload)
            return jsonify({"kind": spec.key, "label": spec.label, "count": len(records), "records": records})
        except TaxonomyError as e:
            return _error_response(e)
        except Exception as e:
            return _unexpected_error(f"listing {kind} records", e)

    @app.route(f"{API_PREFIX}/status", methods=["GET"])
    @permission_required(VIEW_TAXONOMY)
    def taxonomy_status():
        snapshot = ReferenceIntegrityChecker().compute_status()
        return jsonify(snapshot.as_dict())

    @app.route(f"{API_PREFIX}/sync", methods=["POST"])
    @permission_required(RECONCILE_TAXONOMY)
    def taxonomy_sync():
        try:
            result = ReconciliationEngine().sync_integration()
            _log_admin_action(
                "TAXONOMY_SYNC",
                f"Repaired {result.relations_repaired} references, reordered {result.records_reordered} records",
            )
            return jsonify(result.as_dict())
        except TaxonomyError as e:
            return _error_response(e)
        except Exception as e:
            return _unexpected_error("running taxonomy sync", e)

    @app.route(f"{API_PREFIX}/cleanup-orphaned", methods=["POST"])
    @permission_required(RECONCILE_TAXONOMY)
    def taxonomy_cleanup_orphaned():
        try:
            result = ReconciliationEngine().cleanup_orphaned()
            _log_admin_action("TAXONOMY_CLEANUP_ORPHANED", f"Deleted {result.deleted_count} orphaned records")
            return jsonify(result.as_dict())
        except TaxonomyError as e:
            return _error_response(e)
        except Exception as e:
            return _unexpected_error("cleaning up orphaned taxonomy records", e)

    @app.route(f"{API_PREFIX}/reset-assignments", methods=["POST"])
    @permission_required(RECONCILE_TAXONOMY)
    def taxonomy_reset_assignments():
        """Clear every owner reference; requires {"confirm": true}"""
        payload = request.get_json(silent=True) or {}
        if payload.get("confirm") is not True:
            return jsonify({"error": "Resetting assignments requires confirm=true"}), 400
        try:
            result = ReconciliationEngine().reset_all_assignments()
            _log_admin_action("TAXONOMY_RESET_ASSIGNMENTS", f"Cleared {result.total_cleared} references")
            return jsonify(result.as_dict())
        except Exception as e:
            return _unexpected_error("resetting taxonomy assignments", e)

    @app.route(f"{API_PREFIX}/bulk", methods=["POST"])
    @permission_required(MANAGE_TAXONOMY)
    def taxonomy_bulk():
        try:
            bulk_request = BulkOperationRequest.from_payload(request.get_json(silent=True) or {})
            result = BulkMutationExecutor().apply(bulk_request)
            _log_admin_action(
                f"TAXONOMY_BULK_{bulk_request.action.upper()}",
                f"{result.successful} succeeded, {result.failed} failed of {result.total_processed}",
            )
            return jsonify(result.as_dict())
        except TaxonomyError as e:
            return _error_response(e)
        except Exception as e:
            return _unexpected_error("applying bulk taxonomy action", e)

    @app.route(f"{API_PREFIX}/export", methods=["GET"])
    @permission_required(EXPORT_TAXONOMY)
    def taxonomy_export():
        try:
            artifact = TaxonomyExporter().export(
                request.args.get("kind", "all"),
                request.args.get("format", "json"),
            )
            _log_admin_action("TAXONOMY_EXPORT", f"Exported {artifact.record_count} records to {artifact.filename}")
            return Response(
                artifact.content,
                mimetype=artifact.mimetype,
                headers={
                    "Content-Disposition": f'attachment; filename="{artifact.filename}"',
                    "X-Record-Count": str(artifact.record_count),
                },
            )
        except TaxonomyError as e:
            return _error_response(e)
        except Exception as e:
            return _unexpected_error("exporting taxonomy records", e)

    @app.route(f"{API_PREFIX}/import/preview", methods=["POST"])
    @permission_required(IMPORT_TAXONOMY)
    def taxonomy_import_preview():
        """Parse an uploaded file and retain it under a token for commit"""
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return jsonify({"error": "No file uploaded"}), 400
        try:
            preview = TaxonomyImporter().preview(
                upload.read(),
                filename=upload.filename,
                content_type=upload.mimetype,
                default_kind=request.form.get("kind") or None,
            )
            token = ImportPreviewCache.store(preview)
            return jsonify({"token": token, "preview": preview.as_dict()})
        except TaxonomyError as e:
            return _error_response(e)
        except Exception as e:
            return _unexpected_error("previewing taxonomy import", e)

    @app.route(f"{API_PREFIX}/import/<token>/commit", methods=["POST"])
    @permission_required(IMPORT_TAXONOMY)
    def taxonomy_import_commit(token):
        preview = ImportPreviewCache.get(token)
        if preview is None:
            return jsonify({"error": "Import preview not found or expired"}), 404
        payload = request.get_json(silent=True) or {}
        try:
            result = TaxonomyImporter().commit(preview, default_kind=payload.get("kind") or None)
            ImportPreviewCache.discard(token)
            _log_admin_action(
                "TAXONOMY_IMPORT",
                f"{preview.filename or 'upload'}: {result.inserted} inserted, {result.updated} updated, "
                f"{result.failed} failed",
            )
            return jsonify(result.as_dict())
        except TaxonomyError as e:
            return _error_response(e)
        except Exception as e:
            return _unexpected_error("committing taxonomy import", e)

    @app.route(f"{API_PREFIX}/import/<token>", methods=["DELETE"])
    @permission_required(IMPORT_TAXONOMY)
    def taxonomy_import_discard(token):
        return jsonify({"discarded": ImportPreviewCache.discard(token)})
