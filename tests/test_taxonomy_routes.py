import io

from flask import json

from taxonomy_admin.models import AdminLog, Department, Unit, User, db
from taxonomy_admin.routes.taxonomy import API_PREFIX
from taxonomy_admin.utils.permissions import EXPORT_TAXONOMY, IMPORT_TAXONOMY, VIEW_TAXONOMY


def _upload(content, filename, kind=None):
    data = {"file": (io.BytesIO(content.encode("utf-8")), filename)}
    if kind:
        data["kind"] = kind
    return data


class TestAccessControl:
    """Authentication and permission checks"""

    def test_anonymous_request_is_rejected(self, client):
        response = client.get(f"{API_PREFIX}/status")

        assert response.status_code == 401
        assert json.loads(response.data)["error"] == "Authentication required"

    def test_missing_permission_is_forbidden(self, app, make_user):
        viewer = make_user(VIEW_TAXONOMY)
        client = app.test_client(user=viewer)

        assert client.get(f"{API_PREFIX}/kinds").status_code == 200
        response = client.post(f"{API_PREFIX}/sync")
        assert response.status_code == 403
        assert "reconcile_taxonomy" in json.loads(response.data)["error"]

    def test_role_without_import_permission_cannot_preview(self, app, make_user):
        exporter = make_user(EXPORT_TAXONOMY)
        client = app.test_client(user=exporter)

        response = client.post(
            f"{API_PREFIX}/import/preview",
            data=_upload("code,name\nkg,Kilogram\n", "units.csv"),
            content_type="multipart/form-data",
        )

        assert response.status_code == 403


class TestReadEndpoints:
    def test_kinds_lists_registry_in_order(self, admin_client):
        response = admin_client.get(f"{API_PREFIX}/kinds")

        kinds = [kind["key"] for kind in json.loads(response.data)["kinds"]]
        assert kinds[0] == "department"
        assert kinds[-1] == "unit"
        assert len(kinds) == 7

    def test_records_include_usage_counts(self, admin_client, owners, taxonomy):
        taxonomy["hr"].is_active = False
        db.session.commit()

        response = admin_client.get(f"{API_PREFIX}/records/department?active_only=true")

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data["count"] == 2
        by_name = {record["name_en"]: record for record in data["records"]}
        assert by_name["Engineering"]["usage_count"] == 2
        assert "Human Resources" not in by_name

    def test_records_for_unknown_kind_is_bad_request(self, admin_client):
        response = admin_client.get(f"{API_PREFIX}/records/planet")

        assert response.status_code == 400
        assert "planet" in json.loads(response.data)["error"]

    def test_status_snapshot(self, admin_client, owners, taxonomy):
        response = admin_client.get(f"{API_PREFIX}/status")

        data = json.loads(response.data)
        assert data["degraded"] is False
        assert data["orphaned_total"] == 4
        assert data["owner_reference_counts"]["users.department_id"] == 2


class TestReconciliationEndpoints:
    def test_sync_repairs_and_logs(self, admin_client, admin_user, owners, taxonomy):
        owners["bob"].department_id = 9999
        db.session.commit()

        response = admin_client.post(f"{API_PREFIX}/sync")

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data["relations_repaired"] == 1
        assert db.session.get(User, owners["bob"].id).department_id is None
        entry = AdminLog.query.filter_by(action="TAXONOMY_SYNC").one()
        assert entry.admin_user_id == admin_user.id

    def test_cleanup_orphaned(self, admin_client, owners, taxonomy):
        response = admin_client.post(f"{API_PREFIX}/cleanup-orphaned")

        assert json.loads(response.data)["deleted_count"] == 4
        assert Department.query.count() == 1
        assert AdminLog.query.filter_by(action="TAXONOMY_CLEANUP_ORPHANED").count() == 1

    def test_reset_requires_explicit_confirmation(self, admin_client, owners):
        response = admin_client.post(f"{API_PREFIX}/reset-assignments", json={"confirm": "yes"})

        assert response.status_code == 400
        assert User.query.filter(User.department_id.isnot(None)).count() == 2

    def test_reset_with_confirmation(self, admin_client, owners):
        response = admin_client.post(f"{API_PREFIX}/reset-assignments", json={"confirm": True})

        assert response.status_code == 200
        assert json.loads(response.data)["total_cleared"] == 8
        assert AdminLog.query.filter_by(action="TAXONOMY_RESET_ASSIGNMENTS").count() == 1


class TestBulkEndpoint:
    def test_deactivate_reports_missing_target(self, admin_client, taxonomy):
        payload = {
            "action": "deactivate",
            "targets": [
                {"kind": "department", "id": taxonomy["engineering"].id},
                {"kind": "department", "id": 404},
            ],
        }

        response = admin_client.post(f"{API_PREFIX}/bulk", json=payload)

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data["successful"] == 1
        assert data["failed"] == 1
        assert data["errors"] == ["Department 404: not found"]
        assert AdminLog.query.filter_by(action="TAXONOMY_BULK_DEACTIVATE").count() == 1

    def test_invalid_action_is_bad_request(self, admin_client, taxonomy):
        response = admin_client.post(
            f"{API_PREFIX}/bulk",
            json={"action": "archive", "targets": [{"kind": "unit", "id": taxonomy["m3"].id}]},
        )

        assert response.status_code == 400
        assert AdminLog.query.count() == 0


class TestExportEndpoint:
    def test_csv_download_headers(self, admin_client, taxonomy):
        response = admin_client.get(f"{API_PREFIX}/export?kind=unit&format=csv")

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert response.headers["X-Record-Count"] == "1"
        disposition = response.headers["Content-Disposition"]
        assert disposition.startswith('attachment; filename="unit-')
        assert disposition.endswith('.csv"')

    def test_unknown_format_is_bad_request(self, admin_client):
        response = admin_client.get(f"{API_PREFIX}/export?kind=unit&format=xml")

        assert response.status_code == 400


class TestImportEndpoints:
    def test_preview_then_commit(self, admin_client, taxonomy):
        preview_response = admin_client.post(
            f"{API_PREFIX}/import/preview",
            data=_upload("code,name\nkg,Kilogram\nm3,Cubic meter\n", "units.csv", kind="unit"),
            content_type="multipart/form-data",
        )

        preview = json.loads(preview_response.data)
        assert preview_response.status_code == 200
        assert preview["preview"]["total_records"] == 2
        assert Unit.query.count() == 1

        commit_response = admin_client.post(f"{API_PREFIX}/import/{preview['token']}/commit", json={})

        result = json.loads(commit_response.data)
        assert result["inserted"] == 1
        assert result["updated"] == 1
        assert Unit.query.filter_by(code="m3").one().name == "Cubic meter"
        assert AdminLog.query.filter_by(action="TAXONOMY_IMPORT").count() == 1

        # the token is single use
        again = admin_client.post(f"{API_PREFIX}/import/{preview['token']}/commit", json={})
        assert again.status_code == 404

    def test_preview_without_file(self, admin_client):
        response = admin_client.post(f"{API_PREFIX}/import/preview", data={}, content_type="multipart/form-data")

        assert response.status_code == 400

    def test_preview_of_malformed_json(self, admin_client):
        response = admin_client.post(
            f"{API_PREFIX}/import/preview",
            data=_upload("{not json", "units.json"),
            content_type="multipart/form-data",
        )

        assert response.status_code == 400

    def test_discard_preview(self, app, make_user):
        client = app.test_client(user=make_user(IMPORT_TAXONOMY))
        preview = json.loads(
            client.post(
                f"{API_PREFIX}/import/preview",
                data=_upload("code,name\nkg,Kilogram\n", "units.csv", kind="unit"),
                content_type="multipart/form-data",
            ).data
        )

        first = client.delete(f"{API_PREFIX}/import/{preview['token']}")
        second = client.delete(f"{API_PREFIX}/import/{preview['token']}")

        assert json.loads(first.data) == {"discarded": True}
        assert json.loads(second.data) == {"discarded": False}
        assert Unit.query.count() == 0
