from unittest.mock import patch

from taxonomy_admin.models import Currency, Department, JobTitle, Project, User, db
from taxonomy_admin.taxonomy.cancellation import CancellationToken
from taxonomy_admin.taxonomy.errors import TransportFailureError
from taxonomy_admin.taxonomy.pipeline import ReconciliationEngine, ReferenceIntegrityChecker
from taxonomy_admin.taxonomy.registry import get_kind_registry
from taxonomy_admin.taxonomy.store import OwnerStore, TaxonomyStore


def _active_orders(model):
    return sorted(
        record.display_order for record in model.query.filter(model.is_active.is_(True)).all()
    )


class TestSyncIntegration:
    """Reference repair and dense renumbering"""

    def test_renumbers_active_records_densely(self, app, taxonomy):
        taxonomy["engineering"].display_order = 5
        taxonomy["finance"].display_order = 5
        taxonomy["hr"].display_order = 40
        taxonomy["sar"].display_order = 0
        taxonomy["analyst"].is_active = False
        taxonomy["analyst"].display_order = 99
        db.session.commit()

        result = ReconciliationEngine().sync_integration()

        assert result.errors == []
        for spec in get_kind_registry().values():
            orders = _active_orders(spec.model)
            assert orders == list(range(1, len(orders) + 1))
        # ties resolve by id
        assert db.session.get(Department, taxonomy["engineering"].id).display_order == 1
        assert db.session.get(Department, taxonomy["finance"].id).display_order == 2
        assert db.session.get(Currency, taxonomy["sar"].id).display_order == 1
        assert db.session.get(JobTitle, taxonomy["analyst"].id).display_order == 99
        assert result.records_reordered_per_kind["department"] == 3
        assert result.records_reordered_per_kind["currency"] == 2

    def test_second_run_is_a_no_op(self, app, owners, taxonomy):
        owners["bob"].department_id = 555
        taxonomy["hr"].display_order = 10
        db.session.commit()
        engine = ReconciliationEngine()

        first = engine.sync_integration()
        second = engine.sync_integration()

        assert first.relations_repaired == 1
        assert first.records_reordered == 1
        assert second.relations_repaired == 0
        assert second.records_reordered == 0
        assert second.warnings == []

    def test_nulls_only_broken_fields(self, app, owners, taxonomy):
        project = owners["project"]
        project.division_id = 777
        project.unit_id = 888
        db.session.commit()

        result = ReconciliationEngine().sync_integration()

        refreshed = db.session.get(Project, project.id)
        assert refreshed.division_id is None
        assert refreshed.unit_id is None
        assert refreshed.currency_id == taxonomy["usd"].id
        assert refreshed.project_type_id == taxonomy["construction"].id
        assert result.relations_repaired == 2
        assert result.owner_records_updated == 1
        assert len(result.warnings) == 2
        assert ReferenceIntegrityChecker().find_inconsistent() == []

    def test_deleted_department_scenario(self, app, owners, taxonomy):
        engineering_id = taxonomy["engineering"].id
        assert ReferenceIntegrityChecker().usage_counts("department")[engineering_id] == 2

        TaxonomyStore().delete("department", engineering_id)
        result = ReconciliationEngine().sync_integration()

        assert User.query.filter(User.department_id.isnot(None)).count() == 0
        assert result.relations_repaired == 2
        assert result.owner_records_updated == 2
        assert len(result.warnings) == 2
        assert all("department_id" in warning for warning in result.warnings)
        assert any(warning.startswith("User alice") for warning in result.warnings)
        assert any(warning.startswith("User bob") for warning in result.warnings)

    def test_owner_failure_is_isolated(self, app, owners, taxonomy):
        owners["alice"].department_id = 1001
        owners["bob"].department_id = 1002
        db.session.commit()
        alice_id = owners["alice"].id
        original = OwnerStore.update_owner

        def flaky(self, model, owner_id, fields):
            if owner_id == alice_id:
                raise TransportFailureError("write timed out")
            return original(self, model, owner_id, fields)

        with patch.object(OwnerStore, "update_owner", flaky):
            result = ReconciliationEngine().sync_integration()

        assert result.owner_records_updated == 1
        assert result.errors == ["User alice: write timed out"]
        assert db.session.get(User, alice_id).department_id == 1001
        assert db.session.get(User, owners["bob"].id).department_id is None

    def test_cancelled_token_stops_before_first_item(self, app, owners, taxonomy):
        owners["alice"].department_id = 4242
        db.session.commit()
        token = CancellationToken()
        token.cancel()

        result = ReconciliationEngine().sync_integration(cancel_token=token)

        assert result.cancelled is True
        assert result.relations_repaired == 0
        assert db.session.get(User, owners["alice"].id).department_id == 4242


class TestCleanupOrphaned:
    """Deletion of unreferenced records"""

    def test_deletes_only_unreferenced_records(self, app, owners, taxonomy):
        referenced_ids = {kind: set(ReferenceIntegrityChecker().usage_counts(kind)) for kind in get_kind_registry()}

        result = ReconciliationEngine().cleanup_orphaned()

        assert result.deleted_count == 4
        assert result.deleted_per_kind["department"] == 2
        assert result.deleted_per_kind["job_title"] == 1
        assert result.deleted_per_kind["currency"] == 1
        for spec in get_kind_registry().values():
            remaining = {record.id for record in spec.model.query.all()}
            assert remaining == referenced_ids[spec.key]

    def test_skips_record_referenced_after_scan(self, app, owners, taxonomy):
        finance_id = taxonomy["finance"].id
        alice_id = owners["alice"].id
        checker = ReferenceIntegrityChecker()
        original_find = checker.find_orphans

        def scan_then_reference():
            orphaned = original_find()
            db.session.get(User, alice_id).department_id = finance_id
            db.session.commit()
            return orphaned

        checker.find_orphans = scan_then_reference
        result = ReconciliationEngine(checker=checker).cleanup_orphaned()

        assert db.session.get(Department, finance_id) is not None
        assert result.skipped == ["Department Finance: now referenced by 1 owner(s)"]
        assert result.deleted_per_kind["department"] == 1

    def test_cancellation_reports_partial_progress(self, app, taxonomy):
        token = CancellationToken()
        store = TaxonomyStore()
        original_delete = store.delete

        def delete_then_cancel(kind, record_id):
            original_delete(kind, record_id)
            token.cancel()

        store.delete = delete_then_cancel
        result = ReconciliationEngine(store=store).cleanup_orphaned(cancel_token=token)

        assert result.cancelled is True
        assert result.deleted_count == 1


class TestResetAllAssignments:
    """Unconditional clearing of owner references"""

    def test_clears_every_relation_and_is_idempotent(self, app, owners, taxonomy):
        engine = ReconciliationEngine()

        first = engine.reset_all_assignments()
        second = engine.reset_all_assignments()

        assert first.total_cleared == 8
        assert first.cleared_per_relation["users.department_id"] == 2
        assert first.cleared_per_relation["projects.currency_id"] == 1
        assert second.total_cleared == 0
        project = db.session.get(Project, owners["project"].id)
        assert project.project_type_id is None
        assert project.unit_id is None
        assert User.query.filter(User.job_title_id.isnot(None)).count() == 0
        # taxonomy records themselves are untouched
        assert Department.query.count() == 3
