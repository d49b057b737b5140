"""Tests for AssignmentStore."""
from __future__ import annotations

import pytest

from access_governance.audit.events import AuditAction, AuditContext, Severity
from access_governance.audit.log import AuditLog
from access_governance.config.loader import ConfigLoader
from access_governance.errors import UnknownRoleError, UnknownUserError
from access_governance.permissions.assignments import AssignmentStore, User
from access_governance.permissions.catalog import PermissionCatalog
from access_governance.permissions.roles import RoleRegistry


class TestAssignRole:
    def test_first_assignment_returns_none(self, assignments: AssignmentStore) -> None:
        assert assignments.assign_role(42, "viewer") is None
        assert assignments.role_of(42) == "viewer"

    def test_reassignment_returns_previous(self, assignments: AssignmentStore) -> None:
        assignments.assign_role(42, "viewer")
        assert assignments.assign_role(42, "admin") == "viewer"
        assert assignments.role_of(42) == "admin"

    def test_appends_update_event(self, assignments: AssignmentStore, audit_log: AuditLog) -> None:
        before = audit_log.count()
        assignments.assign_role(42, "viewer", context=AuditContext(actor="John Doe"))
        assert audit_log.count() == before + 1
        page = audit_log.query({"resource": "USER"})
        assert page.total_count == 1
        event = page.events[0]
        assert event.action is AuditAction.UPDATE
        assert event.resource_id == 42
        assert event.actor == "John Doe"
        assert event.details.changes.before == {"role": None}
        assert event.details.changes.after == {"role": "viewer"}

    def test_admin_assignment_is_high_severity(self, assignments: AssignmentStore, audit_log: AuditLog) -> None:
        assignments.assign_role(1, "admin")
        assert audit_log.query({"resource": "USER"}).events[0].severity is Severity.HIGH

    def test_plain_assignment_is_medium_severity(self, assignments: AssignmentStore, audit_log: AuditLog) -> None:
        assignments.assign_role(2, "viewer")
        assert audit_log.query({"resource": "USER"}).events[0].severity is Severity.MEDIUM

    def test_same_role_is_noop(self, assignments: AssignmentStore, audit_log: AuditLog) -> None:
        assignments.assign_role(42, "viewer")
        before = audit_log.count()
        assert assignments.assign_role(42, "viewer") == "viewer"
        assert audit_log.count() == before

    def test_attribute_update_records_changed_fields(
        self, assignments: AssignmentStore, audit_log: AuditLog
    ) -> None:
        assignments.assign_role(42, "viewer", name="John Doe", email="john@example.com")
        assignments.assign_role(42, "viewer", email="jdoe@example.com")
        event = audit_log.query({"resource": "USER"}).events[0]
        assert event.description == "Updated user 'John Doe' ('viewer' unchanged)"
        assert event.details.changes.before == {"role": "viewer", "email": "john@example.com"}
        assert event.details.changes.after == {"role": "viewer", "email": "jdoe@example.com"}

    def test_role_change_description(self, assignments: AssignmentStore, audit_log: AuditLog) -> None:
        assignments.assign_role(42, "viewer", name="John Doe")
        assignments.assign_role(42, "admin")
        event = audit_log.query({"resource": "USER"}).events[0]
        assert event.description == "Assigned role 'admin' to user 'John Doe'"
        assert event.details.changes.after == {"role": "admin"}

    def test_unknown_role(self, assignments: AssignmentStore, audit_log: AuditLog) -> None:
        before = audit_log.count()
        with pytest.raises(UnknownRoleError):
            assignments.assign_role(42, "ghost")
        assert 42 not in assignments
        assert audit_log.count() == before

    def test_int_and_str_ids_are_distinct(self, assignments: AssignmentStore) -> None:
        assignments.assign_role(42, "viewer")
        assert "42" not in assignments
        assert assignments.find_role("42") is None

    def test_name_and_email_kept(self, assignments: AssignmentStore) -> None:
        assignments.assign_role(5, "viewer", name="Jane Smith", email="jane@example.com")
        assignments.assign_role(5, "admin")
        user = assignments.get_user(5)
        assert user == User(id=5, role_id="admin", name="Jane Smith", email="jane@example.com")


class TestCounts:
    def test_count_users_by_role(self, assignments: AssignmentStore) -> None:
        for user_id in range(3):
            assignments.assign_role(user_id, "viewer")
        assignments.assign_role(99, "admin")
        assert assignments.count_users_by_role("viewer") == 3
        assert assignments.count_users_by_role("admin") == 1

    def test_count_follows_reassignment(self, assignments: AssignmentStore) -> None:
        assignments.assign_role(1, "viewer")
        assignments.assign_role(1, "admin")
        assert assignments.count_users_by_role("viewer") == 0
        assert assignments.role_counts() == {"admin": 1, "viewer": 0}

    def test_count_unknown_role(self, assignments: AssignmentStore) -> None:
        with pytest.raises(UnknownRoleError):
            assignments.count_users_by_role("ghost")

    def test_role_without_users_counts_zero(self, assignments: AssignmentStore) -> None:
        assert assignments.count_users_by_role("viewer") == 0


class TestUnassign:
    def test_unassign_returns_role(self, assignments: AssignmentStore, audit_log: AuditLog) -> None:
        assignments.assign_role(7, "viewer")
        assert assignments.unassign(7) == "viewer"
        assert 7 not in assignments
        assert assignments.count_users_by_role("viewer") == 0
        event = audit_log.query({"resource": "USER", "action": "DELETE"}).events[0]
        assert event.details.changes.after == {"role": None}

    def test_unassign_unknown_user(self, assignments: AssignmentStore) -> None:
        with pytest.raises(UnknownUserError):
            assignments.unassign(404)

    def test_unassigned_role_can_be_deleted(
        self, assignments: AssignmentStore, registry: RoleRegistry
    ) -> None:
        assignments.assign_role(7, "viewer")
        assignments.unassign(7)
        registry.delete_role("viewer")
        assert "viewer" not in registry


class TestLookups:
    def test_role_of_unknown_user(self, assignments: AssignmentStore) -> None:
        with pytest.raises(UnknownUserError):
            assignments.role_of(1)

    def test_list_users_by_role(self, assignments: AssignmentStore) -> None:
        assignments.assign_role(1, "viewer")
        assignments.assign_role(2, "admin")
        assignments.assign_role(3, "viewer")
        assert [u.id for u in assignments.list_users("viewer")] == [1, 3]
        assert len(assignments.list_users()) == 3

    def test_search_users(self, assignments: AssignmentStore) -> None:
        assignments.assign_role(1, "viewer", name="Jane Smith", email="jane@example.com")
        assignments.assign_role(2, "viewer", name="Bob Johnson", email="bob@example.com")
        assert [u.id for u in assignments.search_users("SMITH")] == [1]
        assert [u.id for u in assignments.search_users("example.com")] == [1, 2]


class TestFromConfig:
    def test_seeds_users_without_auditing(self, catalog: PermissionCatalog, audit_log: AuditLog) -> None:
        config = ConfigLoader().load_string(
            """
users:
  - id: 1
    name: John Doe
    role: admin
  - id: bob
    role: sales
"""
        )
        registry = RoleRegistry.from_config(config, catalog, audit_log)
        store = AssignmentStore.from_config(config, registry, audit_log)
        assert store.role_of(1) == "admin"
        assert store.role_of("bob") == "sales"
        assert audit_log.count() == 0
