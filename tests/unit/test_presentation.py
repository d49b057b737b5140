"""Tests for display labels and styles."""
from __future__ import annotations

from access_governance.audit.events import AuditAction, Severity
from access_governance.permissions.catalog import PermissionCatalog
from access_governance.presentation import (
    ACTION_DISPLAY,
    SEVERITY_DISPLAY,
    action_label,
    resource_label,
    severity_label,
    status_label,
)


class TestDisplayTables:
    def test_every_action_has_display(self) -> None:
        assert set(ACTION_DISPLAY) == set(AuditAction)

    def test_every_severity_has_display(self) -> None:
        assert set(SEVERITY_DISPLAY) == set(Severity)


class TestLabels:
    def test_action_label_accepts_value(self) -> None:
        assert action_label(AuditAction.PERMISSION) == "Permission"
        assert action_label("LOGOUT") == "Logout"  # type: ignore[arg-type]

    def test_severity_label(self) -> None:
        assert severity_label(Severity.CRITICAL) == "Critical"

    def test_status_label(self) -> None:
        assert status_label(True) == "Success"
        assert status_label(False) == "Failed"

    def test_resource_label_from_catalog(self) -> None:
        assert resource_label("INTEGRATION", PermissionCatalog.default()) == "Integration"

    def test_resource_label_fallback(self) -> None:
        assert resource_label("PIPELINE") == "Pipeline"
