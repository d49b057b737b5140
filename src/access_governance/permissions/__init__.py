"""Role-based permission system for access-governance.

Provides the static :class:`PermissionCatalog`, the :class:`RoleRegistry`
that owns the permission matrix, the :class:`AssignmentStore` mapping users
to roles, and the :class:`AuthorizationEvaluator` runtime check.

Example
-------
::

    from access_governance.audit import AuditLog
    from access_governance.permissions import (
        AssignmentStore,
        AuthorizationEvaluator,
        PermissionCatalog,
        RoleRegistry,
    )

    catalog = PermissionCatalog.default()
    log = AuditLog(catalog=catalog)
    registry = RoleRegistry(catalog, log)
    registry.create_role("Viewer", permissions={"DEAL": ["view"]})
    assignments = AssignmentStore(registry, log)
    assignments.assign_role(42, "viewer")
    assert AuthorizationEvaluator(registry, assignments).has_permission(42, "DEAL", "view")
"""
from __future__ import annotations

from access_governance.permissions.assignments import AssignmentStore, User, UserId
from access_governance.permissions.catalog import PermissionCatalog
from access_governance.permissions.evaluator import (
    AccessDecision,
    Anomaly,
    AuthorizationEvaluator,
)
from access_governance.permissions.roles import Role, RoleRegistry, slugify

__all__ = [
    "AccessDecision",
    "Anomaly",
    "AssignmentStore",
    "AuthorizationEvaluator",
    "PermissionCatalog",
    "Role",
    "RoleRegistry",
    "User",
    "UserId",
    "slugify",
]
