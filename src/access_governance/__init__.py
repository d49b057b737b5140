"""access-governance — Role-based access control and audit logging core.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import access_governance as ag
>>> ag.__version__
'0.1.0'
>>> governor = ag.AccessGovernor()
>>> governor.assign_role(42, "viewer")
>>> governor.has_permission(42, "DEAL", "view")
True
>>> governor.has_permission(42, "DEAL", "edit")
False
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from access_governance.errors import (
    AccessGovernanceError,
    AuditStoreError,
    ConfigError,
    InvalidPermissionError,
    PermissionDeniedError,
    ProtectedRoleError,
    RoleInUseError,
    UnknownEventError,
    UnknownResourceError,
    UnknownRoleError,
    UnknownUserError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
from access_governance.audit.events import (
    AuditAction,
    AuditContext,
    AuditEvent,
    AuditEventInput,
    Severity,
)
from access_governance.audit.exporter import AuditExporter
from access_governance.audit.log import AuditLog
from access_governance.audit.query import AuditFilter, AuditPage, AuditSummary
from access_governance.audit.store import AuditStore, InMemoryAuditStore, JsonlAuditStore

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------
from access_governance.permissions.catalog import PermissionCatalog
from access_governance.permissions.roles import Role, RoleRegistry
from access_governance.permissions.assignments import AssignmentStore, User
from access_governance.permissions.evaluator import AccessDecision, AuthorizationEvaluator

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from access_governance.config.loader import AccessConfig, ConfigLoader

from access_governance.governor import AccessGovernor

__all__ = [
    "__version__",
    "AccessGovernor",
    # Errors
    "AccessGovernanceError",
    "AuditStoreError",
    "ConfigError",
    "InvalidPermissionError",
    "PermissionDeniedError",
    "ProtectedRoleError",
    "RoleInUseError",
    "UnknownEventError",
    "UnknownResourceError",
    "UnknownRoleError",
    "UnknownUserError",
    "ValidationError",
    # Audit
    "AuditAction",
    "AuditContext",
    "AuditEvent",
    "AuditEventInput",
    "AuditExporter",
    "AuditFilter",
    "AuditLog",
    "AuditPage",
    "AuditStore",
    "AuditSummary",
    "InMemoryAuditStore",
    "JsonlAuditStore",
    "Severity",
    # Permissions
    "AccessDecision",
    "AssignmentStore",
    "AuthorizationEvaluator",
    "PermissionCatalog",
    "Role",
    "RoleRegistry",
    "User",
    # Configuration
    "AccessConfig",
    "ConfigLoader",
]
