"""Convenience facade wiring the whole access-governance core together.

Example
-------
::

    from access_governance import AccessGovernor
    governor = AccessGovernor()
    governor.assign_role(42, "viewer")
    governor.has_permission(42, "DEAL", "view")    # True
    governor.has_permission(42, "DEAL", "edit")    # False
    governor.query({"resource": "USER"}).total_count   # 1
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping

from access_governance.audit.events import AuditContext, AuditEvent, AuditEventInput
from access_governance.audit.exporter import AuditExporter
from access_governance.audit.log import AuditLog, FilterLike
from access_governance.audit.query import AuditPage
from access_governance.config.loader import AccessConfig, ConfigLoader
from access_governance.permissions.assignments import AssignmentStore, UserId
from access_governance.permissions.catalog import PermissionCatalog
from access_governance.permissions.evaluator import AuthorizationEvaluator
from access_governance.permissions.roles import RoleRegistry


class AccessGovernor:
    """Access control and audit for the 80% use case.

    Builds the catalog, role registry, assignment store, evaluator, and
    audit log from one :class:`AccessConfig`.  Without a config the
    built-in CRM catalog and role presets are used with an in-memory log.

    Parameters
    ----------
    config:
        Validated configuration.  Defaults to :meth:`ConfigLoader.defaults`.
    clock:
        Optional server clock for audit timestamps.
    """

    def __init__(
        self,
        config: AccessConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config if config is not None else ConfigLoader().defaults()
        self.catalog = PermissionCatalog(self._config.catalog)
        self.audit = AuditLog.from_config(self._config.audit, self.catalog, clock=clock)
        self.roles = RoleRegistry.from_config(self._config, self.catalog, self.audit)
        self.assignments = AssignmentStore.from_config(self._config, self.roles, self.audit)
        self.evaluator = AuthorizationEvaluator(
            self.roles,
            self.assignments,
            self.audit,
            log_denials=self._config.authorization.log_denials,
            anomaly_buffer=self._config.authorization.anomaly_buffer,
        )

    @classmethod
    def from_file(cls, config_path: Path, clock: Callable[[], datetime] | None = None) -> AccessGovernor:
        """Build a governor from an ``access.yaml`` file."""
        return cls(ConfigLoader().load(config_path), clock=clock)

    # ------------------------------------------------------------------
    # Collaborator-facing API
    # ------------------------------------------------------------------

    def has_permission(self, user_id: UserId, resource: str, action: str) -> bool:
        """See :meth:`AuthorizationEvaluator.has_permission`."""
        return self.evaluator.has_permission(user_id, resource, action)

    def append(self, event: AuditEventInput | Mapping[str, Any]) -> AuditEvent:
        """See :meth:`AuditLog.append`."""
        return self.audit.append(event)

    def query(self, flt: FilterLike = None) -> AuditPage:
        """See :meth:`AuditLog.query`."""
        return self.audit.query(flt)

    def export(self, flt: FilterLike = None) -> Iterator[bytes]:
        """See :meth:`AuditLog.export`."""
        return self.audit.export(flt)

    def assign_role(
        self,
        user_id: UserId,
        role_id: str,
        *,
        context: AuditContext | None = None,
    ) -> str | None:
        """See :meth:`AssignmentStore.assign_role`."""
        return self.assignments.assign_role(user_id, role_id, context=context)

    def exporter(self) -> AuditExporter:
        """Return an exporter bound to this governor's audit log."""
        return AuditExporter(self.audit)

    @property
    def config(self) -> AccessConfig:
        """The configuration this governor was built from."""
        return self._config

    def __repr__(self) -> str:
        return (
            f"AccessGovernor(resources={len(self.catalog)}, roles={len(self.roles)}, "
            f"users={len(self.assignments)}, events={self.audit.count()})"
        )
