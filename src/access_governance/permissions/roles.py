"""Role registry and permission matrix editing.

Each role owns one row of the permission matrix: a mapping of resource key
to the frozenset of granted actions.  Grants are always validated against
the :class:`PermissionCatalog`, and every successful mutation appends exactly
one audit event.  The audit append happens before the in-memory change is
applied, so a failed append leaves the registry untouched.

Protected roles (``admin`` by default) can never be deleted and can never be
left without any grant.

Example
-------
::

    registry = RoleRegistry(catalog, audit_log)
    registry.create_role("Viewer", "Read-only access")
    registry.set_permission("viewer", "DEAL", "view", True)
    registry.get_permissions("viewer")["DEAL"]   # frozenset({'view'})
"""
from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Iterable, Mapping

from access_governance.audit.events import AuditAction, AuditContext, Severity
from access_governance.errors import (
    InvalidPermissionError,
    ProtectedRoleError,
    RoleInUseError,
    UnknownResourceError,
    UnknownRoleError,
    ValidationError,
)
from access_governance.permissions.catalog import PermissionCatalog

if TYPE_CHECKING:
    from access_governance.audit.log import AuditLog
    from access_governance.config.loader import AccessConfig

logger = logging.getLogger(__name__)

_AUDIT_RESOURCE = "ROLE"
_EMPTY: frozenset[str] = frozenset()
_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

PermissionRow = dict[str, frozenset[str]]
ReferenceCheck = Callable[[str], int]


def slugify(name: str) -> str:
    """Return the role id derived from a display name (``"Sales Rep"`` → ``"sales_rep"``)."""
    return _SLUG_PATTERN.sub("_", name.strip().lower()).strip("_")


@dataclass(frozen=True)
class Role:
    """A named bundle of per-resource grants.

    Attributes
    ----------
    id:
        Stable identifier used in assignments and checks.
    name:
        Display name.
    description:
        Free-text description.
    created_at:
        When the role was created (``None`` for configuration seeds).
    created_by:
        Actor that created the role (``None`` for configuration seeds).
    """

    id: str
    name: str
    description: str = ""
    created_at: datetime | None = field(default=None, compare=False)
    created_by: str | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "created_by": self.created_by,
        }


class RoleRegistry:
    """CRUD store for roles and their permission-matrix rows.

    Parameters
    ----------
    catalog:
        Catalog that grants are validated against.
    audit_log:
        Log that receives one event per successful mutation.
    protected_roles:
        Role ids that cannot be deleted or emptied.
    """

    def __init__(
        self,
        catalog: PermissionCatalog,
        audit_log: AuditLog,
        protected_roles: Iterable[str] = ("admin",),
    ) -> None:
        self._catalog = catalog
        self._audit = audit_log
        self._protected: frozenset[str] = frozenset(protected_roles)
        self._roles: dict[str, Role] = {}
        self._matrix: dict[str, PermissionRow] = {}
        self._reference_checks: list[ReferenceCheck] = []
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: AccessConfig,
        catalog: PermissionCatalog,
        audit_log: AuditLog,
    ) -> RoleRegistry:
        """Build a registry seeded with the roles declared in *config*.

        Seeded roles are deployment configuration and are not audited.
        """
        registry = cls(catalog, audit_log, protected_roles=config.protected_roles)
        for role_config in config.roles:
            row = registry._validated_row(role_config.id, role_config.permissions)
            registry._roles[role_config.id] = Role(
                id=role_config.id,
                name=role_config.name,
                description=role_config.description,
            )
            registry._matrix[role_config.id] = row
        logger.info(
            "Seeded %d roles (protected: %s)",
            len(registry._roles),
            ", ".join(sorted(registry._protected)) or "none",
        )
        return registry

    # ------------------------------------------------------------------
    # Role lifecycle
    # ------------------------------------------------------------------

    def create_role(
        self,
        name: str,
        description: str = "",
        *,
        role_id: str | None = None,
        permissions: Mapping[str, Iterable[str]] | None = None,
        context: AuditContext | None = None,
    ) -> Role:
        """Create a role and append a CREATE event.

        The id defaults to :func:`slugify` of *name*.

        Raises
        ------
        ValidationError
            If the name is blank or the id already exists.
        InvalidPermissionError
            If *permissions* grants anything outside the catalog.
        ProtectedRoleError
            If a protected role would be created with no grants.
        """
        clean_name = name.strip() if isinstance(name, str) else ""
        if not clean_name:
            raise ValidationError("Role name must not be blank.")
        rid = role_id if role_id is not None else slugify(clean_name)
        if not rid:
            raise ValidationError(f"Cannot derive a role id from name {name!r}.")

        if rid in self._roles:
            raise ValidationError(f"Role {rid!r} already exists.")
        row = self._validated_row(rid, permissions or {})
        if rid in self._protected and not any(row.values()):
            raise ProtectedRoleError(rid, f"Protected role {rid!r} must grant at least one action.")

        with self._lock:
            if rid in self._roles:
                raise ValidationError(f"Role {rid!r} already exists.")
            role = Role(
                id=rid,
                name=clean_name,
                description=description,
                created_at=datetime.now(tz=timezone.utc),
                created_by=(context.actor if context else "system"),
            )
            self._audit.record(
                AuditAction.CREATE,
                _AUDIT_RESOURCE,
                rid,
                f"Created role {clean_name!r}",
                severity=Severity.MEDIUM,
                changes=(None, {**self._describe(role), "permissions": _as_lists(row)}),
                context=context,
            )
            self._roles[rid] = role
            self._matrix[rid] = row

        logger.info("Created role %s", rid)
        return role

    def update_role(
        self,
        role_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        context: AuditContext | None = None,
    ) -> Role:
        """Rename or re-describe a role, appending an UPDATE event.

        A call that changes nothing appends nothing.
        """
        if name is not None and not name.strip():
            raise ValidationError("Role name must not be blank.")
        with self._lock:
            current = self._require(role_id)
            updated = replace(
                current,
                name=name.strip() if name is not None else current.name,
                description=description if description is not None else current.description,
            )
            if updated == current:
                return current
            self._audit.record(
                AuditAction.UPDATE,
                _AUDIT_RESOURCE,
                role_id,
                f"Updated role {updated.name!r}",
                severity=Severity.MEDIUM,
                changes=(self._describe(current), self._describe(updated)),
                context=context,
            )
            self._roles[role_id] = updated
        return updated

    def delete_role(self, role_id: str, *, context: AuditContext | None = None) -> None:
        """Delete a role and append a DELETE event.

        Raises
        ------
        ProtectedRoleError
            If *role_id* is protected.
        UnknownRoleError
            If the role does not exist.
        RoleInUseError
            If users are still assigned to the role.
        """
        if role_id in self._protected:
            raise ProtectedRoleError(role_id, f"Role {role_id!r} is protected and cannot be deleted.")
        with self._lock:
            role = self._require(role_id)
            in_use = sum(check(role_id) for check in self._reference_checks)
            if in_use:
                raise RoleInUseError(role_id, in_use)
            self._audit.record(
                AuditAction.DELETE,
                _AUDIT_RESOURCE,
                role_id,
                f"Deleted role {role.name!r}",
                severity=Severity.HIGH,
                changes=(
                    {**self._describe(role), "permissions": _as_lists(self._matrix[role_id])},
                    None,
                ),
                context=context,
            )
            del self._roles[role_id]
            del self._matrix[role_id]
        logger.info("Deleted role %s", role_id)

    # ------------------------------------------------------------------
    # Matrix editing
    # ------------------------------------------------------------------

    def set_permission(
        self,
        role_id: str,
        resource: str,
        action: str,
        enabled: bool,
        *,
        context: AuditContext | None = None,
    ) -> bool:
        """Grant or revoke a single action, appending a PERMISSION event.

        Returns
        -------
        bool
            ``True`` if the matrix changed; a no-op toggle returns ``False``
            and appends nothing.

        Raises
        ------
        UnknownRoleError
            If the role does not exist.
        InvalidPermissionError
            If the resource/action pair is not in the catalog.
        ProtectedRoleError
            If the revoke would leave a protected role with no grants.
        """
        if not self._catalog.is_valid(resource, action):
            raise InvalidPermissionError(resource, action)
        with self._lock:
            self._require(role_id)
            current = self._matrix[role_id].get(resource, _EMPTY)
            updated = current | {action} if enabled else current - {action}
            if updated == current:
                return False
            verb = "Granted" if enabled else "Revoked"
            preposition = "to" if enabled else "from"
            self._apply_row(
                role_id,
                resource,
                updated,
                f"{verb} {resource}:{action} {preposition} role {role_id!r}",
                context,
            )
        return True

    def set_permissions(
        self,
        role_id: str,
        resource: str,
        actions: Iterable[str],
        *,
        context: AuditContext | None = None,
    ) -> bool:
        """Replace the granted actions for one resource of a role.

        Same validation and audit behaviour as :meth:`set_permission`.
        """
        try:
            allowed = self._catalog.action_set(resource)
        except UnknownResourceError:
            raise InvalidPermissionError(resource, "*", "unknown resource") from None
        requested = frozenset(actions)
        invalid = sorted(requested - allowed)
        if invalid:
            raise InvalidPermissionError(resource, invalid[0])
        with self._lock:
            self._require(role_id)
            current = self._matrix[role_id].get(resource, _EMPTY)
            if requested == current:
                return False
            self._apply_row(
                role_id,
                resource,
                requested,
                f"Set {resource} permissions of role {role_id!r} to "
                f"[{', '.join(sorted(requested))}]",
                context,
            )
        return True

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get_permissions(self, role_id: str) -> dict[str, frozenset[str]]:
        """Return the full resource → granted-actions map of a role.

        Every catalog resource is present; ungranted resources map to an
        empty frozenset.

        Raises
        ------
        UnknownRoleError
            If the role does not exist.
        """
        row = self._matrix.get(role_id)
        if row is None:
            raise UnknownRoleError(role_id)
        return {resource: row.get(resource, _EMPTY) for resource in self._catalog}

    def granted_actions(self, role_id: str, resource: str) -> frozenset[str] | None:
        """Hot-path lookup of one matrix cell.

        Returns ``None`` when the role does not exist.
        """
        row = self._matrix.get(role_id)
        if row is None:
            return None
        return row.get(resource, _EMPTY)

    def get_role(self, role_id: str) -> Role:
        """Return the role with *role_id* or raise :class:`UnknownRoleError`."""
        return self._require(role_id)

    def list_roles(self) -> list[Role]:
        """Return all roles in creation order."""
        return list(self._roles.values())

    def matrix(self) -> dict[str, dict[str, list[str]]]:
        """Return the whole permission matrix as sorted lists, by role id."""
        return {rid: _as_lists(row) for rid, row in self._matrix.items()}

    def is_protected(self, role_id: str) -> bool:
        return role_id in self._protected

    def add_reference_check(self, check: ReferenceCheck) -> None:
        """Register a callable returning how many records reference a role.

        :meth:`delete_role` refuses to delete a role while any check
        reports a non-zero count.
        """
        self._reference_checks.append(check)

    @property
    def catalog(self) -> PermissionCatalog:
        return self._catalog

    @property
    def protected_roles(self) -> frozenset[str]:
        return self._protected

    def __contains__(self, role_id: object) -> bool:
        return role_id in self._roles

    def __len__(self) -> int:
        return len(self._roles)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, role_id: str) -> Role:
        role = self._roles.get(role_id)
        if role is None:
            raise UnknownRoleError(role_id)
        return role

    def _apply_row(
        self,
        role_id: str,
        resource: str,
        updated: frozenset[str],
        description: str,
        context: AuditContext | None,
    ) -> None:
        """Audit and apply a row change.  Caller holds the lock."""
        current_row = self._matrix[role_id]
        current = current_row.get(resource, _EMPTY)
        if role_id in self._protected and not updated:
            others = any(actions for key, actions in current_row.items() if key != resource)
            if not others:
                raise ProtectedRoleError(
                    role_id,
                    f"Protected role {role_id!r} cannot be left without any permission.",
                )
        self._audit.record(
            AuditAction.PERMISSION,
            _AUDIT_RESOURCE,
            role_id,
            description,
            severity=Severity.HIGH if role_id in self._protected else Severity.MEDIUM,
            changes=({resource: sorted(current)}, {resource: sorted(updated)}),
            context=context,
        )
        # Rows are replaced wholesale so lock-free readers see a consistent row.
        self._matrix[role_id] = {**current_row, resource: updated}
        logger.info("Role %s %s: %s -> %s", role_id, resource, sorted(current), sorted(updated))

    def _validated_row(
        self,
        role_id: str,
        permissions: Mapping[str, Iterable[str]],
    ) -> PermissionRow:
        row: PermissionRow = {}
        for resource, actions in permissions.items():
            try:
                allowed = self._catalog.action_set(resource)
            except UnknownResourceError:
                raise InvalidPermissionError(
                    resource, "*", f"unknown resource in role {role_id!r}"
                ) from None
            granted = frozenset(actions)
            invalid = sorted(granted - allowed)
            if invalid:
                raise InvalidPermissionError(resource, invalid[0])
            row[resource] = granted
        return row

    @staticmethod
    def _describe(role: Role) -> dict[str, object]:
        return {"name": role.name, "description": role.description}


def _as_lists(row: Mapping[str, frozenset[str]]) -> dict[str, list[str]]:
    return {resource: sorted(actions) for resource, actions in row.items()}


__all__ = [
    "Role",
    "RoleRegistry",
    "slugify",
]
