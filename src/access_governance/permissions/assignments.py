"""User-to-role assignment store.

Every user holds exactly one role.  Assignment changes append an UPDATE
audit event on the ``USER`` resource whose diff holds the previous and new
role, plus any changed name or email.  The store registers itself with the
:class:`RoleRegistry` so a role that still has users cannot be deleted.

User ids are compared by value and type: ``42`` and ``"42"`` are
different users.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Union

from access_governance.audit.events import AuditAction, AuditContext, Severity
from access_governance.errors import UnknownRoleError, UnknownUserError
from access_governance.permissions.roles import RoleRegistry

if TYPE_CHECKING:
    from access_governance.audit.log import AuditLog
    from access_governance.config.loader import AccessConfig

logger = logging.getLogger(__name__)

UserId = Union[int, str]

_AUDIT_RESOURCE = "USER"


@dataclass(frozen=True)
class User:
    """A user and the single role assigned to it."""

    id: UserId
    role_id: str
    name: str = ""
    email: str = ""

    @property
    def display_name(self) -> str:
        return self.name or str(self.id)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role_id}


def _assignment_diff(previous: User | None, updated: User) -> tuple[dict[str, object], dict[str, object]]:
    """Return the (before, after) diff: the role, plus any changed name or email."""
    before: dict[str, object] = {"role": previous.role_id if previous else None}
    after: dict[str, object] = {"role": updated.role_id}
    for field in ("name", "email"):
        old = getattr(previous, field) if previous else ""
        new = getattr(updated, field)
        if old != new:
            before[field] = old
            after[field] = new
    return before, after


class AssignmentStore:
    """Maps user ids to role ids.

    Parameters
    ----------
    registry:
        Registry used to validate role ids.
    audit_log:
        Log that receives one event per assignment change.
    """

    def __init__(self, registry: RoleRegistry, audit_log: AuditLog) -> None:
        self._registry = registry
        self._audit = audit_log
        self._users: dict[UserId, User] = {}
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()
        registry.add_reference_check(self._users_holding)

    @classmethod
    def from_config(
        cls,
        config: AccessConfig,
        registry: RoleRegistry,
        audit_log: AuditLog,
    ) -> AssignmentStore:
        """Build a store seeded with the users declared in *config*.

        Seeded assignments are deployment configuration and are not audited.
        """
        store = cls(registry, audit_log)
        for user_config in config.users:
            if user_config.role not in registry:
                raise UnknownRoleError(user_config.role)
            store._put(
                User(
                    id=user_config.id,
                    role_id=user_config.role,
                    name=user_config.name,
                    email=user_config.email,
                )
            )
        logger.info("Seeded %d user assignments", len(store._users))
        return store

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def assign_role(
        self,
        user_id: UserId,
        role_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        context: AuditContext | None = None,
    ) -> str | None:
        """Assign *role_id* to *user_id* and return the previous role id.

        The user record is created on first assignment.  Re-assigning the
        same role with unchanged attributes appends nothing.

        Raises
        ------
        UnknownRoleError
            If the role does not exist.
        """
        if role_id not in self._registry:
            raise UnknownRoleError(role_id)

        with self._lock:
            previous = self._users.get(user_id)
            previous_role = previous.role_id if previous else None
            if previous is None:
                updated = User(id=user_id, role_id=role_id, name=name or "", email=email or "")
            else:
                updated = replace(
                    previous,
                    role_id=role_id,
                    name=name if name is not None else previous.name,
                    email=email if email is not None else previous.email,
                )
            if updated == previous:
                return previous_role

            privileged = self._registry.is_protected(role_id) or (
                previous_role is not None and self._registry.is_protected(previous_role)
            )
            before, after = _assignment_diff(previous, updated)
            if previous_role == role_id:
                description = f"Updated user {updated.display_name!r} ({role_id!r} unchanged)"
            else:
                description = f"Assigned role {role_id!r} to user {updated.display_name!r}"
            self._audit.record(
                AuditAction.UPDATE,
                _AUDIT_RESOURCE,
                user_id,
                description,
                severity=Severity.HIGH if privileged else Severity.MEDIUM,
                changes=(before, after),
                context=context,
            )
            self._put(updated)

        logger.info("User %r role %s -> %s", user_id, previous_role, role_id)
        return previous_role

    def unassign(self, user_id: UserId, *, context: AuditContext | None = None) -> str:
        """Remove a user's record and return the role it held.

        Raises
        ------
        UnknownUserError
            If the user has no assignment.
        """
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UnknownUserError(user_id)
            self._audit.record(
                AuditAction.DELETE,
                _AUDIT_RESOURCE,
                user_id,
                f"Removed role {user.role_id!r} from user {user.display_name!r}",
                severity=Severity.MEDIUM,
                changes=({"role": user.role_id}, {"role": None}),
                context=context,
            )
            del self._users[user_id]
            self._counts[user.role_id] -= 1
        logger.info("User %r unassigned from %s", user_id, user.role_id)
        return user.role_id

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def count_users_by_role(self, role_id: str) -> int:
        """Return how many users currently hold *role_id*.

        Raises
        ------
        UnknownRoleError
            If the role does not exist.
        """
        if role_id not in self._registry:
            raise UnknownRoleError(role_id)
        return self._counts.get(role_id, 0)

    def role_counts(self) -> dict[str, int]:
        """Return user counts for every registered role."""
        return {role.id: self._counts.get(role.id, 0) for role in self._registry.list_roles()}

    def get_user(self, user_id: UserId) -> User:
        """Return the user record or raise :class:`UnknownUserError`."""
        user = self._users.get(user_id)
        if user is None:
            raise UnknownUserError(user_id)
        return user

    def role_of(self, user_id: UserId) -> str:
        """Return the role id of *user_id* or raise :class:`UnknownUserError`."""
        return self.get_user(user_id).role_id

    def find_role(self, user_id: UserId) -> str | None:
        """Hot-path variant of :meth:`role_of` returning ``None`` when unassigned."""
        user = self._users.get(user_id)
        return user.role_id if user is not None else None

    def list_users(self, role_id: str | None = None) -> list[User]:
        """Return all users, optionally only those holding *role_id*."""
        users = list(self._users.values())
        if role_id is None:
            return users
        return [u for u in users if u.role_id == role_id]

    def search_users(self, term: str) -> list[User]:
        """Return users whose name or email contains *term* (case-insensitive)."""
        needle = term.strip().lower()
        if not needle:
            return list(self._users.values())
        return [
            u for u in self._users.values()
            if needle in u.name.lower() or needle in u.email.lower()
        ]

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users

    def __len__(self) -> int:
        return len(self._users)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _put(self, user: User) -> None:
        previous = self._users.get(user.id)
        if previous is not None:
            self._counts[previous.role_id] -= 1
        self._users[user.id] = user
        self._counts[user.role_id] += 1

    def _users_holding(self, role_id: str) -> int:
        return self._counts.get(role_id, 0)


__all__ = [
    "AssignmentStore",
    "User",
    "UserId",
]
