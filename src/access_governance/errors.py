"""Exception hierarchy for access-governance.

Every error raised by the library derives from :class:`AccessGovernanceError`
so enclosing services can catch the whole family at their boundary.  Lookup
misses also derive from :class:`LookupError` and malformed input from
:class:`ValueError`, so generic handlers keep working.

Expected "nothing found" outcomes on read paths (an empty query, a denied
authorization check) are ordinary return values, never exceptions.
"""
from __future__ import annotations


class AccessGovernanceError(Exception):
    """Base class for all access-governance errors."""


class ValidationError(AccessGovernanceError, ValueError):
    """Raised when an audit event, query filter, or role input is malformed.

    Attributes
    ----------
    errors:
        Field-level error details, when available.  Each item is a dict with
        at least ``loc`` and ``msg`` keys (the pydantic error layout).
    """

    def __init__(
        self,
        message: str,
        errors: list[dict[str, object]] | None = None,
    ) -> None:
        self.errors: list[dict[str, object]] = list(errors or [])
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, subject: str, exc: Exception) -> ValidationError:
        """Wrap a :class:`pydantic.ValidationError` raised for *subject*."""
        raw_errors = exc.errors() if hasattr(exc, "errors") else []  # type: ignore[union-attr]
        details: list[dict[str, object]] = [
            {"loc": tuple(err.get("loc", ())), "msg": str(err.get("msg", ""))}
            for err in raw_errors
        ]
        summary = "; ".join(
            f"{'.'.join(str(p) for p in d['loc']) or '<root>'}: {d['msg']}"  # type: ignore[union-attr]
            for d in details
        )
        return cls(f"Invalid {subject}: {summary or exc}", details)


class UnknownRoleError(AccessGovernanceError, LookupError):
    """Raised when a role id does not exist in the registry."""

    def __init__(self, role_id: str) -> None:
        self.role_id = role_id
        super().__init__(f"Unknown role {role_id!r}.")


class UnknownUserError(AccessGovernanceError, LookupError):
    """Raised when a user has no record in the assignment store."""

    def __init__(self, user_id: object) -> None:
        self.user_id = user_id
        super().__init__(f"Unknown user {user_id!r}.")


class UnknownResourceError(AccessGovernanceError, LookupError):
    """Raised when a resource key is not registered in the catalog."""

    def __init__(self, resource: str) -> None:
        self.resource = resource
        super().__init__(f"Unknown resource {resource!r}.")


class UnknownEventError(AccessGovernanceError, LookupError):
    """Raised when an audit event id does not exist."""

    def __init__(self, event_id: int) -> None:
        self.event_id = event_id
        super().__init__(f"Unknown audit event {event_id!r}.")


class InvalidPermissionError(AccessGovernanceError, ValueError):
    """Raised when a resource/action pair falls outside the catalog."""

    def __init__(self, resource: str, action: str, reason: str | None = None) -> None:
        self.resource = resource
        self.action = action
        detail = reason or "not in the permission catalog"
        super().__init__(f"Invalid permission {resource}:{action} ({detail}).")


class ProtectedRoleError(AccessGovernanceError):
    """Raised on an illegal mutation of a protected built-in role."""

    def __init__(self, role_id: str, message: str) -> None:
        self.role_id = role_id
        super().__init__(message)


class RoleInUseError(AccessGovernanceError):
    """Raised when deleting a role that still has users assigned to it."""

    def __init__(self, role_id: str, user_count: int) -> None:
        self.role_id = role_id
        self.user_count = user_count
        super().__init__(
            f"Role {role_id!r} is assigned to {user_count} user(s); "
            "reassign them before deleting it."
        )


class PermissionDeniedError(AccessGovernanceError):
    """Raised by :meth:`AuthorizationEvaluator.require` on a denied check."""

    def __init__(self, user_id: object, resource: str, action: str, reason: str) -> None:
        self.user_id = user_id
        self.resource = resource
        self.action = action
        self.reason = reason
        super().__init__(f"User {user_id!r} may not {action} {resource}: {reason}")


class AuditStoreError(AccessGovernanceError, RuntimeError):
    """Raised when the audit backing store cannot read or persist events."""


class ConfigError(AccessGovernanceError, ValueError):
    """Raised when a configuration file cannot be parsed.

    Attributes
    ----------
    config_path:
        The path to the config file that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")


__all__ = [
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
]
