"""Audit event model — Pydantic v2 records for the append-only audit log.

:class:`AuditEventInput` is what callers submit; :class:`AuditEvent` is what
the log stores and returns, stamped with a server-assigned ``id`` and
``timestamp``.  Both are frozen: once appended, an event never changes.

The external (wire) shape uses camelCase keys (``resourceId``,
``ipAddress``, ``userAgent``, ``sessionId``, ``requestId``); both the alias
and the Python field name are accepted on input.

Example
-------
>>> event = AuditEventInput.model_validate({
...     "actor": "Jane Smith",
...     "action": "UPDATE",
...     "resource": "DEAL",
...     "resourceId": 381,
...     "description": "Jane Smith closed Deal #381",
...     "ipAddress": "192.168.1.20",
...     "userAgent": "Mozilla/5.0",
...     "severity": "MEDIUM",
...     "success": True,
... })
>>> event.action is AuditAction.UPDATE
True
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AuditAction(str, Enum):
    """Kind of consequential action recorded by an audit event."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"
    SETTINGS = "SETTINGS"
    PERMISSION = "PERMISSION"


class Severity(str, Enum):
    """Triage classification of an audit event."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# ---------------------------------------------------------------------------
# Details payload
# ---------------------------------------------------------------------------


class EventChanges(BaseModel):
    """Before/after snapshot of the state an event modified."""

    model_config = {"frozen": True, "extra": "forbid"}

    before: Any = None
    after: Any = None


class EventMetadata(BaseModel):
    """Correlation identifiers of the request that produced an event."""

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    session_id: str | None = Field(default=None, alias="sessionId")
    request_id: str | None = Field(default=None, alias="requestId")


class EventDetails(BaseModel):
    """Optional structured payload attached to an audit event."""

    model_config = {"frozen": True, "extra": "forbid"}

    changes: EventChanges | None = None
    metadata: EventMetadata | None = None


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class AuditEventInput(BaseModel):
    """An audit event as submitted to :meth:`AuditLog.append`.

    Attributes
    ----------
    actor:
        Display identity of whoever performed the action.
    action:
        One of :class:`AuditAction`.
    resource:
        Catalog key of the affected resource class.
    resource_id:
        Identifier of the affected entity.
    description:
        Human-readable summary.
    ip_address, user_agent:
        Origin of the request.
    severity:
        One of :class:`Severity`.
    success:
        Whether the action succeeded.
    details:
        Optional before/after diff and correlation identifiers.
    """

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    actor: str = Field(min_length=1)
    action: AuditAction
    resource: str = Field(min_length=1)
    resource_id: StrictStr | StrictInt = Field(alias="resourceId")
    description: str = Field(min_length=1)
    ip_address: str = Field(alias="ipAddress")
    user_agent: str = Field(alias="userAgent")
    severity: Severity
    success: StrictBool
    details: EventDetails = Field(default_factory=EventDetails)

    @field_validator("actor", "description")
    @classmethod
    def must_not_be_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("ip_address")
    @classmethod
    def must_be_ip_address(cls, value: str) -> str:
        try:
            ipaddress.ip_address(value)
        except ValueError:
            raise ValueError(f"{value!r} is not a valid IPv4 or IPv6 address") from None
        return value


class AuditEvent(AuditEventInput):
    """An immutable, stored audit event.

    ``id`` is unique and strictly increasing in append order; ``timestamp``
    is the timezone-aware UTC time the log accepted the event.
    """

    id: int = Field(ge=1)
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def must_be_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_record(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict with Python field names."""
        return self.model_dump(mode="json")

    def to_wire(self) -> dict[str, Any]:
        """Serialise to the external camelCase event shape.

        Absent ``changes``/``metadata`` entries are omitted from ``details``.
        """
        data = self.model_dump(mode="json", by_alias=True)
        data["details"] = {k: v for k, v in data["details"].items() if v is not None}
        return data

    def detached(self) -> AuditEvent:
        """Return an equal event that shares no mutable state with this one.

        The ``changes`` snapshots are plain containers, so readers get a deep
        copy of any event that carries them.
        """
        if self.details.changes is None:
            return self
        return self.model_copy(deep=True)

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Key under which events are ordered (ascending)."""
        return (self.timestamp, self.id)


# ---------------------------------------------------------------------------
# Origin context for internally generated events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditContext:
    """Who and where an administrative action came from.

    Components that emit audit events on behalf of a caller (role edits,
    assignments, denials) take an optional context; without one the action
    is attributed to the local ``system`` actor.
    """

    actor: str = "system"
    ip_address: str = "127.0.0.1"
    user_agent: str = "access-governance"
    session_id: str | None = None
    request_id: str | None = None

    def details(self, changes: EventChanges | None = None) -> EventDetails:
        """Build an :class:`EventDetails` payload for this context."""
        metadata = None
        if self.session_id is not None or self.request_id is not None:
            metadata = EventMetadata(session_id=self.session_id, request_id=self.request_id)
        return EventDetails(changes=changes, metadata=metadata)


SYSTEM_CONTEXT = AuditContext()


__all__ = [
    "AuditAction",
    "AuditContext",
    "AuditEvent",
    "AuditEventInput",
    "EventChanges",
    "EventDetails",
    "EventMetadata",
    "SYSTEM_CONTEXT",
    "Severity",
]
