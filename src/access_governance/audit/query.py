"""Audit query filter, result page, and summary types.

An :class:`AuditFilter` combines every active constraint with logical AND.
``None`` (or the UI sentinel ``"all"``) leaves a field unconstrained.

Example
-------
>>> flt = AuditFilter.model_validate({"severity": "HIGH", "search": "deal"})
>>> flt.is_empty
False
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, StrictBool, field_validator
from pydantic import ValidationError as PydanticValidationError

from access_governance.audit.events import AuditAction, AuditEvent, Severity
from access_governance.errors import ValidationError

_UNSET_SENTINELS: frozenset[str] = frozenset({"", "all"})


class AuditFilter(BaseModel):
    """Optional constraints for :meth:`AuditLog.query` and export.

    Attributes
    ----------
    actor:
        Exact actor match.
    action, resource, severity:
        Exact enum / catalog-key match.
    success:
        Outcome flag.  ``"true"``/``"false"`` strings are accepted.
    search:
        Case-insensitive substring matched against description and actor.
    date_from, date_to:
        Inclusive timestamp bounds (aliases ``from`` / ``to``).  Naive
        datetimes are treated as UTC.
    page:
        1-based page number.  Pages outside the result set are empty.
    page_size:
        Page length; defaults to the log's configured page size.
    """

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    actor: str | None = None
    action: AuditAction | None = None
    resource: str | None = None
    severity: Severity | None = None
    success: StrictBool | None = None
    search: str | None = None
    date_from: datetime | None = Field(default=None, alias="from")
    date_to: datetime | None = Field(default=None, alias="to")
    page: int = 1
    page_size: int | None = Field(default=None, ge=1, alias="pageSize")

    @field_validator("actor", "action", "resource", "severity", mode="before")
    @classmethod
    def unset_sentinel(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in _UNSET_SENTINELS:
            return None
        return value

    @field_validator("success", mode="before")
    @classmethod
    def parse_success(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _UNSET_SENTINELS:
                return None
            if lowered in {"true", "false"}:
                return lowered == "true"
        return value

    @field_validator("search", mode="before")
    @classmethod
    def normalise_search(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date_from", "date_to")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def is_empty(self) -> bool:
        """True when no constraint is active."""
        return all(
            getattr(self, name) is None
            for name in (
                "actor", "action", "resource", "severity",
                "success", "search", "date_from", "date_to",
            )
        )

    @property
    def empty_range(self) -> bool:
        """True when the date bounds exclude every timestamp."""
        return (
            self.date_from is not None
            and self.date_to is not None
            and self.date_from > self.date_to
        )

    def matches(self, event: AuditEvent) -> bool:
        """Return True if *event* satisfies every active constraint."""
        if self.actor is not None and event.actor != self.actor:
            return False
        if self.action is not None and event.action != self.action:
            return False
        if self.resource is not None and event.resource != self.resource:
            return False
        if self.severity is not None and event.severity != self.severity:
            return False
        if self.success is not None and event.success != self.success:
            return False
        if self.date_from is not None and event.timestamp < self.date_from:
            return False
        if self.date_to is not None and event.timestamp > self.date_to:
            return False
        if self.search is not None:
            needle = self.search.lower()
            if needle not in event.description.lower() and needle not in event.actor.lower():
                return False
        return True


def parse_filter(value: AuditFilter | Mapping[str, Any] | None) -> AuditFilter:
    """Coerce *value* into an :class:`AuditFilter`.

    Raises
    ------
    ValidationError
        If *value* has unknown keys, unknown enum values, or bad types.
    """
    if value is None:
        return AuditFilter()
    if isinstance(value, AuditFilter):
        return value
    if not isinstance(value, Mapping):
        raise ValidationError(
            f"Audit filter must be a mapping or AuditFilter, got {type(value).__name__}."
        )
    try:
        return AuditFilter.model_validate(dict(value))
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic("audit filter", exc) from exc


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditPage:
    """One page of query results.

    Attributes
    ----------
    events:
        Events on this page, newest first (ties broken by id descending).
    total_count:
        Number of events matching the filter across all pages.
    page, page_size:
        The page that was requested and its length.
    """

    events: tuple[AuditEvent, ...]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page >= 1 and self.page < self.total_pages

    def __len__(self) -> int:
        return len(self.events)

    def to_dict(self) -> dict[str, object]:
        """Return the external ``{events, totalCount}`` shape."""
        return {
            "events": [e.to_wire() for e in self.events],
            "totalCount": self.total_count,
            "page": self.page,
            "pageSize": self.page_size,
        }


@dataclass(frozen=True)
class AuditSummary:
    """Aggregate counts over a filtered set of audit events."""

    total_count: int = 0
    failure_count: int = 0
    by_action: dict[str, int] = field(default_factory=dict)
    by_severity: dict[str, int] = field(default_factory=dict)
    by_resource: dict[str, int] = field(default_factory=dict)
    actors: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "total_count": self.total_count,
            "failure_count": self.failure_count,
            "by_action": dict(self.by_action),
            "by_severity": dict(self.by_severity),
            "by_resource": dict(self.by_resource),
            "actors": list(self.actors),
        }


__all__ = [
    "AuditFilter",
    "AuditPage",
    "AuditSummary",
    "parse_filter",
]
