"""Append-only audit event log.

The log validates incoming events, stamps them with the next id and a
server timestamp, and hands them to a backing store.  It answers filtered,
paginated queries and streams ordered exports.  There is no update or
delete operation.

A failed append always raises: a lost audit entry is a defect, not a
condition to degrade around.

Example
-------
>>> log = AuditLog()
>>> event = log.append({
...     "actor": "John Doe",
...     "action": "LOGIN",
...     "resource": "USER",
...     "resourceId": 1,
...     "description": "John Doe signed in",
...     "ipAddress": "10.0.0.4",
...     "userAgent": "Mozilla/5.0",
...     "severity": "LOW",
...     "success": True,
... })
>>> event.id
1
>>> log.query({"action": "LOGIN"}).total_count
1
"""
from __future__ import annotations

import copy
import logging
from collections import Counter
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterator

from pydantic import ValidationError as PydanticValidationError

from access_governance.audit.events import (
    AuditAction,
    AuditContext,
    AuditEvent,
    AuditEventInput,
    EventChanges,
    Severity,
    SYSTEM_CONTEXT,
)
from access_governance.audit.query import AuditFilter, AuditPage, AuditSummary, parse_filter
from access_governance.audit.store import AuditStore, InMemoryAuditStore, JsonlAuditStore
from access_governance.errors import UnknownEventError, ValidationError

if TYPE_CHECKING:
    from access_governance.config.loader import AuditConfig
    from access_governance.permissions.catalog import PermissionCatalog

logger = logging.getLogger(__name__)

FilterLike = AuditFilter | Mapping[str, Any] | None

# Keys a caller may send that the log always assigns itself.
_SERVER_ASSIGNED: tuple[str, ...] = ("id", "timestamp")


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class AuditLog:
    """Validated, append-only audit event log.

    Parameters
    ----------
    store:
        Backing store.  Defaults to a fresh :class:`InMemoryAuditStore`.
    catalog:
        When given, ``resource`` on events and filters must be a catalog key.
    clock:
        Callable returning the server time for new events.  Naive results
        are treated as UTC.
    page_size:
        Default page length for :meth:`query`.
    export_chunk_size:
        Rows per chunk yielded by :meth:`export`.
    """

    def __init__(
        self,
        store: AuditStore | None = None,
        *,
        catalog: PermissionCatalog | None = None,
        clock: Callable[[], datetime] | None = None,
        page_size: int = 10,
        export_chunk_size: int = 500,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if export_chunk_size < 1:
            raise ValueError("export_chunk_size must be >= 1")
        self._store: AuditStore = store if store is not None else InMemoryAuditStore()
        self._catalog = catalog
        self._clock: Callable[[], datetime] = clock or _utc_now
        self._page_size = page_size
        self._export_chunk_size = export_chunk_size

    @classmethod
    def from_config(
        cls,
        config: AuditConfig,
        catalog: PermissionCatalog | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> AuditLog:
        """Build a log from the ``audit`` config section.

        A ``log_path`` selects the durable JSONL store; otherwise events are
        kept in memory.
        """
        store: AuditStore
        if config.log_path is not None:
            store = JsonlAuditStore(config.log_path)
        else:
            store = InMemoryAuditStore()
        return cls(
            store,
            catalog=catalog,
            clock=clock,
            page_size=config.page_size,
            export_chunk_size=config.export_chunk_size,
        )

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def append(self, event: AuditEventInput | Mapping[str, Any]) -> AuditEvent:
        """Validate and append *event*, returning the stored record.

        Any ``id`` or ``timestamp`` supplied by the caller is ignored; the
        log assigns both.

        Raises
        ------
        ValidationError
            If a required field is missing or malformed, or ``resource`` is
            not a catalog key.
        AuditStoreError
            If the backing store fails to persist the event.
        """
        payload = self._validate(event)

        with self._store.lock:
            event_id = self._store.last_id() + 1
            stored = AuditEvent(
                **payload.model_dump(),
                id=event_id,
                timestamp=self._now(),
            )
            self._store.add(stored)

        logger.debug(
            "Audit event %d: %s %s/%s by %s (severity=%s, success=%s)",
            stored.id,
            stored.action.value,
            stored.resource,
            stored.resource_id,
            stored.actor,
            stored.severity.value,
            stored.success,
        )
        return stored.detached()

    def record(
        self,
        action: AuditAction,
        resource: str,
        resource_id: str | int,
        description: str,
        *,
        severity: Severity = Severity.LOW,
        success: bool = True,
        changes: tuple[Any, Any] | None = None,
        context: AuditContext | None = None,
    ) -> AuditEvent:
        """Append an event on behalf of *context* (default: the system actor).

        ``changes`` is a ``(before, after)`` pair stored as the event diff.
        """
        ctx = context or SYSTEM_CONTEXT
        diff = EventChanges(before=changes[0], after=changes[1]) if changes is not None else None
        return self.append(
            {
                "actor": ctx.actor,
                "action": action,
                "resource": resource,
                "resource_id": resource_id,
                "description": description,
                "ip_address": ctx.ip_address,
                "user_agent": ctx.user_agent,
                "severity": severity,
                "success": success,
                "details": ctx.details(diff),
            }
        )

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def query(self, flt: FilterLike = None) -> AuditPage:
        """Return one page of events matching *flt*, newest first.

        Results are ordered by timestamp descending, ties broken by id
        descending.  A page past the end of the result set is empty.

        Raises
        ------
        ValidationError
            If the filter is malformed or references unknown values.
        """
        parsed = self._parse(flt)
        page_size = parsed.page_size or self._page_size
        ids = self._store.select(parsed)

        page_ids: list[int] = []
        if parsed.page >= 1:
            start = (parsed.page - 1) * page_size
            page_ids = ids[start:start + page_size]

        return AuditPage(
            events=tuple(self._fetch(i) for i in page_ids),
            total_count=len(ids),
            page=parsed.page,
            page_size=page_size,
        )

    def iter_events(self, flt: FilterLike = None) -> Iterator[AuditEvent]:
        """Return an iterator over every event matching *flt*, in query order.

        The filter is validated eagerly; events are materialised lazily.
        Pagination fields of *flt* are ignored.
        """
        parsed = self._parse(flt)
        ids = self._store.select(parsed)
        return (self._fetch(i) for i in ids)

    def export(self, flt: FilterLike = None) -> Iterator[bytes]:
        """Stream the filtered result set as UTF-8 CSV chunks.

        See :meth:`AuditExporter.iter_csv`.
        """
        from access_governance.audit.exporter import AuditExporter

        return AuditExporter(self).iter_csv(flt)

    def get(self, event_id: int) -> AuditEvent:
        """Return the event with *event_id*.

        Raises
        ------
        UnknownEventError
            If no such event exists.
        """
        return self._fetch(event_id)

    def count(self) -> int:
        """Return the total number of events in the log."""
        return self._store.count()

    def actors(self) -> list[str]:
        """Return the distinct actors present in the log, sorted."""
        return self._store.actors()

    def summary(self, flt: FilterLike = None) -> AuditSummary:
        """Aggregate counts over the events matching *flt*."""
        by_action: Counter[str] = Counter()
        by_severity: Counter[str] = Counter()
        by_resource: Counter[str] = Counter()
        actors: set[str] = set()
        total = 0
        failures = 0
        for event in self.iter_events(flt):
            total += 1
            if not event.success:
                failures += 1
            by_action[event.action.value] += 1
            by_severity[event.severity.value] += 1
            by_resource[event.resource] += 1
            actors.add(event.actor)
        return AuditSummary(
            total_count=total,
            failure_count=failures,
            by_action=dict(by_action),
            by_severity=dict(by_severity),
            by_resource=dict(by_resource),
            actors=tuple(sorted(actors)),
        )

    @property
    def store(self) -> AuditStore:
        """The backing store."""
        return self._store

    @property
    def catalog(self) -> PermissionCatalog | None:
        """The catalog resources are validated against, if any."""
        return self._catalog

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def export_chunk_size(self) -> int:
        return self._export_chunk_size

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate(self, event: AuditEventInput | Mapping[str, Any]) -> AuditEventInput:
        if isinstance(event, AuditEventInput):
            raw: dict[str, Any] = event.model_dump()
        elif isinstance(event, Mapping):
            raw = dict(event)
        else:
            raise ValidationError(
                f"Audit event must be a mapping or AuditEventInput, got {type(event).__name__}."
            )

        for key in _SERVER_ASSIGNED:
            if raw.pop(key, None) is not None:
                logger.debug("Ignoring caller-supplied %r on audit event", key)

        try:
            payload = AuditEventInput.model_validate(copy.deepcopy(raw))
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic("audit event", exc) from exc

        self._check_resource(payload.resource)
        return payload

    def _parse(self, flt: FilterLike) -> AuditFilter:
        parsed = parse_filter(flt)
        if parsed.resource is not None:
            self._check_resource(parsed.resource)
        return parsed

    def _check_resource(self, resource: str) -> None:
        if self._catalog is not None and resource not in self._catalog:
            raise ValidationError(
                f"Unknown resource {resource!r}; expected one of {self._catalog.list_resources()}.",
                [{"loc": ("resource",), "msg": "unknown resource"}],
            )

    def _now(self) -> datetime:
        ts = self._clock()
        if ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(timezone.utc)

    def _fetch(self, event_id: int) -> AuditEvent:
        event = self._store.get(event_id)
        if event is None:
            raise UnknownEventError(event_id)
        return event.detached()


__all__ = ["AuditLog"]
