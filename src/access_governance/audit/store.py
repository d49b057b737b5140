"""Backing stores for the audit event log.

A store owns the events, the id sequence, and the indexes used to answer
filtered queries.  :class:`AuditLog` holds :attr:`AuditStore.lock` while it
assigns an id and adds the event, so ids stay unique and strictly
increasing under concurrent writers.

- :class:`InMemoryAuditStore` keeps everything in process memory, indexed
  by actor, action, resource, severity, and timestamp.
- :class:`JsonlAuditStore` adds write-through persistence to an
  append-only JSON Lines file and rebuilds its indexes on open.

A multi-instance deployment would implement :class:`AuditStore` on top of
a transactional database sequence; the contract stays the same.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import threading
from abc import ABC, abstractmethod
from bisect import bisect_left, bisect_right, insort
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from access_governance.audit.events import AuditAction, AuditEvent, Severity
from access_governance.audit.query import AuditFilter
from access_governance.errors import AuditStoreError

logger = logging.getLogger(__name__)


class AuditStore(ABC):
    """Abstract append-only event store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Store-wide re-entrant lock serialising id assignment and writes."""
        return self._lock

    @abstractmethod
    def last_id(self) -> int:
        """Return the highest id stored so far (0 when empty)."""

    @abstractmethod
    def add(self, event: AuditEvent) -> None:
        """Durably store *event*.  Must raise on failure."""

    @abstractmethod
    def get(self, event_id: int) -> AuditEvent | None:
        """Return the event with *event_id*, or ``None``."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored events."""

    @abstractmethod
    def select(self, flt: AuditFilter) -> list[int]:
        """Return ids matching *flt*, ordered by timestamp then id, descending."""

    @abstractmethod
    def actors(self) -> list[str]:
        """Return the distinct actors that appear in the log, sorted."""


class InMemoryAuditStore(AuditStore):
    """Indexed in-process event store.

    Exact-match fields are served from per-value id sets; the date range is
    served by bisecting a sorted list of ``(timestamp, id)`` keys.  Every
    candidate is confirmed with :meth:`AuditFilter.matches`, so the indexed
    result is identical to a full scan.
    """

    def __init__(self) -> None:
        super().__init__()
        self._events: dict[int, AuditEvent] = {}
        self._keys: list[tuple[datetime, int]] = []
        self._last_id = 0
        self._by_actor: dict[str, set[int]] = {}
        self._by_action: dict[AuditAction, set[int]] = {}
        self._by_resource: dict[str, set[int]] = {}
        self._by_severity: dict[Severity, set[int]] = {}

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def add(self, event: AuditEvent) -> None:
        with self._lock:
            self._index(event)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def last_id(self) -> int:
        return self._last_id

    def get(self, event_id: int) -> AuditEvent | None:
        return self._events.get(event_id)

    def count(self) -> int:
        return len(self._events)

    def actors(self) -> list[str]:
        with self._lock:
            return sorted(self._by_actor)

    def select(self, flt: AuditFilter) -> list[int]:
        if flt.empty_range:
            return []
        with self._lock:
            candidates = self._candidates(flt)
            if candidates is not None and not candidates:
                return []

            lo = 0 if flt.date_from is None else bisect_left(self._keys, (flt.date_from, 0))
            hi = (
                len(self._keys)
                if flt.date_to is None
                else bisect_right(self._keys, (flt.date_to, sys.maxsize))
            )

            if candidates is not None and len(candidates) * 4 < hi - lo:
                keys = sorted(
                    (self._events[i].sort_key for i in candidates), reverse=True
                )
                ordered = (event_id for _, event_id in keys)
            else:
                ordered = (self._keys[i][1] for i in range(hi - 1, lo - 1, -1))

            return [
                event_id
                for event_id in ordered
                if (candidates is None or event_id in candidates)
                and flt.matches(self._events[event_id])
            ]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _index(self, event: AuditEvent) -> None:
        if event.id <= self._last_id:
            raise AuditStoreError(
                f"Audit event id {event.id} is not greater than last id {self._last_id}."
            )
        self._events[event.id] = event
        insort(self._keys, event.sort_key)
        self._last_id = event.id
        self._by_actor.setdefault(event.actor, set()).add(event.id)
        self._by_action.setdefault(event.action, set()).add(event.id)
        self._by_resource.setdefault(event.resource, set()).add(event.id)
        self._by_severity.setdefault(event.severity, set()).add(event.id)

    def _candidates(self, flt: AuditFilter) -> set[int] | None:
        """Intersect the exact-match indexes for the active filter fields."""
        postings: list[set[int]] = []
        if flt.actor is not None:
            postings.append(self._by_actor.get(flt.actor, set()))
        if flt.action is not None:
            postings.append(self._by_action.get(flt.action, set()))
        if flt.resource is not None:
            postings.append(self._by_resource.get(flt.resource, set()))
        if flt.severity is not None:
            postings.append(self._by_severity.get(flt.severity, set()))
        if not postings:
            return None
        postings.sort(key=len)
        result = set(postings[0])
        for posting in postings[1:]:
            result &= posting
            if not result:
                break
        return result


class JsonlAuditStore(InMemoryAuditStore):
    """Write-through store backed by an append-only JSON Lines file.

    Each event is written, flushed, and fsynced before it becomes visible
    to readers.  On open the file is replayed to rebuild the indexes and
    the id sequence.  A malformed line is a hard error, never skipped.

    Parameters
    ----------
    log_path:
        Path to the ``.jsonl`` audit file.  Parent directories are created
        automatically on first write.
    """

    def __init__(self, log_path: Path) -> None:
        super().__init__()
        self._log_path = log_path
        self._replay()

    @property
    def log_path(self) -> Path:
        """The filesystem path of the audit log file."""
        return self._log_path

    def add(self, event: AuditEvent) -> None:
        with self._lock:
            if event.id <= self._last_id:
                raise AuditStoreError(
                    f"Audit event id {event.id} is not greater than last id {self._last_id}."
                )
            line = json.dumps(event.to_record(), separators=(",", ":")) + "\n"
            try:
                self._log_path.parent.mkdir(parents=True, exist_ok=True)
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line)
                    fh.flush()
                    os.fsync(fh.fileno())
            except OSError as exc:
                raise AuditStoreError(
                    f"Failed to persist audit event {event.id} to {self._log_path}: {exc}"
                ) from exc
            self._index(event)

    def _replay(self) -> None:
        if not self._log_path.exists():
            return
        try:
            with self._log_path.open("r", encoding="utf-8") as fh:
                for lineno, line in enumerate(fh, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        event = AuditEvent.model_validate(json.loads(line))
                    except (json.JSONDecodeError, PydanticValidationError) as exc:
                        raise AuditStoreError(
                            f"Corrupt audit record at {self._log_path}:{lineno}: {exc}"
                        ) from exc
                    self._index(event)
        except OSError as exc:
            raise AuditStoreError(f"Failed to read audit log {self._log_path}: {exc}") from exc
        logger.info(
            "Replayed %d audit events from %s (last id %d)",
            len(self._events),
            self._log_path,
            self._last_id,
        )


__all__ = [
    "AuditStore",
    "InMemoryAuditStore",
    "JsonlAuditStore",
]
