"""Audit log exporter.

Exports filtered audit events to CSV, JSON, or JSON Lines for external
analysis, compliance evidence packages, or long-term archival.  CSV export
is streamed in chunks, in exactly the order :meth:`AuditLog.query` returns,
so a consumer may stop early without the full result set being built.

Example
-------
>>> from pathlib import Path
>>> exporter = AuditExporter(log)
>>> path = Path("/tmp") / exporter.export_filename()
>>> exporter.to_csv(path, {"severity": "HIGH"})
3
"""
from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping

from access_governance.audit.events import AuditEvent
from access_governance.audit.query import AuditFilter
from access_governance.presentation import (
    action_label,
    resource_label,
    severity_label,
    status_label,
)

if TYPE_CHECKING:
    from access_governance.audit.log import AuditLog

CSV_HEADER: tuple[str, ...] = (
    "Timestamp",
    "User",
    "Action",
    "Resource",
    "Description",
    "IP Address",
    "Status",
    "Severity",
)

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_NEEDS_QUOTING = frozenset(',"\r\n')


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _cell(value: str) -> str:
    """Quote *value* only when it contains a delimiter, quote, or newline."""
    if any(ch in _NEEDS_QUOTING for ch in value):
        return _quote(value)
    return value


class AuditExporter:
    """Exports audit log events to structured file formats.

    Parameters
    ----------
    log:
        The :class:`AuditLog` instance to export from.
    """

    def __init__(self, log: AuditLog) -> None:
        self._log = log

    # ------------------------------------------------------------------
    # CSV
    # ------------------------------------------------------------------

    def format_row(self, event: AuditEvent) -> str:
        """Render one event as a CSV line (without the newline).

        The description is always double-quoted; other cells are quoted only
        when needed.
        """
        timestamp = event.timestamp.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)
        cells = [
            _cell(timestamp),
            _cell(event.actor),
            _cell(action_label(event.action)),
            _cell(resource_label(event.resource, self._log.catalog)),
            _quote(event.description),
            _cell(event.ip_address),
            _cell(status_label(event.success)),
            _cell(severity_label(event.severity)),
        ]
        return ",".join(cells)

    def iter_csv(
        self,
        flt: AuditFilter | Mapping[str, Any] | None = None,
        chunk_size: int | None = None,
    ) -> Iterator[bytes]:
        """Stream the filtered events as UTF-8 CSV chunks.

        The first chunk starts with the header row.  Each chunk holds at
        most ``chunk_size`` data rows (default: the log's
        ``export_chunk_size``).  The filter is validated before the first
        chunk is requested.
        """
        size = chunk_size or self._log.export_chunk_size
        if size < 1:
            raise ValueError("chunk_size must be >= 1")
        events = self._log.iter_events(flt)
        return self._chunks(events, size)

    def to_csv(
        self,
        output_path: Path,
        flt: AuditFilter | Mapping[str, Any] | None = None,
    ) -> int:
        """Export the filtered events to a CSV file.

        Returns
        -------
        int
            Number of data rows written.
        """
        events = self._log.iter_events(flt)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        count = 0
        with output_path.open("w", newline="", encoding="utf-8") as fh:
            fh.write(",".join(CSV_HEADER) + "\n")
            for event in events:
                fh.write(self.format_row(event) + "\n")
                count += 1
        return count

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def iter_jsonl(
        self,
        flt: AuditFilter | Mapping[str, Any] | None = None,
    ) -> Iterator[str]:
        """Yield one wire-shaped JSON line per filtered event."""
        events = self._log.iter_events(flt)
        return (json.dumps(event.to_wire()) + "\n" for event in events)

    def to_jsonl(
        self,
        output_path: Path,
        flt: AuditFilter | Mapping[str, Any] | None = None,
    ) -> int:
        """Export the filtered events to a JSONL file.

        Returns
        -------
        int
            Number of records written.
        """
        lines = self.iter_jsonl(flt)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        count = 0
        with output_path.open("w", encoding="utf-8") as fh:
            for line in lines:
                fh.write(line)
                count += 1
        return count

    def to_json(
        self,
        output_path: Path,
        flt: AuditFilter | Mapping[str, Any] | None = None,
        indent: int = 2,
    ) -> int:
        """Export the filtered events to a formatted JSON array file.

        Returns
        -------
        int
            Number of records written.
        """
        data = [event.to_wire() for event in self._log.iter_events(flt)]
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=indent)
        return len(data)

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    @staticmethod
    def export_filename(day: date | None = None, extension: str = "csv") -> str:
        """Return the conventional export filename, ``audit-logs-<date>.<ext>``."""
        effective = day or datetime.now(tz=timezone.utc).date()
        return f"audit-logs-{effective.isoformat()}.{extension}"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _chunks(self, events: Iterable[AuditEvent], size: int) -> Iterator[bytes]:
        buffer: list[str] = [",".join(CSV_HEADER)]
        rows = 0
        for event in events:
            buffer.append(self.format_row(event))
            rows += 1
            if rows == size:
                yield ("\n".join(buffer) + "\n").encode("utf-8")
                buffer = []
                rows = 0
        if buffer:
            yield ("\n".join(buffer) + "\n").encode("utf-8")


__all__ = ["AuditExporter", "CSV_HEADER"]
