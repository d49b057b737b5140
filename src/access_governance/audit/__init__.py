"""Audit trail package for access-governance.

Provides the immutable event model, the append-only audit log with indexed
filtering and pagination, in-memory and JSONL backing stores, and export.
"""
from __future__ import annotations

from access_governance.audit.events import (
    AuditAction,
    AuditContext,
    AuditEvent,
    AuditEventInput,
    EventChanges,
    EventDetails,
    EventMetadata,
    Severity,
)
from access_governance.audit.exporter import AuditExporter
from access_governance.audit.log import AuditLog
from access_governance.audit.query import AuditFilter, AuditPage, AuditSummary
from access_governance.audit.store import AuditStore, InMemoryAuditStore, JsonlAuditStore

__all__ = [
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
    "EventChanges",
    "EventDetails",
    "EventMetadata",
    "InMemoryAuditStore",
    "JsonlAuditStore",
    "Severity",
]
