#!/usr/bin/env python3
"""Example: Audit filtering and export — access-governance

Appends a handful of audit events, runs a filtered query, and streams the
matching events to a CSV file chunk by chunk.

Usage:
    python examples/02_audit_export.py

Requirements:
    pip install access-governance
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import access_governance as ag

_EVENTS = [
    ("John Doe", "LOGIN", "USER", 1, "John Doe signed in", "LOW", True),
    ("Jane Smith", "UPDATE", "DEAL", 381, "Jane Smith moved Deal #381 to Won", "MEDIUM", True),
    ("Bob Johnson", "DELETE", "CONTACT", 77, "Bob Johnson deleted Contact #77", "HIGH", True),
    ("Alice Brown", "EXPORT", "REPORT", 12, "Alice Brown exported Report #12", "HIGH", False),
    ("Charlie Wilson", "SETTINGS", "SETTING", "smtp", "Charlie Wilson changed SMTP host", "CRITICAL", True),
]


def main() -> None:
    log = ag.AuditLog(catalog=ag.PermissionCatalog.default(), export_chunk_size=2)

    for actor, action, resource, resource_id, description, severity, success in _EVENTS:
        log.append(
            {
                "actor": actor,
                "action": action,
                "resource": resource,
                "resourceId": resource_id,
                "description": description,
                "ipAddress": "192.168.1.20",
                "userAgent": "Mozilla/5.0",
                "severity": severity,
                "success": success,
            }
        )

    high = log.query({"severity": "HIGH"})
    print(f"HIGH severity events: {high.total_count}")
    for event in high.events:
        print(f"  #{event.id} {event.actor}: {event.description}")

    out_dir = Path(tempfile.mkdtemp())
    out_path = out_dir / ag.AuditExporter.export_filename()
    with out_path.open("wb") as fh:
        for chunk in log.export({"success": True}):
            fh.write(chunk)
    print(f"\nExported successful events to {out_path}")
    print(out_path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    main()
