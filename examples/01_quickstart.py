#!/usr/bin/env python3
"""Example: Quickstart — access-governance

Minimal working example: assign roles, check permissions, edit the
permission matrix, and read back the audit trail.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install access-governance
"""
from __future__ import annotations

import access_governance as ag


def main() -> None:
    print(f"access-governance version: {ag.__version__}")

    # Step 1: Build the core from the built-in CRM catalog and roles
    governor = ag.AccessGovernor()
    admin = ag.AuditContext(actor="John Doe", ip_address="192.168.1.10")
    print(f"Governor ready: {governor!r}")

    # Step 2: Assign roles
    governor.assign_role(42, "viewer", context=admin)
    governor.assign_role(7, "sales", context=admin)

    # Step 3: Check permissions
    requests = [
        (42, "DEAL", "view"),
        (42, "DEAL", "edit"),
        (7, "DEAL", "edit"),
        (7, "DEAL", "approve"),
        (99, "LEAD", "view"),
    ]
    print("\nAuthorization checks:")
    for user_id, resource, action in requests:
        decision = governor.evaluator.check(user_id, resource, action)
        icon = "ALLOW" if decision.allowed else "DENY"
        print(f"  [{icon}] user={user_id} {resource}:{action} ({decision.reason})")

    # Step 4: Edit the matrix; the change applies to the next check
    governor.roles.set_permission("sales", "DEAL", "approve", True, context=admin)
    print(f"\nAfter grant, user 7 may approve deals: {governor.has_permission(7, 'DEAL', 'approve')}")

    # Step 5: Read the audit trail
    page = governor.query({"actor": "John Doe"})
    print(f"\nAudit log: {page.total_count} entries by John Doe")
    for event in page.events:
        print(f"  #{event.id} {event.action.value:<10} {event.resource}/{event.resource_id} {event.description}")


if __name__ == "__main__":
    main()
