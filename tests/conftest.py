"""Shared fixtures for access-governance tests."""
from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from access_governance.audit.events import AuditAction, AuditEvent, Severity
from access_governance.audit.log import AuditLog
from access_governance.permissions.assignments import AssignmentStore
from access_governance.permissions.catalog import PermissionCatalog
from access_governance.permissions.evaluator import AuthorizationEvaluator
from access_governance.permissions.roles import RoleRegistry

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock: each call advances one second unless pinned."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self._now = start
        self._pinned: list[datetime] = []

    def pin(self, *moments: datetime) -> None:
        """Return *moments* from the next calls, in order."""
        self._pinned.extend(moments)

    def __call__(self) -> datetime:
        if self._pinned:
            return self._pinned.pop(0)
        self._now += timedelta(seconds=1)
        return self._now


def event_payload(**overrides: object) -> dict[str, object]:
    """Return a valid wire-shaped audit event payload."""
    payload: dict[str, object] = {
        "actor": "Jane Smith",
        "action": "UPDATE",
        "resource": "DEAL",
        "resourceId": 381,
        "description": "Jane Smith updated Deal #381",
        "ipAddress": "192.168.1.20",
        "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
        "severity": "MEDIUM",
        "success": True,
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def payload() -> Callable[..., dict[str, object]]:
    return event_payload


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def catalog() -> PermissionCatalog:
    return PermissionCatalog.default()


@pytest.fixture()
def audit_log(catalog: PermissionCatalog, clock: FakeClock) -> AuditLog:
    return AuditLog(catalog=catalog, clock=clock)


@pytest.fixture()
def registry(catalog: PermissionCatalog, audit_log: AuditLog) -> RoleRegistry:
    registry = RoleRegistry(catalog, audit_log)
    registry.create_role(
        "Administrator",
        "Full access",
        role_id="admin",
        permissions={r: catalog.actions_for(r) for r in catalog.list_resources()},
    )
    registry.create_role(
        "Viewer",
        "Read-only access",
        permissions={r: ["view"] for r in catalog.list_resources()},
    )
    return registry


@pytest.fixture()
def assignments(registry: RoleRegistry, audit_log: AuditLog) -> AssignmentStore:
    return AssignmentStore(registry, audit_log)


@pytest.fixture()
def evaluator(registry: RoleRegistry, assignments: AssignmentStore) -> AuthorizationEvaluator:
    return AuthorizationEvaluator(registry, assignments)


@pytest.fixture()
def make_events(audit_log: AuditLog) -> Callable[..., list[AuditEvent]]:
    """Append *count* pseudo-random demo events with a seeded generator."""

    def _make(count: int = 50, seed: int = 7) -> list[AuditEvent]:
        rng = random.Random(seed)
        users = ["John Doe", "Jane Smith", "Bob Johnson", "Alice Brown", "Charlie Wilson"]
        resources = ["LEAD", "CONTACT", "ACCOUNT", "DEAL", "TASK", "REPORT", "USER", "ROLE"]
        events: list[AuditEvent] = []
        for _ in range(count):
            user = rng.choice(users)
            action = rng.choice(list(AuditAction))
            resource = rng.choice(resources)
            resource_id = rng.randint(1, 1000)
            events.append(
                audit_log.append(
                    event_payload(
                        actor=user,
                        action=action.value,
                        resource=resource,
                        resourceId=resource_id,
                        description=f"{user} performed {action.value.lower()} on {resource} #{resource_id}",
                        ipAddress=f"192.168.1.{rng.randint(0, 254)}",
                        severity=rng.choice(list(Severity)).value,
                        success=rng.random() > 0.1,
                    )
                )
            )
        return events

    return _make
