"""Runtime authorization checks.

:meth:`AuthorizationEvaluator.has_permission` is the hot path every gated
operation calls.  It never raises for bad input: an unassigned user is a
plain deny, and an unknown resource or action is a deny plus an anomaly
note (a warning log line and an entry in :attr:`anomalies`).

Example
-------
::

    evaluator = AuthorizationEvaluator(registry, assignments)
    if not evaluator.has_permission(42, "DEAL", "edit"):
        raise PermissionError("denied")
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from access_governance.audit.events import AuditAction, AuditContext, Severity
from access_governance.errors import PermissionDeniedError
from access_governance.permissions.assignments import AssignmentStore, UserId
from access_governance.permissions.roles import RoleRegistry

if TYPE_CHECKING:
    from access_governance.audit.log import AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    """Immutable result of an authorization check.

    Attributes
    ----------
    allowed:
        Whether the action is permitted.
    reason:
        Human-readable explanation of the decision.
    user_id, resource, action:
        The request that was evaluated.
    role_id:
        The role the decision was based on, or ``None`` if unassigned.
    """

    allowed: bool
    reason: str
    user_id: UserId
    resource: str
    action: str
    role_id: str | None = None

    def __bool__(self) -> bool:
        """Return True if the action is allowed."""
        return self.allowed


@dataclass(frozen=True)
class Anomaly:
    """A check that referenced something outside the catalog."""

    timestamp: datetime
    user_id: UserId
    resource: str
    action: str
    reason: str


class AuthorizationEvaluator:
    """Answers "may user U perform action A on resource R?".

    Parameters
    ----------
    registry:
        Source of role grants.
    assignments:
        Source of user → role mapping.
    audit_log:
        Required only when ``log_denials`` is enabled.
    log_denials:
        Append a failed PERMISSION event for every denied check.
    anomaly_buffer:
        How many recent anomalies to retain.
    """

    def __init__(
        self,
        registry: RoleRegistry,
        assignments: AssignmentStore,
        audit_log: AuditLog | None = None,
        *,
        log_denials: bool = False,
        anomaly_buffer: int = 100,
    ) -> None:
        if log_denials and audit_log is None:
            raise ValueError("log_denials requires an audit_log")
        self._registry = registry
        self._assignments = assignments
        self._audit = audit_log
        self._log_denials = log_denials
        self._anomalies: deque[Anomaly] = deque(maxlen=anomaly_buffer)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def has_permission(self, user_id: UserId, resource: str, action: str) -> bool:
        """Return True if *user_id* may perform *action* on *resource*."""
        return self.check(user_id, resource, action).allowed

    def check(
        self,
        user_id: UserId,
        resource: str,
        action: str,
        context: AuditContext | None = None,
    ) -> AccessDecision:
        """Evaluate a request and explain the outcome.

        *context* is only used to attribute the denial event when denial
        logging is enabled.
        """
        role_id = self._assignments.find_role(user_id)
        if not self._registry.catalog.is_valid(resource, action):
            reason = (
                f"unknown resource {resource!r}"
                if resource not in self._registry.catalog
                else f"unknown action {action!r} for {resource}"
            )
            self._note_anomaly(user_id, resource, action, reason)
            decision = AccessDecision(False, reason, user_id, resource, action, role_id)
        elif role_id is None:
            decision = AccessDecision(
                False, "user has no assigned role", user_id, resource, action
            )
        else:
            granted = self._registry.granted_actions(role_id, resource)
            if granted is None:
                decision = AccessDecision(
                    False, f"role {role_id!r} no longer exists", user_id, resource, action, role_id
                )
            elif action in granted:
                decision = AccessDecision(
                    True, f"granted by role {role_id!r}", user_id, resource, action, role_id
                )
            else:
                decision = AccessDecision(
                    False, f"not granted by role {role_id!r}", user_id, resource, action, role_id
                )

        logger.debug(
            "Authorization %s: user=%r resource=%s action=%s (%s)",
            "ALLOW" if decision.allowed else "DENY",
            user_id,
            resource,
            action,
            decision.reason,
        )
        if not decision.allowed and self._log_denials:
            self._record_denial(decision, context)
        return decision

    def require(
        self,
        user_id: UserId,
        resource: str,
        action: str,
        context: AuditContext | None = None,
    ) -> AccessDecision:
        """Like :meth:`check`, but raise :class:`PermissionDeniedError` on deny."""
        decision = self.check(user_id, resource, action, context)
        if not decision.allowed:
            raise PermissionDeniedError(user_id, resource, action, decision.reason)
        return decision

    @property
    def anomalies(self) -> list[Anomaly]:
        """Recent checks that referenced unknown resources or actions."""
        return list(self._anomalies)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _note_anomaly(self, user_id: UserId, resource: str, action: str, reason: str) -> None:
        logger.warning(
            "Authorization anomaly: user=%r resource=%r action=%r (%s)",
            user_id,
            resource,
            action,
            reason,
        )
        self._anomalies.append(
            Anomaly(datetime.now(tz=timezone.utc), user_id, resource, action, reason)
        )

    def _record_denial(self, decision: AccessDecision, context: AuditContext | None) -> None:
        # Unknown resources are kept as anomalies; the audit log only accepts catalog keys.
        if self._audit is None or decision.resource not in self._registry.catalog:
            return
        self._audit.record(
            AuditAction.PERMISSION,
            decision.resource,
            decision.user_id,
            f"Denied {decision.action} on {decision.resource} for user "
            f"{decision.user_id!r}: {decision.reason}",
            severity=Severity.MEDIUM,
            success=False,
            context=context,
        )


__all__ = [
    "AccessDecision",
    "Anomaly",
    "AuthorizationEvaluator",
]
