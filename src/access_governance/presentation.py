"""Display metadata for audit enumerations.

Labels and colour styles for actions, severities, and outcomes live here,
apart from the audit data model.  The styles are `rich` style strings and
are used by the CLI tables; the labels are used by the CSV export.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from access_governance.audit.events import AuditAction, Severity

if TYPE_CHECKING:
    from access_governance.permissions.catalog import PermissionCatalog


@dataclass(frozen=True)
class DisplayStyle:
    """Human-facing label and rich style for an enumeration member."""

    label: str
    style: str


ACTION_DISPLAY: Mapping[AuditAction, DisplayStyle] = MappingProxyType(
    {
        AuditAction.CREATE: DisplayStyle("Create", "green"),
        AuditAction.UPDATE: DisplayStyle("Update", "blue"),
        AuditAction.DELETE: DisplayStyle("Delete", "red"),
        AuditAction.VIEW: DisplayStyle("View", "grey50"),
        AuditAction.LOGIN: DisplayStyle("Login", "magenta"),
        AuditAction.LOGOUT: DisplayStyle("Logout", "dark_orange"),
        AuditAction.EXPORT: DisplayStyle("Export", "slate_blue1"),
        AuditAction.IMPORT: DisplayStyle("Import", "dark_cyan"),
        AuditAction.SETTINGS: DisplayStyle("Settings", "yellow"),
        AuditAction.PERMISSION: DisplayStyle("Permission", "deep_pink3"),
    }
)

SEVERITY_DISPLAY: Mapping[Severity, DisplayStyle] = MappingProxyType(
    {
        Severity.LOW: DisplayStyle("Low", "green"),
        Severity.MEDIUM: DisplayStyle("Medium", "yellow"),
        Severity.HIGH: DisplayStyle("High", "dark_orange"),
        Severity.CRITICAL: DisplayStyle("Critical", "bold red"),
    }
)


def action_label(action: AuditAction) -> str:
    return ACTION_DISPLAY[AuditAction(action)].label


def severity_label(severity: Severity) -> str:
    return SEVERITY_DISPLAY[Severity(severity)].label


def status_label(success: bool) -> str:
    return "Success" if success else "Failed"


def resource_label(resource: str, catalog: PermissionCatalog | None = None) -> str:
    """Return the catalog label of *resource*, falling back to title case."""
    if catalog is not None and resource in catalog:
        return catalog.label_for(resource)
    return resource.title()


__all__ = [
    "ACTION_DISPLAY",
    "DisplayStyle",
    "SEVERITY_DISPLAY",
    "action_label",
    "resource_label",
    "severity_label",
    "status_label",
]
