"""Configuration package for access-governance."""
from __future__ import annotations

from access_governance.config.loader import (
    AccessConfig,
    AuditConfig,
    AuthorizationConfig,
    CatalogConfig,
    ConfigLoader,
    ResourceConfig,
    RoleConfig,
    UserConfig,
)

__all__ = [
    "AccessConfig",
    "AuditConfig",
    "AuthorizationConfig",
    "CatalogConfig",
    "ConfigLoader",
    "ResourceConfig",
    "RoleConfig",
    "UserConfig",
]
