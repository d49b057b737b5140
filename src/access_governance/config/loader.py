"""Access-governance configuration loader with Pydantic v2 validation.

Loads and validates an ``access.yaml`` file into a typed
:class:`AccessConfig` object.  The config is injected into every component
at construction time, so several isolated configurations (tenants, tests)
can live side by side in one process.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load(Path("access.yaml"))
>>> config.audit.page_size
10
"""
from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from access_governance.errors import ConfigError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Built-in CRM catalog and role presets
# ---------------------------------------------------------------------------

_DEFAULT_RESOURCES: dict[str, dict[str, object]] = {
    "LEAD": {"label": "Lead", "actions": ["view", "create", "edit", "delete", "assign"]},
    "CONTACT": {"label": "Contact", "actions": ["view", "create", "edit", "delete", "export"]},
    "ACCOUNT": {"label": "Account", "actions": ["view", "create", "edit", "delete", "manage"]},
    "DEAL": {"label": "Deal", "actions": ["view", "create", "edit", "delete", "approve"]},
    "TASK": {"label": "Task", "actions": ["view", "create", "edit", "delete", "assign"]},
    "REPORT": {"label": "Report", "actions": ["view", "create", "edit", "delete", "export"]},
    "USER": {"label": "User", "actions": ["view", "create", "edit", "delete", "assign"]},
    "ROLE": {"label": "Role", "actions": ["view", "create", "edit", "delete", "manage"]},
    "SETTING": {"label": "Setting", "actions": ["view", "edit", "manage"]},
    "INTEGRATION": {
        "label": "Integration",
        "actions": ["view", "create", "edit", "delete", "configure"],
    },
}

_DEFAULT_ROLES: list[dict[str, object]] = [
    {
        "id": "admin",
        "name": "Administrator",
        "description": "Full system access and user management",
        "permissions": {key: list(spec["actions"]) for key, spec in _DEFAULT_RESOURCES.items()},  # type: ignore[call-overload]
    },
    {
        "id": "manager",
        "name": "Manager",
        "description": "Team management and advanced features",
        "permissions": {
            "LEAD": ["view", "create", "edit", "assign"],
            "CONTACT": ["view", "create", "edit", "export"],
            "ACCOUNT": ["view", "create", "edit", "manage"],
            "DEAL": ["view", "create", "edit", "approve"],
            "TASK": ["view", "create", "edit", "assign"],
            "REPORT": ["view", "create", "export"],
            "USER": ["view", "assign"],
            "ROLE": ["view"],
            "SETTING": ["view"],
            "INTEGRATION": ["view", "configure"],
        },
    },
    {
        "id": "sales",
        "name": "Sales Representative",
        "description": "Sales activities and customer management",
        "permissions": {
            "LEAD": ["view", "create", "edit"],
            "CONTACT": ["view", "create", "edit"],
            "ACCOUNT": ["view", "create", "edit"],
            "DEAL": ["view", "create", "edit"],
            "TASK": ["view", "create", "edit"],
            "REPORT": ["view"],
            "INTEGRATION": ["view"],
        },
    },
    {
        "id": "support",
        "name": "Support Agent",
        "description": "Customer support and ticket management",
        "permissions": {
            "LEAD": ["view"],
            "CONTACT": ["view", "edit"],
            "ACCOUNT": ["view"],
            "DEAL": ["view"],
            "TASK": ["view", "create", "edit"],
            "REPORT": ["view"],
            "INTEGRATION": ["view"],
        },
    },
    {
        "id": "viewer",
        "name": "Viewer",
        "description": "Read-only access to assigned data",
        "permissions": {
            "LEAD": ["view"],
            "CONTACT": ["view"],
            "ACCOUNT": ["view"],
            "DEAL": ["view"],
            "TASK": ["view"],
            "REPORT": ["view"],
        },
    },
]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ResourceConfig(BaseModel):
    """A protected resource and its allowed-action vocabulary."""

    model_config = {"extra": "forbid", "frozen": True}

    label: str = Field(default="")
    actions: list[str] = Field(min_length=1)

    @field_validator("actions")
    @classmethod
    def actions_must_be_unique(cls, values: list[str]) -> list[str]:
        seen: set[str] = set()
        for action in values:
            if not action or action != action.strip():
                raise ValueError(f"Invalid action name {action!r}")
            if action in seen:
                raise ValueError(f"Duplicate action {action!r}")
            seen.add(action)
        return values


class CatalogConfig(BaseModel):
    """Configuration for the permission catalog."""

    model_config = {"extra": "forbid", "frozen": True}

    resources: dict[str, ResourceConfig] = Field(
        default_factory=lambda: {
            key: ResourceConfig.model_validate(spec) for key, spec in _DEFAULT_RESOURCES.items()
        }
    )

    @field_validator("resources")
    @classmethod
    def resources_must_be_named(
        cls, values: dict[str, ResourceConfig]
    ) -> dict[str, ResourceConfig]:
        if not values:
            raise ValueError("The catalog must declare at least one resource")
        for key in values:
            if not key or key != key.strip():
                raise ValueError(f"Invalid resource key {key!r}")
        return values


class RoleConfig(BaseModel):
    """A role seeded into the registry at startup."""

    model_config = {"extra": "forbid"}

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = Field(default="")
    permissions: dict[str, list[str]] = Field(default_factory=dict)


class UserConfig(BaseModel):
    """A user-to-role assignment seeded at startup."""

    model_config = {"extra": "forbid"}

    id: int | str
    name: str = Field(default="")
    email: str = Field(default="")
    role: str = Field(min_length=1)


class AuditConfig(BaseModel):
    """Configuration for the audit event log."""

    model_config = {"extra": "forbid"}

    log_path: Path | None = Field(default=None)
    page_size: int = Field(default=10, ge=1, le=10_000)
    export_chunk_size: int = Field(default=500, ge=1)


class AuthorizationConfig(BaseModel):
    """Configuration for the authorization evaluator."""

    model_config = {"extra": "forbid"}

    log_denials: bool = Field(default=False)
    anomaly_buffer: int = Field(default=100, ge=0)


class AccessConfig(BaseModel):
    """Top-level access-governance configuration schema.

    Loaded from ``access.yaml``.  All sections are optional and fall back
    to the built-in CRM catalog and role presets.
    """

    model_config = {"extra": "forbid"}

    version: str = Field(default="1")
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    roles: list[RoleConfig] = Field(
        default_factory=lambda: [RoleConfig.model_validate(r) for r in _DEFAULT_ROLES]
    )
    protected_roles: list[str] = Field(default_factory=lambda: ["admin"])
    users: list[UserConfig] = Field(default_factory=list)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    authorization: AuthorizationConfig = Field(default_factory=AuthorizationConfig)

    @field_validator("version")
    @classmethod
    def validate_version(cls, value: str) -> str:
        if value not in {"1", "1.0"}:
            raise ValueError(f"Unsupported config version {value!r}")
        return value

    @model_validator(mode="after")
    def check_references(self) -> AccessConfig:
        resources = self.catalog.resources
        role_ids: set[str] = set()
        for role in self.roles:
            if role.id in role_ids:
                raise ValueError(f"Duplicate role id {role.id!r}")
            role_ids.add(role.id)
            for resource, actions in role.permissions.items():
                if resource not in resources:
                    raise ValueError(
                        f"Role {role.id!r} grants unknown resource {resource!r}"
                    )
                invalid = sorted(set(actions) - set(resources[resource].actions))
                if invalid:
                    raise ValueError(
                        f"Role {role.id!r} grants {invalid} on {resource!r}, "
                        f"allowed: {resources[resource].actions}"
                    )

        by_id = {role.id: role for role in self.roles}
        for protected in self.protected_roles:
            role = by_id.get(protected)
            if role is None:
                raise ValueError(f"Protected role {protected!r} is not defined in 'roles'")
            if not any(role.permissions.values()):
                raise ValueError(f"Protected role {protected!r} must grant at least one action")

        user_ids: set[str] = set()
        for user in self.users:
            key = str(user.id)
            if key in user_ids:
                raise ValueError(f"Duplicate user id {user.id!r}")
            user_ids.add(key)
            if user.role not in role_ids:
                raise ValueError(f"User {user.id!r} references unknown role {user.role!r}")
        return self


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class ConfigLoader:
    """Loads and validates access-governance YAML configuration.

    Example
    -------
    >>> loader = ConfigLoader()
    >>> config = loader.load(Path("access.yaml"))
    """

    def load(self, config_path: Path) -> AccessConfig:
        """Load and validate an access YAML file.

        Parameters
        ----------
        config_path:
            Path to the ``access.yaml`` file.

        Returns
        -------
        AccessConfig
            Validated configuration object.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ConfigError:
            When the file is not valid YAML.
        pydantic.ValidationError:
            When the YAML content fails schema validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Access config not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as fh:
                raw: dict[str, object] = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse YAML: {exc}", str(config_path)) from exc

        config = self._validate(raw, str(config_path))
        logger.info(
            "Loaded access config from %s (%d resources, %d roles, %d users)",
            config_path,
            len(config.catalog.resources),
            len(config.roles),
            len(config.users),
        )
        return config

    def load_string(self, yaml_content: str) -> AccessConfig:
        """Load and validate a YAML string directly."""
        try:
            raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse YAML string: {exc}") from exc
        return self._validate(raw, None)

    def defaults(self) -> AccessConfig:
        """Return a default configuration with all defaults applied."""
        return AccessConfig()

    def dump(self, config: AccessConfig, output_path: Path) -> None:
        """Write *config* to *output_path* as YAML."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        data = config.model_dump(mode="json")
        with output_path.open("w", encoding="utf-8") as fh:
            yaml.dump(data, fh, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def _validate(self, raw: object, source: str | None) -> AccessConfig:
        if not isinstance(raw, dict):
            raise ConfigError("Access config must be a YAML mapping.", source)
        return AccessConfig.model_validate(raw)
