"""Static permission catalog.

The catalog is the registry of protected resources and the vocabulary of
actions each resource allows.  It is built once from configuration and is
read-only afterwards; role grants are always validated against it.

Example
-------
::

    catalog = PermissionCatalog.default()
    catalog.list_resources()[:2]      # ['LEAD', 'CONTACT']
    catalog.actions_for("DEAL")       # ('view', 'create', 'edit', 'delete', 'approve')
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Mapping

from access_governance.config.loader import CatalogConfig
from access_governance.errors import UnknownResourceError


class PermissionCatalog:
    """Immutable mapping of resource keys to allowed actions.

    Parameters
    ----------
    config:
        Catalog section of the access configuration.  Defaults to the
        built-in CRM catalog.
    """

    def __init__(self, config: CatalogConfig | None = None) -> None:
        effective = config or CatalogConfig()
        self._actions: Mapping[str, tuple[str, ...]] = MappingProxyType(
            {key: tuple(spec.actions) for key, spec in effective.resources.items()}
        )
        self._action_sets: Mapping[str, frozenset[str]] = MappingProxyType(
            {key: frozenset(actions) for key, actions in self._actions.items()}
        )
        self._labels: Mapping[str, str] = MappingProxyType(
            {key: spec.label or key.title() for key, spec in effective.resources.items()}
        )

    @classmethod
    def default(cls) -> PermissionCatalog:
        """Return the built-in CRM catalog."""
        return cls(CatalogConfig())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_resources(self) -> list[str]:
        """Return all resource keys in declaration order."""
        return list(self._actions)

    def actions_for(self, resource: str) -> tuple[str, ...]:
        """Return the allowed-action vocabulary for *resource*.

        Raises
        ------
        UnknownResourceError
            If *resource* is not registered.
        """
        try:
            return self._actions[resource]
        except KeyError:
            raise UnknownResourceError(resource) from None

    def action_set(self, resource: str) -> frozenset[str]:
        """Return the vocabulary for *resource* as a frozenset."""
        try:
            return self._action_sets[resource]
        except KeyError:
            raise UnknownResourceError(resource) from None

    def label_for(self, resource: str) -> str:
        """Return the display label of *resource*."""
        try:
            return self._labels[resource]
        except KeyError:
            raise UnknownResourceError(resource) from None

    def is_valid(self, resource: str, action: str) -> bool:
        """Return True when *action* is allowed on *resource*."""
        allowed = self._action_sets.get(resource)
        return allowed is not None and action in allowed

    def __contains__(self, resource: object) -> bool:
        return resource in self._actions

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        return f"PermissionCatalog(resources={len(self._actions)})"
