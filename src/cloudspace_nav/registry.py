from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .config import DEFAULT_FALLBACK_MODULE_ID, DEFAULT_LEGACY_SUFFIX, NavConfig
from .exceptions import RegistryError, UnknownIdentifier
from .models import ModuleDescriptor
from .visibility import VisibilityRuleRegistry

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """Read-only snapshot of the module catalog plus its alias conventions.

    ``normalize`` and ``find`` implement identifier normalization: the alias
    table is consulted first, then a legacy suffix (``-desk`` by default) is
    stripped and the bare id is looked up directly in the catalog.
    """

    def __init__(
        self,
        modules: Mapping[str, ModuleDescriptor] | list[ModuleDescriptor],
        *,
        aliases: Mapping[str, str] | None = None,
        legacy_suffix: str = DEFAULT_LEGACY_SUFFIX,
        fallback_module_id: str = DEFAULT_FALLBACK_MODULE_ID,
        route_permissions: Mapping[str, str] | None = None,
        visibility_rules: VisibilityRuleRegistry | None = None,
        version: str = "1",
    ) -> None:
        items = modules.values() if isinstance(modules, Mapping) else modules
        self._modules: dict[str, ModuleDescriptor] = {}
        for module in items:
            if module.id in self._modules:
                raise RegistryError(f"Duplicate module id in registry: {module.id}")
            self._modules[module.id] = module
        self._aliases = {str(alias): str(canonical) for alias, canonical in (aliases or {}).items()}
        self.legacy_suffix = legacy_suffix
        self.fallback_module_id = fallback_module_id
        self._route_permissions = dict(route_permissions or {})
        self.visibility_rules = visibility_rules or VisibilityRuleRegistry()
        self.version = version

    @classmethod
    def from_dict(
        cls,
        payload: Mapping[str, Any],
        *,
        config: NavConfig | None = None,
        visibility_rules: VisibilityRuleRegistry | None = None,
    ) -> "ModuleRegistry":
        """Build from a registry document; ``config`` supplies defaults the document omits."""
        if not isinstance(payload, Mapping):
            raise RegistryError("Registry document must be a JSON object")
        raw_modules = payload.get("modules")
        if isinstance(raw_modules, Mapping):
            if not all(isinstance(value, Mapping) for value in raw_modules.values()):
                raise RegistryError("Every entry of 'modules' must be a JSON object")
            raw_modules = [{"id": key, **value} for key, value in raw_modules.items()]
        if not isinstance(raw_modules, list):
            raise RegistryError("Registry document requires a 'modules' list or object")
        try:
            modules = [ModuleDescriptor.model_validate(item) for item in raw_modules]
        except ValidationError as exc:
            raise RegistryError(f"Invalid module descriptor: {exc}") from exc

        defaults = config or NavConfig()
        aliases = payload.get("aliases") or {}
        route_permissions = payload.get("route_permissions") or {}
        if not isinstance(aliases, Mapping) or not isinstance(route_permissions, Mapping):
            raise RegistryError("'aliases' and 'route_permissions' must be JSON objects")

        return cls(
            modules,
            aliases=aliases,
            legacy_suffix=str(payload.get("legacy_suffix", defaults.legacy_suffix)),
            fallback_module_id=str(payload.get("fallback_module_id") or defaults.fallback_module_id),
            route_permissions=route_permissions,
            visibility_rules=visibility_rules,
            version=str(payload.get("version", "1")),
        )

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def ids(self) -> list[str]:
        return list(self._modules)

    def get(self, module_id: str) -> ModuleDescriptor | None:
        return self._modules.get(module_id)

    def strip_suffix(self, raw_id: str) -> str:
        if self.legacy_suffix and raw_id.endswith(self.legacy_suffix):
            return raw_id[: -len(self.legacy_suffix)]
        return raw_id

    def normalize(self, raw_id: str) -> str:
        canonical = self._aliases.get(raw_id)
        if canonical is not None:
            return canonical
        stripped = self.strip_suffix(raw_id)
        if stripped != raw_id and stripped in self._modules:
            return stripped
        return raw_id

    def find(self, raw_id: str) -> ModuleDescriptor | None:
        """Raw id, then normalized id, then suffix-stripped id."""
        module = self._modules.get(raw_id)
        if module is None:
            module = self._modules.get(self.normalize(raw_id))
        if module is None:
            module = self._modules.get(self.strip_suffix(raw_id))
        return module

    def require(self, raw_id: str) -> ModuleDescriptor:
        module = self.find(raw_id)
        if module is None:
            raise UnknownIdentifier(raw_id)
        return module

    def fallback_module(self) -> ModuleDescriptor | None:
        return self._modules.get(self.fallback_module_id)

    @property
    def route_permissions(self) -> dict[str, str]:
        """Route to permission id map; explicit entries win over sub-item declarations."""
        routes: dict[str, str] = {}
        for module in self._modules.values():
            for item in module.sub_items:
                if item.path and item.permission_id:
                    routes.setdefault(item.path, item.permission_id)
        routes.update(self._route_permissions)
        return routes


def load_registry(
    path: str | Path,
    *,
    config: NavConfig | None = None,
    visibility_rules: VisibilityRuleRegistry | None = None,
) -> ModuleRegistry:
    registry_path = Path(path)
    try:
        payload = json.loads(registry_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RegistryError(f"Cannot read registry file {registry_path}: {exc}") from exc
    except ValueError as exc:
        raise RegistryError(f"Registry file {registry_path} is not valid JSON: {exc}") from exc
    registry = ModuleRegistry.from_dict(payload, config=config, visibility_rules=visibility_rules)
    logger.info(
        "registry_loaded",
        extra={"path": str(registry_path), "count": len(registry), "version": registry.version},
    )
    return registry
