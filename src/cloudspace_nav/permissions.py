from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .decoding import decode_list, decode_mapping
from .models import SidebarModuleEntry, SubItemDescriptor


@dataclass(frozen=True)
class ModuleGrant:
    enabled: bool
    permissions: tuple[str, ...] = ()
    items: tuple[str, ...] = ()


def _as_str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return ()
    return tuple(str(item) for item in value if item is not None)


def _grant_from_raw(raw: Any) -> ModuleGrant:
    if isinstance(raw, bool):
        return ModuleGrant(enabled=raw)
    if not isinstance(raw, Mapping):
        return ModuleGrant(enabled=False)
    return ModuleGrant(
        enabled=bool(raw.get("enabled")),
        permissions=_as_str_tuple(raw.get("permissions")),
        items=_as_str_tuple(raw.get("items")),
    )


@dataclass(frozen=True)
class PermissionSet:
    """Default-deny capability map for modules, sub-items and routes."""

    modules: Mapping[str, ModuleGrant] = field(default_factory=dict)
    items: frozenset[str] = frozenset()
    module_items: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    route_permissions: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_sidebar_modules(
        cls, raw: Any, *, route_permissions: Mapping[str, str] | None = None
    ) -> "PermissionSet":
        modules: dict[str, ModuleGrant] = {}
        items: set[str] = set()
        module_items: dict[str, tuple[str, ...]] = {}
        for raw_entry in decode_list(raw, field="sidebar_modules"):
            try:
                entry = SidebarModuleEntry.model_validate(raw_entry)
            except ValidationError:
                continue
            # Capability grants need an explicit truthy flag, unlike sidebar display.
            enabled = raw_entry.get("enabled") if isinstance(raw_entry, Mapping) else entry.enabled
            if not entry.module_id or not enabled:
                continue
            entry_items = tuple(entry.item_allowlist())
            modules[entry.module_id] = ModuleGrant(
                enabled=True,
                permissions=tuple(entry.permissions),
                items=entry_items,
            )
            items.update(entry_items)
            module_items[entry.module_id] = entry_items
        return cls(
            modules=modules,
            items=frozenset(items),
            module_items=module_items,
            route_permissions=dict(route_permissions or {}),
        )

    @classmethod
    def from_raw(cls, raw: Any, *, route_permissions: Mapping[str, str] | None = None) -> "PermissionSet":
        """Build from an already normalized ``{modules, items, module_items}`` map."""
        if isinstance(raw, PermissionSet):
            if route_permissions is None:
                return raw
            return cls(
                modules=raw.modules,
                items=raw.items,
                module_items=raw.module_items,
                route_permissions=dict(route_permissions),
            )
        payload = decode_mapping(raw, field="permissions")
        raw_modules = decode_mapping(payload.get("modules"), field="permissions.modules")
        modules = {str(key): _grant_from_raw(value) for key, value in raw_modules.items()}

        raw_items = payload.get("items")
        if not isinstance(raw_items, (set, frozenset)):
            raw_items = decode_list(raw_items, field="permissions.items")
        items = set(_as_str_tuple(raw_items))
        raw_module_items = decode_mapping(payload.get("module_items", payload.get("moduleItems")))
        module_items = {str(key): _as_str_tuple(value) for key, value in raw_module_items.items()}
        for module_id, grant in modules.items():
            if grant.enabled and grant.items:
                items.update(grant.items)
                module_items.setdefault(module_id, grant.items)

        return cls(
            modules=modules,
            items=frozenset(items),
            module_items=module_items,
            route_permissions=dict(route_permissions or {}),
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PermissionSet":
        return cls.from_raw(payload, route_permissions=payload.get("route_permissions"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "modules": {
                module_id: {
                    "enabled": grant.enabled,
                    "permissions": list(grant.permissions),
                    "items": list(grant.items),
                }
                for module_id, grant in self.modules.items()
            },
            "items": sorted(self.items),
            "module_items": {key: list(value) for key, value in self.module_items.items()},
            "route_permissions": dict(self.route_permissions),
        }

    def is_empty(self) -> bool:
        return not self.modules

    def has_module(self, module_id: str) -> bool:
        if not module_id:
            return False
        grant = self.modules.get(module_id)
        return bool(grant and grant.enabled)

    def has_item(self, item_id: str | None) -> bool:
        if not item_id:
            return False
        return item_id in self.items

    def has_route(self, route: str | None) -> bool:
        if not route:
            return False
        permission_id = self.route_permissions.get(route)
        if permission_id is None:
            return False
        return self.has_item(permission_id)

    def allows_sub_item(self, sub_item: SubItemDescriptor) -> bool:
        if sub_item.permission_id and self.has_item(sub_item.permission_id):
            return True
        return self.has_route(sub_item.path)

    def has_any(self, item_ids: Iterable[str]) -> bool:
        return any(self.has_item(item_id) for item_id in item_ids)

    def has_all(self, item_ids: Iterable[str]) -> bool:
        return all(self.has_item(item_id) for item_id in item_ids)

    def get_module_items(self, module_id: str) -> list[str]:
        return list(self.module_items.get(module_id, ()))

    def module_permission_levels(self, module_id: str) -> list[str]:
        grant = self.modules.get(module_id)
        return list(grant.permissions) if grant else []
