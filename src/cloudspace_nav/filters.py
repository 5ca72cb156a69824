from __future__ import annotations

from collections.abc import Iterable

from .models import ModuleDescriptor, ResolvedModule, SubItemDescriptor
from .permissions import PermissionSet


def filter_sub_items(module: ModuleDescriptor, allowlist: Iterable[str] | None) -> list[SubItemDescriptor]:
    """Registry sub-items named in ``allowlist``, in registry order. Empty keeps all."""
    allowed = set(allowlist or ())
    if not allowed:
        return list(module.sub_items)
    return [item for item in module.sub_items if item.id in allowed]


def filter_sub_items_by_permissions(
    module: ModuleDescriptor, permissions: PermissionSet | None
) -> list[SubItemDescriptor]:
    if permissions is None:
        return []
    return [item for item in module.sub_items if permissions.allows_sub_item(item)]


def narrow(module: ModuleDescriptor, sub_items: Iterable[SubItemDescriptor]) -> ResolvedModule:
    return ResolvedModule.from_descriptor(module, tuple(sub_items))


def apply_allowlist(module: ModuleDescriptor, allowlist: Iterable[str] | None) -> ResolvedModule:
    return narrow(module, filter_sub_items(module, allowlist))


def apply_permissions(module: ModuleDescriptor, permissions: PermissionSet | None) -> ResolvedModule | None:
    """Narrow by capability map; None when every sub-item was filtered away."""
    if not module.sub_items:
        return narrow(module, ())
    sub_items = filter_sub_items_by_permissions(module, permissions)
    if not sub_items:
        return None
    return narrow(module, sub_items)
