from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .decoding import decode_list
from .exceptions import CatastrophicFailure, UnknownIdentifier
from .filters import apply_allowlist, apply_permissions, narrow
from .models import (
    ModuleDescriptor,
    ModuleStatus,
    Resolution,
    ResolutionTier,
    ResolvedEntry,
    ResolvedModule,
    SidebarModuleEntry,
    UserContext,
)
from .permissions import PermissionSet
from .registry import ModuleRegistry
from .telemetry import TelemetryLogger, build_event

logger = logging.getLogger(__name__)


def _lookup(registry: ModuleRegistry, raw_id: str) -> ModuleDescriptor | None:
    try:
        return registry.require(raw_id)
    except UnknownIdentifier:
        logger.debug("sidebar_unknown_module", extra={"module_id": raw_id})
        return None


def _parse_entry(raw_entry: Any) -> SidebarModuleEntry | None:
    if not isinstance(raw_entry, Mapping):
        return None
    try:
        return SidebarModuleEntry.model_validate(raw_entry)
    except ValidationError:
        return None


def company_allowlist(user: UserContext, registry: ModuleRegistry) -> list[str]:
    """Decoded company allowlist with every id normalized."""
    raw_ids = decode_list(user.raw_allowed_modules, field="company.allowed_modules")
    return [registry.normalize(raw_id.strip()) for raw_id in raw_ids if isinstance(raw_id, str) and raw_id.strip()]


def _role_assignment_entries(
    user: UserContext, registry: ModuleRegistry, company_modules: list[str]
) -> list[ResolvedEntry]:
    allowed_by_company = set(company_modules)
    resolved: list[tuple[ModuleDescriptor, ResolvedEntry]] = []
    seen: set[str] = set()
    dropped: list[str] = []

    for raw_entry in decode_list(user.raw_sidebar_modules, field="user_type.sidebar_modules"):
        entry = _parse_entry(raw_entry)
        if entry is None or not entry.module_id or not entry.is_enabled():
            continue
        module_id = entry.module_id
        normalized_id = registry.normalize(module_id)
        if allowed_by_company and module_id not in allowed_by_company and normalized_id not in allowed_by_company:
            dropped.append(module_id)
            continue

        module = _lookup(registry, module_id)
        if module is None or module.id in seen:
            continue
        if not registry.visibility_rules.is_visible(module, user):
            continue

        registry_items = set(module.sub_item_ids())
        allowlist = tuple(item for item in entry.item_allowlist() if item in registry_items)
        resolved.append((module, ResolvedEntry(id=module.id, sub_item_allowlist=allowlist or None)))
        seen.add(module.id)

    if dropped:
        # Role modules outside the company plan are dropped; see DESIGN.md open question.
        logger.debug("sidebar_company_filter_dropped", extra={"dropped": dropped})

    resolved.sort(key=lambda pair: 0 if pair[0].status is ModuleStatus.ACTIVE else 1)
    return [entry for _module, entry in resolved]


def _company_entries(user: UserContext, registry: ModuleRegistry, company_modules: list[str]) -> list[ResolvedEntry]:
    entries: list[ResolvedEntry] = []
    seen: set[str] = set()
    for module_id in company_modules:
        module = _lookup(registry, module_id)
        if module is None or module.id in seen:
            continue
        if not registry.visibility_rules.is_visible(module, user):
            continue
        entries.append(ResolvedEntry(id=module.id))
        seen.add(module.id)
    return entries


def _permission_entries(user: UserContext, registry: ModuleRegistry) -> list[ResolvedEntry]:
    if user.permissions is None:
        return []
    permission_set = PermissionSet.from_raw(user.permissions, route_permissions=registry.route_permissions)
    entries: list[ResolvedEntry] = []
    seen: set[str] = set()
    for module_id in permission_set.modules:
        if not permission_set.has_module(module_id):
            continue
        module = _lookup(registry, module_id)
        if module is None or module.id in seen:
            continue
        if not registry.visibility_rules.is_visible(module, user):
            continue
        narrowed = apply_permissions(module, permission_set)
        if narrowed is None:
            continue
        entries.append(ResolvedEntry(id=module.id, sub_item_allowlist=tuple(narrowed.sub_item_ids()) or None))
        seen.add(module.id)
    return entries


def _fallback_entries(registry: ModuleRegistry) -> list[ResolvedEntry]:
    module = registry.fallback_module()
    if module is None:
        logger.warning("sidebar_fallback_missing", extra={"module_id": registry.fallback_module_id})
        return []
    return [ResolvedEntry(id=module.id)]


def resolve_entries(user: UserContext, registry: ModuleRegistry) -> tuple[ResolutionTier, list[ResolvedEntry]]:
    """Run the tier cascade. The first tier yielding entries is the only one used."""
    company_modules = company_allowlist(user, registry)

    entries = _role_assignment_entries(user, registry, company_modules)
    if entries:
        return ResolutionTier.ROLE_ASSIGNMENT, entries

    entries = _company_entries(user, registry, company_modules)
    if entries:
        return ResolutionTier.COMPANY_ALLOWLIST, entries

    entries = _permission_entries(user, registry)
    if entries:
        return ResolutionTier.PERMISSION_MAP, entries

    return ResolutionTier.FALLBACK, _fallback_entries(registry)


def _materialize(entries: list[ResolvedEntry], registry: ModuleRegistry) -> tuple[ResolvedModule, ...]:
    modules: list[ResolvedModule] = []
    for entry in entries:
        module = registry.get(entry.id)
        if module is None:
            raise CatastrophicFailure(f"Resolved module {entry.id!r} vanished from registry")
        modules.append(apply_allowlist(module, entry.sub_item_allowlist))
    return tuple(modules)


def _coerce_user(user_context: UserContext | Mapping[str, Any] | None) -> UserContext:
    if isinstance(user_context, UserContext):
        return user_context
    if user_context is None:
        return UserContext()
    if isinstance(user_context, Mapping):
        return UserContext.model_validate(dict(user_context))
    raise CatastrophicFailure(f"Unsupported user context type: {type(user_context).__name__}")


def _degraded_modules(registry: ModuleRegistry | None) -> tuple[ResolvedModule, ...]:
    try:
        module = registry.fallback_module() if registry is not None else None
    except Exception:
        logger.exception("sidebar_fallback_unavailable")
        return ()
    return (narrow(module, ()),) if module is not None else ()


def _emit(telemetry: TelemetryLogger | None, resolution: Resolution, error_code: str | None = None) -> None:
    if telemetry is None:
        return
    event = build_event(
        category="error" if resolution.degraded else "navigation",
        name="sidebar_degraded" if resolution.degraded else "sidebar_resolved",
        action="resolve",
        tier=resolution.tier.value,
        success=not resolution.degraded,
        error_code=error_code,
        context={"module_ids": resolution.module_ids()},
    )
    try:
        telemetry.emit(event)
    except OSError as exc:
        logger.warning("sidebar_telemetry_failed", extra={"error": str(exc)})


def resolve(
    user_context: UserContext | Mapping[str, Any] | None,
    registry: ModuleRegistry,
    *,
    telemetry: TelemetryLogger | None = None,
) -> Resolution:
    """Resolve the sidebar for one user, reporting which tier produced it.

    Never raises: any failure degrades to the fallback module with no sub-items.
    """
    try:
        user = _coerce_user(user_context)
        tier, entries = resolve_entries(user, registry)
        resolution = Resolution(tier=tier, modules=_materialize(entries, registry))
    except Exception as exc:
        failure = exc if isinstance(exc, CatastrophicFailure) else CatastrophicFailure(f"{type(exc).__name__}: {exc}")
        logger.exception("sidebar_resolution_failed", extra={"error": str(failure)})
        resolution = Resolution(tier=ResolutionTier.FALLBACK, modules=_degraded_modules(registry), degraded=True)
        _emit(telemetry, resolution, error_code=type(exc).__name__)
        return resolution

    logger.info(
        "sidebar_resolved",
        extra={
            "tier": resolution.tier.value,
            "count": len(resolution.modules),
            "user_id": user.user_id,
        },
    )
    _emit(telemetry, resolution)
    return resolution


def resolve_visible_modules(
    user_context: UserContext | Mapping[str, Any] | None,
    registry: ModuleRegistry,
) -> list[ResolvedModule]:
    return list(resolve(user_context, registry).modules)
