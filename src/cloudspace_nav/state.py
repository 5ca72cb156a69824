from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .models import Resolution, UserContext
from .registry import ModuleRegistry
from .resolver import resolve
from .telemetry import TelemetryLogger

logger = logging.getLogger(__name__)


def _fingerprint_source(user_context: UserContext | Mapping[str, Any] | None) -> Any:
    if isinstance(user_context, UserContext):
        return {
            "user_id": user_context.user_id,
            "role": user_context.role,
            "email": user_context.email,
            "user_type": user_context.user_type_name,
            "allowed_modules": user_context.raw_allowed_modules,
            "sidebar_modules": user_context.raw_sidebar_modules,
            "permissions": user_context.permissions,
        }
    return user_context


def context_fingerprint(user_context: UserContext | Mapping[str, Any] | None, registry_version: str) -> str:
    payload = {"registry": registry_version, "user": _fingerprint_source(user_context)}
    encoded = json.dumps(payload, sort_keys=True, default=repr).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class SidebarState:
    """Last resolution for one signed-in user.

    Callers pass the current user data to ``refresh`` whenever it may have
    changed; resolution reruns only when the identity, authorization fields
    or registry version differ from the previous call, or after ``invalidate``.
    """

    def __init__(self, registry: ModuleRegistry, *, telemetry: TelemetryLogger | None = None) -> None:
        self.registry = registry
        self.telemetry = telemetry
        self._fingerprint: str | None = None
        self._resolution: Resolution | None = None
        self.recompute_count = 0

    @property
    def resolution(self) -> Resolution | None:
        return self._resolution

    def refresh(self, user_context: UserContext | Mapping[str, Any] | None) -> Resolution:
        if isinstance(user_context, Mapping):
            try:
                user_context = UserContext.model_validate(dict(user_context))
            except ValidationError:
                # Left raw; resolve() degrades it to the fallback module.
                logger.warning("sidebar_state_invalid_context")
        fingerprint = context_fingerprint(user_context, self.registry.version)
        if self._resolution is not None and fingerprint == self._fingerprint:
            return self._resolution

        self._resolution = resolve(user_context, self.registry, telemetry=self.telemetry)
        self._fingerprint = fingerprint
        self.recompute_count += 1
        logger.debug("sidebar_state_recomputed", extra={"recompute_count": self.recompute_count})
        return self._resolution

    def invalidate(self) -> None:
        self._fingerprint = None
        self._resolution = None

    def replace_registry(self, registry: ModuleRegistry) -> None:
        self.registry = registry
        self.invalidate()
