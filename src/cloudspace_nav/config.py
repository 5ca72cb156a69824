from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .exceptions import ConfigError

DEFAULT_FALLBACK_MODULE_ID = "my-desk"
DEFAULT_LEGACY_SUFFIX = "-desk"


@dataclass(frozen=True)
class NavConfig:
    fallback_module_id: str = DEFAULT_FALLBACK_MODULE_ID
    legacy_suffix: str = DEFAULT_LEGACY_SUFFIX
    registry_path: str | None = None
    api_base_url: str | None = None
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 15.0
    telemetry_enabled: bool = False
    telemetry_path: str | None = None

    def require_api_base_url(self) -> str:
        if not self.api_base_url:
            raise ConfigError("Missing required configuration CLOUDSPACE_NAV_API_BASE_URL.")
        return self.api_base_url


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_str(name: str) -> str | None:
    value = (os.getenv(name) or "").strip()
    return value or None


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> NavConfig:
    """Load config from environment with optional .env override."""
    load_dotenv(env_file)

    fallback_module_id = _read_str("CLOUDSPACE_NAV_FALLBACK_MODULE") or DEFAULT_FALLBACK_MODULE_ID

    # An explicitly empty suffix disables suffix stripping.
    raw_suffix = os.getenv("CLOUDSPACE_NAV_LEGACY_SUFFIX")
    legacy_suffix = DEFAULT_LEGACY_SUFFIX if raw_suffix is None else raw_suffix.strip()

    connect_timeout_seconds = _read_float("CLOUDSPACE_NAV_CONNECT_TIMEOUT_SECONDS", "5")
    _validate(
        connect_timeout_seconds > 0,
        f"Invalid CLOUDSPACE_NAV_CONNECT_TIMEOUT_SECONDS: expected > 0, got {connect_timeout_seconds}",
    )
    read_timeout_seconds = _read_float("CLOUDSPACE_NAV_READ_TIMEOUT_SECONDS", "15")
    _validate(
        read_timeout_seconds > 0,
        f"Invalid CLOUDSPACE_NAV_READ_TIMEOUT_SECONDS: expected > 0, got {read_timeout_seconds}",
    )

    api_base_url = _read_str("CLOUDSPACE_NAV_API_BASE_URL")

    return NavConfig(
        fallback_module_id=fallback_module_id,
        legacy_suffix=legacy_suffix,
        registry_path=_read_str("CLOUDSPACE_NAV_REGISTRY_PATH"),
        api_base_url=api_base_url.rstrip("/") if api_base_url else None,
        connect_timeout_seconds=connect_timeout_seconds,
        read_timeout_seconds=read_timeout_seconds,
        telemetry_enabled=_coerce_bool(os.getenv("CLOUDSPACE_NAV_TELEMETRY_ENABLED"), False),
        telemetry_path=_read_str("CLOUDSPACE_NAV_TELEMETRY_PATH"),
    )
