from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from .config import NavConfig

DEFAULT_TELEMETRY_PATH = Path("artifacts") / "telemetry" / "cloudspace_nav.jsonl"
TELEMETRY_CATEGORIES = {"navigation", "error"}
_FORBIDDEN_CONTEXT_KEYS = {
    "email",
    "password",
    "phone",
    "full_name",
    "first_name",
    "last_name",
    "token",
    "authorization",
}


@dataclass(frozen=True)
class TelemetryEvent:
    category: str
    name: str
    action: str
    timestamp_utc: str
    tier: str | None = None
    success: bool | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        return {key: value for key, value in payload.items() if value is not None}


def _validate_context(context: dict[str, Any] | None) -> None:
    if not context:
        return
    illegal = sorted(key for key in context if key.lower() in _FORBIDDEN_CONTEXT_KEYS)
    if illegal:
        raise ValueError(f"PII-like keys are forbidden in telemetry context: {illegal}")


def build_event(
    *,
    category: str,
    name: str,
    action: str,
    tier: str | None = None,
    success: bool | None = None,
    error_code: str | None = None,
    context: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> TelemetryEvent:
    if category not in TELEMETRY_CATEGORIES:
        raise ValueError(f"Unsupported telemetry category: {category}")
    _validate_context(context)
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    return TelemetryEvent(
        category=category,
        name=name,
        action=action,
        timestamp_utc=stamp,
        tier=tier,
        success=success,
        error_code=error_code,
        context=context,
    )


class TelemetryLogger:
    """Appends resolution events to a JSONL file, optionally echoing each line."""

    def __init__(self, log_file: str | Path = DEFAULT_TELEMETRY_PATH, *, mirror: TextIO | None = None) -> None:
        self.log_file = Path(log_file)
        self.mirror = mirror

    @classmethod
    def from_config(cls, config: NavConfig, *, mirror: TextIO | None = None) -> "TelemetryLogger | None":
        """Sink configured by ``config``; None when telemetry is switched off."""
        if not config.telemetry_enabled:
            return None
        return cls(config.telemetry_path or DEFAULT_TELEMETRY_PATH, mirror=mirror)

    def emit(self, event: TelemetryEvent) -> None:
        line = json.dumps(event.to_dict(), sort_keys=True)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with self.log_file.open("a", encoding="utf-8") as fp:
            fp.write(f"{line}\n")
        if self.mirror is not None:
            self.mirror.write(f"{line}\n")
            self.mirror.flush()
