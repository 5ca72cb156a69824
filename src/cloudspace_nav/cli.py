from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config import load_config
from .exceptions import ConfigError, RegistryError
from .log import configure_logging
from .registry import load_registry
from .resolver import resolve
from .telemetry import TelemetryLogger


def _read_user(path: str) -> object:
    if path == "-":
        return json.loads(sys.stdin.read() or "null")
    return json.loads(Path(path).read_text(encoding="utf-8"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cloudspace-nav", description="Sidebar resolution diagnostics")
    subcommands = parser.add_subparsers(dest="command", required=True)

    resolve_cmd = subcommands.add_parser("resolve", help="Resolve the visible sidebar modules for a user")
    resolve_cmd.add_argument("--registry", help="Module registry JSON (default: CLOUDSPACE_NAV_REGISTRY_PATH)")
    resolve_cmd.add_argument("--user", required=True, help="User context JSON file, or - for stdin")
    resolve_cmd.add_argument("--env-file", default=None, help="Optional .env file")
    resolve_cmd.add_argument("--compact", action="store_true", help="Print module and sub-item ids only")
    resolve_cmd.add_argument("--verbose", action="store_true", help="Log resolution details to stderr")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = load_config(args.env_file)
        registry_path = args.registry or config.registry_path
        if not registry_path:
            raise ConfigError("Missing registry: pass --registry or set CLOUDSPACE_NAV_REGISTRY_PATH.")
        registry = load_registry(registry_path, config=config)
        user = _read_user(args.user)
    except (ConfigError, RegistryError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    telemetry = TelemetryLogger.from_config(config)
    resolution = resolve(user, registry, telemetry=telemetry)

    if args.compact:
        output = {
            "tier": resolution.tier.value,
            "modules": {module.id: [item.id for item in module.sub_items] for module in resolution.modules},
        }
    else:
        output = resolution.model_dump(mode="json", exclude_none=True)
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 1 if resolution.degraded else 0


if __name__ == "__main__":
    raise SystemExit(main())
