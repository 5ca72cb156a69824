from .badges import ApprovalsClient, BadgeCountService, apply_badges
from .config import NavConfig, load_config
from .decoding import decode_list, decode_mapping
from .exceptions import (
    ApiError,
    CatastrophicFailure,
    ConfigError,
    DecodeFailure,
    NavigationError,
    PredicateFailure,
    RegistryError,
    TransportError,
    UnknownIdentifier,
)
from .models import (
    ModuleDescriptor,
    ModuleStatus,
    Resolution,
    ResolutionTier,
    ResolvedModule,
    SubItemDescriptor,
    UserContext,
    VisibilityRule,
)
from .permissions import PermissionSet
from .registry import ModuleRegistry, load_registry
from .resolver import resolve, resolve_entries, resolve_visible_modules
from .state import SidebarState
from .telemetry import TelemetryLogger
from .visibility import VisibilityRuleRegistry

__all__ = [
    "ApiError",
    "ApprovalsClient",
    "BadgeCountService",
    "CatastrophicFailure",
    "ConfigError",
    "DecodeFailure",
    "ModuleDescriptor",
    "ModuleRegistry",
    "ModuleStatus",
    "NavConfig",
    "NavigationError",
    "PermissionSet",
    "PredicateFailure",
    "RegistryError",
    "Resolution",
    "ResolutionTier",
    "ResolvedModule",
    "SidebarState",
    "SubItemDescriptor",
    "TelemetryLogger",
    "TransportError",
    "UnknownIdentifier",
    "UserContext",
    "VisibilityRule",
    "VisibilityRuleRegistry",
    "apply_badges",
    "decode_list",
    "decode_mapping",
    "load_config",
    "load_registry",
    "resolve",
    "resolve_entries",
    "resolve_visible_modules",
]
