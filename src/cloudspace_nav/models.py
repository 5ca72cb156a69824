from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ModuleStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMING_SOON = "coming_soon"
    PARTIAL = "partial"


class ResolutionTier(str, Enum):
    ROLE_ASSIGNMENT = "role_assignment"
    COMPANY_ALLOWLIST = "company_allowlist"
    PERMISSION_MAP = "permission_map"
    FALLBACK = "fallback"


class VisibilityRule(BaseModel):
    """Serializable replacement for a per-module visibility callback."""

    model_config = ConfigDict(frozen=True)

    rule: str
    roles: Tuple[str, ...] = ()
    user_types: Tuple[str, ...] = ()
    domains: Tuple[str, ...] = ()
    rules: Tuple["VisibilityRule", ...] = ()


class SubItemDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    path: str = ""
    badge: Optional[str | int] = None
    permission_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("permission_id", "permissionId")
    )
    status: Optional[ModuleStatus] = None


class ModuleDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    path: str = ""
    sub_items: Tuple[SubItemDescriptor, ...] = Field(
        default=(), validation_alias=AliasChoices("sub_items", "subItems")
    )
    status: ModuleStatus = ModuleStatus.ACTIVE
    badge: Optional[str] = None
    category: Optional[str] = None
    visibility: Optional[VisibilityRule] = Field(
        default=None, validation_alias=AliasChoices("visibility", "customVisibility")
    )

    def sub_item_ids(self) -> list[str]:
        return [item.id for item in self.sub_items]


class ResolvedModule(ModuleDescriptor):
    """Registry module copy carrying only the sub-items this user may see."""

    @classmethod
    def from_descriptor(
        cls, module: ModuleDescriptor, sub_items: list[SubItemDescriptor] | tuple[SubItemDescriptor, ...]
    ) -> "ResolvedModule":
        fields = {name: getattr(module, name) for name in ModuleDescriptor.model_fields}
        fields["sub_items"] = tuple(sub_items)
        return cls(**fields)


class ResolvedEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    sub_item_allowlist: Optional[Tuple[str, ...]] = None


class SidebarModuleEntry(BaseModel):
    """One record of a user type's sidebar assignment."""

    model_config = ConfigDict(populate_by_name=True)

    module_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("module_id", "moduleId")
    )
    enabled: Any = True
    items: Optional[List[str]] = None
    sub_items: Optional[List[str]] = Field(
        default=None, validation_alias=AliasChoices("sub_items", "subItems")
    )
    permissions: List[str] = Field(default_factory=list)

    @field_validator("module_id", mode="before")
    @classmethod
    def coerce_module_id(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None

    @field_validator("items", "sub_items", mode="before")
    @classmethod
    def coerce_id_list(cls, value: Any) -> Optional[list[str]]:
        if isinstance(value, str):
            return [value]
        if not isinstance(value, (list, tuple)):
            return None
        return [str(item) for item in value if item is not None]

    @field_validator("permissions", mode="before")
    @classmethod
    def coerce_permission_levels(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item) for item in value if item is not None]

    def is_enabled(self) -> bool:
        return self.enabled is not False

    def item_allowlist(self) -> list[str]:
        if self.items is not None:
            return list(self.items)
        return list(self.sub_items or [])


def _mapping_or_none(value: Any) -> Any:
    if value is None or isinstance(value, (BaseModel, dict)):
        return value
    return None


def _text_or_none(value: Any) -> Optional[str]:
    # Profile fields never gate resolution; structured values are dropped.
    if value is None or isinstance(value, (BaseModel, dict, list, tuple, set)):
        return None
    return str(value)


class CompanyInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Any = None
    name: Optional[str] = None
    allowed_modules: Any = Field(
        default=None, validation_alias=AliasChoices("allowed_modules", "allowedModules")
    )

    lenient_name = field_validator("name", mode="before")(_text_or_none)


class UserTypeInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: Optional[str] = None
    sidebar_modules: Any = Field(
        default=None, validation_alias=AliasChoices("sidebar_modules", "sidebarModules")
    )

    lenient_name = field_validator("name", mode="before")(_text_or_none)


class UserContext(BaseModel):
    """Already-authorized user data consumed by one resolution call."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("user_id", "id", "userId"))
    email: Optional[str] = None
    role: Optional[str] = None
    company: Optional[CompanyInfo] = Field(
        default=None, validation_alias=AliasChoices("company", "Company")
    )
    user_type: Optional[UserTypeInfo] = Field(
        default=None, validation_alias=AliasChoices("user_type", "userType", "UserType")
    )
    permissions: Any = None

    @field_validator("company", "user_type", mode="before")
    @classmethod
    def lenient_section(cls, value: Any) -> Any:
        return _mapping_or_none(value)

    lenient_text = field_validator("user_id", "email", "role", mode="before")(_text_or_none)

    @property
    def raw_allowed_modules(self) -> Any:
        return self.company.allowed_modules if self.company else None

    @property
    def raw_sidebar_modules(self) -> Any:
        return self.user_type.sidebar_modules if self.user_type else None

    @property
    def user_type_name(self) -> Optional[str]:
        return self.user_type.name if self.user_type else None


class Resolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: ResolutionTier
    modules: Tuple[ResolvedModule, ...] = ()
    degraded: bool = False

    def module_ids(self) -> list[str]:
        return [module.id for module in self.modules]


VisibilityRule.model_rebuild()
