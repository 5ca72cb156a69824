from __future__ import annotations

import json

from cloudspace_nav.models import SubItemDescriptor
from cloudspace_nav.permissions import ModuleGrant, PermissionSet

ROUTES = {"/finance/transactions": "finance.transactions", "/hr/payroll": "hr.payroll"}


def test_default_deny() -> None:
    permissions = PermissionSet()

    assert permissions.is_empty()
    assert not permissions.has_module("finance")
    assert not permissions.has_item("finance.transactions")
    assert not permissions.has_route("/finance/transactions")
    assert not permissions.has_item(None)
    assert not permissions.has_module("")


def test_from_sidebar_modules_requires_explicit_enabled_flag() -> None:
    raw = json.dumps(
        [
            {"module_id": "finance", "enabled": True, "permissions": ["read"], "items": ["finance.transactions"]},
            {"module_id": "hr", "enabled": False, "items": ["hr.payroll"]},
            {"module_id": "crm"},
        ]
    )

    permissions = PermissionSet.from_sidebar_modules(raw, route_permissions=ROUTES)

    assert permissions.has_module("finance")
    assert not permissions.has_module("hr")
    assert not permissions.has_module("crm")
    assert permissions.has_item("finance.transactions")
    assert not permissions.has_item("hr.payroll")
    assert permissions.get_module_items("finance") == ["finance.transactions"]
    assert permissions.module_permission_levels("finance") == ["read"]
    assert permissions.module_permission_levels("hr") == []


def test_routes_map_through_permission_ids() -> None:
    permissions = PermissionSet.from_raw({"items": ["hr.payroll"]}, route_permissions=ROUTES)

    assert permissions.has_route("/hr/payroll")
    assert not permissions.has_route("/finance/transactions")
    assert not permissions.has_route("/unmapped")
    assert not permissions.has_route(None)


def test_allows_sub_item_checks_permission_id_then_route() -> None:
    permissions = PermissionSet.from_raw({"items": ["hr.payroll", "finance.budgets"]}, route_permissions=ROUTES)

    assert permissions.allows_sub_item(SubItemDescriptor(id="budgets", permission_id="finance.budgets"))
    assert permissions.allows_sub_item(SubItemDescriptor(id="payroll", path="/hr/payroll"))
    assert not permissions.allows_sub_item(SubItemDescriptor(id="employees", path="/hr/employees"))
    assert not permissions.allows_sub_item(SubItemDescriptor(id="transactions", path="/finance/transactions"))


def test_from_raw_merges_module_grant_items() -> None:
    permissions = PermissionSet.from_raw(
        {
            "modules": {
                "finance": {"enabled": True, "items": ["finance.budgets"]},
                "hr": {"enabled": False, "items": ["hr.payroll"]},
                "reports": True,
                "crm": "yes",
            },
            "items": {"reports.view"},
            "moduleItems": {"reports": ["reports.view"]},
        }
    )

    assert permissions.has_module("finance")
    assert permissions.has_module("reports")
    assert not permissions.has_module("crm")
    assert permissions.has_all(["finance.budgets", "reports.view"])
    assert permissions.has_any(["hr.payroll", "reports.view"])
    assert not permissions.has_any(["hr.payroll"])
    assert permissions.get_module_items("finance") == ["finance.budgets"]
    assert permissions.get_module_items("reports") == ["reports.view"]


def test_from_raw_tolerates_garbage() -> None:
    assert PermissionSet.from_raw("not json").is_empty()
    assert PermissionSet.from_raw(None).is_empty()
    assert PermissionSet.from_raw({"modules": ["finance"], "items": 5}).is_empty()


def test_from_raw_reuses_existing_set() -> None:
    permissions = PermissionSet(modules={"hr": ModuleGrant(enabled=True)})

    assert PermissionSet.from_raw(permissions) is permissions
    rebound = PermissionSet.from_raw(permissions, route_permissions=ROUTES)
    assert rebound.has_module("hr")
    assert rebound.route_permissions == ROUTES


def test_dict_round_trip_keeps_grants() -> None:
    permissions = PermissionSet.from_raw(
        {"modules": {"finance": {"enabled": True, "permissions": ["write"]}}, "items": ["finance.budgets"]},
        route_permissions=ROUTES,
    )

    restored = PermissionSet.from_dict(permissions.to_dict())

    assert restored == permissions
    assert restored.to_dict()["items"] == ["finance.budgets"]
