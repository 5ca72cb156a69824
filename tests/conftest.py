from __future__ import annotations

import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = BASE_DIR / "src"

sys.path.insert(0, str(SRC_DIR))

from cloudspace_nav.registry import ModuleRegistry  # noqa: E402

REGISTRY_DOCUMENT = {
    "version": "2024.1",
    "aliases": {"finance-desk": "finance"},
    "route_permissions": {"/hr/payroll": "hr.payroll"},
    "modules": [
        {
            "id": "finance",
            "name": "Finance",
            "path": "/finance",
            "subItems": [
                {"id": "transactions", "name": "Transactions", "path": "/finance/transactions", "permissionId": "finance.transactions"},
                {"id": "budgets", "name": "Budgets", "path": "/finance/budgets", "permissionId": "finance.budgets"},
            ],
        },
        {
            "id": "hr",
            "name": "People",
            "path": "/hr",
            "subItems": [
                {"id": "employees", "name": "Employees", "path": "/hr/employees", "permissionId": "hr.employees"},
                {"id": "payroll", "name": "Payroll", "path": "/hr/payroll"},
            ],
        },
        {"id": "crm", "name": "CRM", "path": "/crm", "status": "coming_soon"},
        {"id": "reports", "name": "Reports", "path": "/reports"},
        {
            "id": "my-desk",
            "name": "My Desk",
            "path": "/my-desk",
            "subItems": [{"id": "overview", "name": "Overview", "path": "/my-desk/overview"}],
        },
    ],
}


@pytest.fixture()
def registry_document() -> dict:
    return REGISTRY_DOCUMENT


@pytest.fixture()
def registry() -> ModuleRegistry:
    return ModuleRegistry.from_dict(REGISTRY_DOCUMENT)

