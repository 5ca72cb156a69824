from __future__ import annotations


def make_user(
    *,
    sidebar_modules: object = None,
    allowed_modules: object = None,
    permissions: object = None,
    role: str | None = "USER",
    email: str | None = "ana@cloudspace.test",
    user_type: str | None = "staff",
) -> dict:
    return {
        "id": "user-1",
        "email": email,
        "role": role,
        "company": {"id": 10, "name": "Acme", "allowedModules": allowed_modules},
        "userType": {"name": user_type, "sidebarModules": sidebar_modules},
        "permissions": permissions,
    }
