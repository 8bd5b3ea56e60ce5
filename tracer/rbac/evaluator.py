from collections.abc import Iterable

from tracer.models.enums import GlobalRole
from tracer.rbac.perms import PERMS, PermissionTable

ROLE_NAMES: dict[GlobalRole, str] = {
    GlobalRole.admin: "Super Admin",
    GlobalRole.supervisor: "Supervisor",
    GlobalRole.accountant: "Accountant",
    GlobalRole.warehouse: "Warehouse Manager",
    GlobalRole.installer: "Service Installer",
    GlobalRole.user: "User",
}

def as_role(role: GlobalRole | str | None) -> GlobalRole | None:
    if role is None:
        return None
    try:
        return GlobalRole(role)
    except ValueError:
        return None

def has_action_permission(role: GlobalRole | str | None, action: str, table: PermissionTable = PERMS) -> bool:
    r = as_role(role)
    if r is None or not action:
        return False
    return r in table.actions.get(action, frozenset())

def has_module_access(role: GlobalRole | str | None, module: str, table: PermissionTable = PERMS) -> bool:
    r = as_role(role)
    if r is None or not module:
        return False
    return r in table.modules.get(module, frozenset())

def is_user_authorized(role: GlobalRole | str | None, allowed_roles: Iterable[GlobalRole | str] | None) -> bool:
    r = as_role(role)
    if r is None or allowed_roles is None:
        return False
    return any(as_role(a) == r for a in allowed_roles)

def has_minimum_role(
    role: GlobalRole | str | None, required: GlobalRole | str | None, table: PermissionTable = PERMS
) -> bool:
    r, req = as_role(role), as_role(required)
    if r is None or req is None:
        return False
    return table.hierarchy.get(r, 0) >= table.hierarchy.get(req, 0)

def get_user_permissions(role: GlobalRole | str | None, table: PermissionTable = PERMS) -> list[str]:
    r = as_role(role)
    if r is None:
        return []
    return [action for action, roles in table.actions.items() if r in roles]

def get_user_modules(role: GlobalRole | str | None, table: PermissionTable = PERMS) -> list[str]:
    r = as_role(role)
    if r is None:
        return []
    return [module for module, roles in table.modules.items() if r in roles]

def get_role_name(role: GlobalRole | str | None) -> str:
    r = as_role(role)
    if r is None:
        return str(role) if role else "Unknown Role"
    return ROLE_NAMES[r]
