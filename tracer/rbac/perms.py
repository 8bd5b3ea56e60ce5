from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from tracer.models.enums import GlobalRole

ADMIN = GlobalRole.admin
SUPERVISOR = GlobalRole.supervisor
ACCOUNTANT = GlobalRole.accountant
WAREHOUSE = GlobalRole.warehouse
INSTALLER = GlobalRole.installer
USER = GlobalRole.user

ALL_ROLES = (ADMIN, SUPERVISOR, ACCOUNTANT, WAREHOUSE, INSTALLER, USER)
STAFF = (ADMIN, SUPERVISOR, ACCOUNTANT, WAREHOUSE, INSTALLER)

@dataclass(frozen=True)
class PermissionTable:
    modules: Mapping[str, frozenset[GlobalRole]]
    actions: Mapping[str, frozenset[GlobalRole]]
    hierarchy: Mapping[GlobalRole, int]

def _freeze(table: Mapping[str, Iterable[GlobalRole]]) -> Mapping[str, frozenset[GlobalRole]]:
    return MappingProxyType({k: frozenset(v) for k, v in table.items()})

MODULE_PERMS: dict[str, tuple[GlobalRole, ...]] = {
    "dashboard": ALL_ROLES,
    "project": ALL_ROLES,
    "task": ALL_ROLES,
    "building": (ADMIN, SUPERVISOR),
    "splitter": (ADMIN, SUPERVISOR),
    "material": (ADMIN, SUPERVISOR, WAREHOUSE, INSTALLER),
    "serviceInstaller": (ADMIN, SUPERVISOR),
    "order": (ADMIN, SUPERVISOR, INSTALLER),
    "invoice": (ADMIN, ACCOUNTANT, INSTALLER),
    "report": (ADMIN, SUPERVISOR, ACCOUNTANT),
    "import": (ADMIN,),
    "export": (ADMIN, ACCOUNTANT),
    "search": STAFF,
    "settings": (ADMIN,),
    "users": (ADMIN,),
}

ACTION_PERMS: dict[str, tuple[GlobalRole, ...]] = {
    # collaborative resources
    "create_project": ALL_ROLES,
    "create_task": ALL_ROLES,

    "create_building": (ADMIN,),
    "create_splitter": (ADMIN,),
    "create_material": (ADMIN, WAREHOUSE),
    "create_serviceInstaller": (ADMIN,),
    "create_order": (ADMIN, SUPERVISOR),
    "create_invoice": (ADMIN, ACCOUNTANT),
    "create_activation": (ADMIN, SUPERVISOR),
    "create_assurance": (ADMIN, SUPERVISOR),
    "create_user": (ADMIN,),

    "view_building": (ADMIN, SUPERVISOR),
    "view_splitter": (ADMIN, SUPERVISOR),
    "view_material": (ADMIN, SUPERVISOR, WAREHOUSE, INSTALLER),
    "view_serviceInstaller": (ADMIN, SUPERVISOR),
    "view_order": (ADMIN, SUPERVISOR, INSTALLER),
    "view_invoice": (ADMIN, ACCOUNTANT, INSTALLER),
    "view_report": (ADMIN, SUPERVISOR, ACCOUNTANT),
    "view_activation": (ADMIN, SUPERVISOR, INSTALLER),
    "view_assurance": (ADMIN, SUPERVISOR, INSTALLER),
    "view_user": (ADMIN,),

    "edit_building": (ADMIN, SUPERVISOR),
    "edit_splitter": (ADMIN, SUPERVISOR),
    "edit_material": (ADMIN, WAREHOUSE),
    "edit_serviceInstaller": (ADMIN,),
    "edit_order": (ADMIN, SUPERVISOR),
    "edit_invoice": (ADMIN, ACCOUNTANT),
    "edit_activation": (ADMIN, SUPERVISOR),
    "edit_assurance": (ADMIN, SUPERVISOR),
    "edit_user": (ADMIN,),

    "delete_building": (ADMIN,),
    "delete_splitter": (ADMIN,),
    "delete_material": (ADMIN,),
    "delete_serviceInstaller": (ADMIN,),
    "delete_order": (ADMIN,),
    "delete_invoice": (ADMIN,),
    "delete_activation": (ADMIN,),
    "delete_assurance": (ADMIN,),
    "delete_user": (ADMIN,),

    "assign_material": (ADMIN, SUPERVISOR, WAREHOUSE),
    "assign_job": (ADMIN, SUPERVISOR),
    "complete_job": (ADMIN, SUPERVISOR, INSTALLER),
    "approve_report": (ADMIN, SUPERVISOR),
    "generate_report": (ADMIN, SUPERVISOR, ACCOUNTANT),
    "import_data": (ADMIN,),
    "export_data": (ADMIN, ACCOUNTANT),
    "change_status": (ADMIN, SUPERVISOR, INSTALLER),
    "update_stock": (ADMIN, WAREHOUSE),
    "system_settings": (ADMIN,),
    "manage_users": (ADMIN,),
}

# coarse levels for ui gating; grants go through ACTION_PERMS
ROLE_HIERARCHY: dict[GlobalRole, int] = {
    ADMIN: 50,
    SUPERVISOR: 40,
    ACCOUNTANT: 30,
    WAREHOUSE: 20,
    INSTALLER: 10,
    USER: 1,
}

PERMS = PermissionTable(
    modules=_freeze(MODULE_PERMS),
    actions=_freeze(ACTION_PERMS),
    hierarchy=MappingProxyType(dict(ROLE_HIERARCHY)),
)
