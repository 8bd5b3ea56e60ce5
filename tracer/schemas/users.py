import uuid

from pydantic import BaseModel

from tracer.models.enums import GlobalRole

class PermissionsOut(BaseModel):
    role: GlobalRole
    role_name: str
    permissions: list[str]
    modules: list[str]

class UserRemovalOut(BaseModel):
    user_id: uuid.UUID
    promoted: dict[uuid.UUID, uuid.UUID]
    deleted_projects: list[uuid.UUID]
    memberships_removed: int
    reassigned_tasks: dict[uuid.UUID, uuid.UUID | None]
