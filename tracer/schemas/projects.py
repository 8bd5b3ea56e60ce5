import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from tracer.models.enums import Priority, ProjectRole, ProjectStatus

Tag = Annotated[str, Field(min_length=1, max_length=50)]

class ProjectCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    status: ProjectStatus = ProjectStatus.planning
    priority: Priority = Priority.medium
    start_date: datetime | None = None
    end_date: datetime | None = None
    tags: list[Tag] = Field(default_factory=list)

class ProjectUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    status: ProjectStatus | None = None
    priority: Priority | None = None
    is_archived: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    tags: list[Tag] | None = None

class TeamMemberIn(BaseModel):
    user_id: uuid.UUID
    role: ProjectRole = ProjectRole.member

class TransferOwnershipIn(BaseModel):
    user_id: uuid.UUID

class TeamMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    role: ProjectRole
    added_at: datetime

class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str
    status: ProjectStatus
    priority: Priority
    owner_id: uuid.UUID
    start_date: datetime
    end_date: datetime | None
    tags: list[str]
    is_archived: bool
    team: list[TeamMemberOut]

class ProjectDetailOut(BaseModel):
    project: ProjectOut
    tasks: dict[str, int]
    progress: int
