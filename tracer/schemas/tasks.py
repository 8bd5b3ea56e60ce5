import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tracer.models.enums import Priority, TaskStatus
from tracer.schemas.projects import Tag

class TaskCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    status: TaskStatus = TaskStatus.todo
    priority: Priority = Priority.medium
    due_date: datetime | None = None
    assigned_to: uuid.UUID | None = None
    estimate_minutes: int = Field(default=0, ge=0)
    subtasks: list[str] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)

class TaskUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    status: TaskStatus | None = None
    priority: Priority | None = None
    due_date: datetime | None = None
    assigned_to: uuid.UUID | None = None
    estimate_minutes: int | None = Field(default=None, ge=0)
    tags: list[Tag] | None = None

class CommentIn(BaseModel):
    text: str = Field(min_length=1)

class SubtaskIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)

class SubtaskUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    completed: bool | None = None

class TimeLogIn(BaseModel):
    start_time: datetime
    end_time: datetime
    description: str = Field(default="", max_length=500)

class TimeLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    description: str

class SubtaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    completed: bool
    completed_at: datetime | None

class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: uuid.UUID
    text: str
    created_at: datetime

class TimeTrackingOut(BaseModel):
    estimate_minutes: int
    time_spent_minutes: int
    logs: list[TimeLogOut]

class TaskOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: str
    status: TaskStatus
    priority: Priority
    due_date: datetime | None
    completed_at: datetime | None
    created_by: uuid.UUID
    assigned_to: uuid.UUID | None
    tags: list[str]
    time_tracking: TimeTrackingOut
    subtasks: list[SubtaskOut]
    subtask_progress: int
    comments: list[CommentOut]

class TimeLogResultOut(BaseModel):
    time_log: TimeLogOut
    time_spent_minutes: int
    duration_minutes: int
