import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tracer.auth.deps import get_current_actor
from tracer.db import get_db
from tracer.models.enums import Priority, TaskStatus
from tracer.models.task import Task
from tracer.notifications import Notifier, get_notifier
from tracer.rbac.policy import ActorContext
from tracer.schemas.tasks import (
    CommentIn,
    CommentOut,
    SubtaskIn,
    SubtaskOut,
    SubtaskUpdateIn,
    TaskCreateIn,
    TaskOut,
    TaskUpdateIn,
    TimeLogIn,
    TimeLogOut,
    TimeLogResultOut,
    TimeTrackingOut,
)
from tracer.services import tasks as svc

router = APIRouter(tags=["tasks"])

def task_out(t: Task) -> TaskOut:
    return TaskOut(
        id=t.id,
        project_id=t.project_id,
        title=t.title,
        description=t.description,
        status=t.status,
        priority=t.priority,
        due_date=t.due_date,
        completed_at=t.completed_at,
        created_by=t.created_by,
        assigned_to=t.assigned_to,
        tags=t.tags,
        time_tracking=TimeTrackingOut(
            estimate_minutes=t.estimate_minutes,
            time_spent_minutes=t.time_spent_minutes,
            logs=[TimeLogOut.model_validate(log) for log in t.time_logs],
        ),
        subtasks=[SubtaskOut.model_validate(s) for s in t.subtasks],
        subtask_progress=t.calculate_subtask_progress(),
        comments=[CommentOut.model_validate(c) for c in t.comments],
    )

@router.post("/projects/{project_id}/tasks", response_model=TaskOut)
def create_task(
    project_id: uuid.UUID,
    payload: TaskCreateIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> TaskOut:
    t = svc.create_task(db, actor, project_id, notifier=notifier, **payload.model_dump())
    return task_out(t)

@router.get("/projects/{project_id}/tasks", response_model=list[TaskOut])
def list_tasks(
    project_id: uuid.UUID,
    status: TaskStatus | None = None,
    assigned_to: uuid.UUID | None = None,
    priority: Priority | None = None,
    tags: list[str] | None = Query(default=None),
    search: str | None = None,
    due: Literal["today", "week", "overdue"] | None = None,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> list[TaskOut]:
    rows = svc.list_tasks(
        db,
        actor,
        project_id,
        status=status,
        assigned_to=assigned_to,
        priority=priority,
        tags=tags,
        search=search,
        due=due,
    )
    return [task_out(t) for t in rows]

@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_task(
    task_id: uuid.UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> TaskOut:
    return task_out(svc.get_task(db, actor, task_id))

@router.patch("/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdateIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> TaskOut:
    # allow explicit unassign by sending null
    t = svc.update_task(db, actor, task_id, payload.model_dump(exclude_unset=True), notifier=notifier)
    return task_out(t)

@router.delete("/tasks/{task_id}")
def delete_task(
    task_id: uuid.UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    svc.delete_task(db, actor, task_id)
    return {"deleted": True}

@router.post("/tasks/{task_id}/comments", response_model=CommentOut)
def add_comment(
    task_id: uuid.UUID,
    payload: CommentIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> CommentOut:
    return CommentOut.model_validate(svc.add_comment(db, actor, task_id, payload.text))

@router.delete("/tasks/{task_id}/comments/{comment_id}")
def delete_comment(
    task_id: uuid.UUID,
    comment_id: int,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    svc.delete_comment(db, actor, task_id, comment_id)
    return {"deleted": True}

@router.post("/tasks/{task_id}/subtasks", response_model=SubtaskOut)
def add_subtask(
    task_id: uuid.UUID,
    payload: SubtaskIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> SubtaskOut:
    return SubtaskOut.model_validate(svc.add_subtask(db, actor, task_id, payload.title))

@router.patch("/tasks/{task_id}/subtasks/{subtask_id}", response_model=SubtaskOut)
def update_subtask(
    task_id: uuid.UUID,
    subtask_id: int,
    payload: SubtaskUpdateIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> SubtaskOut:
    s = svc.update_subtask(db, actor, task_id, subtask_id, title=payload.title, completed=payload.completed)
    return SubtaskOut.model_validate(s)

@router.delete("/tasks/{task_id}/subtasks/{subtask_id}")
def delete_subtask(
    task_id: uuid.UUID,
    subtask_id: int,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    svc.delete_subtask(db, actor, task_id, subtask_id)
    return {"deleted": True}

@router.post("/tasks/{task_id}/time-logs", response_model=TimeLogResultOut)
def log_time(
    task_id: uuid.UUID,
    payload: TimeLogIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> TimeLogResultOut:
    r = svc.log_time(db, actor, task_id, payload.start_time, payload.end_time, payload.description)
    return TimeLogResultOut(
        time_log=TimeLogOut.model_validate(r.time_log),
        time_spent_minutes=r.time_spent_minutes,
        duration_minutes=r.duration_minutes,
    )
