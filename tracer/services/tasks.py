import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from tracer.errors import Forbidden, InvalidOperation, NotFound, ValidationError
from tracer.models.base import clean_tags, now_utc
from tracer.models.enums import Priority, TaskStatus
from tracer.models.project import Project
from tracer.models.task import Comment, Subtask, Task, TaskTag, TimeLog
from tracer.notifications import TASK_ASSIGNED, Notifier, safe_notify
from tracer.rbac.policy import ActorContext, authorize, can_act
from tracer.services.projects import load_project

logger = logging.getLogger(__name__)

UPDATABLE = {"title", "description", "status", "priority", "due_date", "assigned_to", "estimate_minutes", "tags"}

DUE_BUCKETS = ("today", "week", "overdue")

@dataclass
class TimeLogResult:
    time_log: TimeLog
    time_spent_minutes: int
    duration_minutes: int

def load_task(db: Session, task_id: uuid.UUID, lock: bool = False) -> Task:
    stmt = (
        select(Task)
        .where(Task.id == task_id)
        .options(
            selectinload(Task.time_logs),
            selectinload(Task.subtasks),
            selectinload(Task.comments),
            selectinload(Task.tag_rows),
        )
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()

    t = db.scalar(stmt)
    if t is None:
        raise NotFound("task not found")
    return t

def _load_with_project(db: Session, task_id: uuid.UUID, lock: bool = False) -> tuple[Task, Project]:
    t = load_task(db, task_id, lock=lock)
    return t, load_project(db, t.project_id)

def _clean(text: str | None, label: str) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError(f"{label} is required")
    return text

def _check_assignee(project: Project, user_id: uuid.UUID | None) -> None:
    if user_id is not None and not project.is_team_member(user_id):
        raise InvalidOperation("assignee must be a member of the project team")

def _priority(value: Priority | str) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise InvalidOperation(f"invalid priority: {value}")

def create_task(
    db: Session,
    actor: ActorContext,
    project_id: uuid.UUID,
    title: str,
    description: str = "",
    status: TaskStatus | str = TaskStatus.todo,
    priority: Priority | str = Priority.medium,
    due_date: datetime | None = None,
    assigned_to: uuid.UUID | None = None,
    estimate_minutes: int = 0,
    subtasks: Iterable[str] = (),
    tags: Iterable[str] = (),
    notifier: Notifier | None = None,
) -> Task:
    authorize(actor, "create_task")
    project = load_project(db, project_id)
    authorize(actor, "task:create", project)

    _check_assignee(project, assigned_to)
    if estimate_minutes < 0:
        raise ValidationError("estimate_minutes must not be negative")

    t = Task(
        project_id=project.id,
        title=_clean(title, "task title"),
        description=description or "",
        priority=_priority(priority),
        due_date=due_date,
        assigned_to=assigned_to,
        created_by=actor.id,
        estimate_minutes=estimate_minutes,
        time_spent_minutes=0,
    )
    t.set_status(status)
    for s in subtasks:
        t.add_subtask(_clean(s, "subtask title"))
    t.set_tags(tags)

    db.add(t)
    db.commit()
    db.refresh(t)

    if assigned_to is not None and assigned_to != actor.id:
        safe_notify(notifier, TASK_ASSIGNED, task_id=t.id, task_title=t.title, project_id=project.id,
                    user_id=assigned_to, assigned_by=actor.id)
    return t

def get_task(db: Session, actor: ActorContext, task_id: uuid.UUID) -> Task:
    t, project = _load_with_project(db, task_id)
    authorize(actor, "task:view", project)
    return t

def _due_window(bucket: str, now: datetime) -> tuple[datetime | None, datetime]:
    # buckets count whole UTC days from midnight today
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if bucket == "today":
        return today, today + timedelta(days=1)
    if bucket == "week":
        return today, today + timedelta(days=7)
    return None, today

def list_tasks(
    db: Session,
    actor: ActorContext,
    project_id: uuid.UUID,
    status: TaskStatus | str | None = None,
    assigned_to: uuid.UUID | None = None,
    priority: Priority | str | None = None,
    tags: Iterable[str] | None = None,
    search: str | None = None,
    due: str | None = None,
    now: datetime | None = None,
) -> list[Task]:
    project = load_project(db, project_id)
    authorize(actor, "task:view", project)

    q = select(Task).where(Task.project_id == project.id)
    if status is not None:
        try:
            q = q.where(Task.status == TaskStatus(status))
        except ValueError:
            raise InvalidOperation(f"invalid task status: {status}")
    if assigned_to is not None:
        q = q.where(Task.assigned_to == assigned_to)
    if priority is not None:
        q = q.where(Task.priority == _priority(priority))

    wanted = clean_tags(tags)
    if wanted:
        q = q.where(Task.tag_rows.any(TaskTag.tag.in_(wanted)))

    search = (search or "").strip()
    if search:
        q = q.where(
            or_(
                Task.title.icontains(search, autoescape=True),
                Task.description.icontains(search, autoescape=True),
                Task.tag_rows.any(TaskTag.tag.icontains(search, autoescape=True)),
            )
        )

    if due is not None:
        if due not in DUE_BUCKETS:
            raise InvalidOperation(f"invalid due filter: {due}")
        start, end = _due_window(due, now or now_utc())
        q = q.where(Task.due_date < end)
        if start is not None:
            q = q.where(Task.due_date >= start)
        else:
            # finished work is never overdue
            q = q.where(Task.status != TaskStatus.completed)

    q = q.order_by(Task.created_at.desc())
    return list(db.scalars(q).all())

def update_task(
    db: Session,
    actor: ActorContext,
    task_id: uuid.UUID,
    changes: dict[str, Any],
    notifier: Notifier | None = None,
) -> Task:
    """Apply a partial update.

    ``changes`` holds only the fields the caller sent, so an explicit
    ``assigned_to=None`` unassigns while a missing key leaves it alone.
    """
    unknown = set(changes) - UPDATABLE
    if unknown:
        raise ValidationError(f"unknown task fields: {', '.join(sorted(unknown))}")

    t, project = _load_with_project(db, task_id, lock=True)
    authorize(actor, "task:update", project)

    previous_assignee = t.assigned_to

    # validate everything before touching the row
    updates: dict[str, Any] = {}
    if "title" in changes:
        updates["title"] = _clean(changes["title"], "task title")
    if "description" in changes:
        updates["description"] = changes["description"] or ""
    if changes.get("priority") is not None:
        updates["priority"] = _priority(changes["priority"])
    if "due_date" in changes:
        updates["due_date"] = changes["due_date"]
    if changes.get("estimate_minutes") is not None:
        if changes["estimate_minutes"] < 0:
            raise ValidationError("estimate_minutes must not be negative")
        updates["estimate_minutes"] = changes["estimate_minutes"]
    if "assigned_to" in changes:
        _check_assignee(project, changes["assigned_to"])
        updates["assigned_to"] = changes["assigned_to"]
    tags = None
    if changes.get("tags") is not None:
        tags = clean_tags(changes["tags"])
    status = None
    if changes.get("status") is not None:
        try:
            status = TaskStatus(changes["status"])
        except ValueError:
            raise InvalidOperation(f"invalid task status: {changes['status']}")

    for k, v in updates.items():
        setattr(t, k, v)
    if status is not None:
        t.set_status(status)
    if tags is not None:
        t.set_tags(tags)

    db.commit()
    db.refresh(t)

    if t.assigned_to is not None and t.assigned_to != previous_assignee and t.assigned_to != actor.id:
        safe_notify(notifier, TASK_ASSIGNED, task_id=t.id, task_title=t.title, project_id=project.id,
                    user_id=t.assigned_to, assigned_by=actor.id)
    return t

def delete_task(db: Session, actor: ActorContext, task_id: uuid.UUID) -> None:
    t, project = _load_with_project(db, task_id, lock=True)
    authorize(actor, "task:delete", project, subject_id=t.created_by)

    db.delete(t)
    db.commit()

def add_comment(db: Session, actor: ActorContext, task_id: uuid.UUID, text: str) -> Comment:
    t, project = _load_with_project(db, task_id, lock=True)
    authorize(actor, "task:comment", project)

    c = t.add_comment(actor.id, _clean(text, "comment text"))
    db.commit()
    db.refresh(c)
    return c

def delete_comment(db: Session, actor: ActorContext, task_id: uuid.UUID, comment_id: int) -> None:
    t, project = _load_with_project(db, task_id, lock=True)
    c = t.find_comment(comment_id)

    # the author may delete their own comment even after leaving the team
    decision = can_act(actor, "task:delete_comment", project, subject_id=c.user_id)
    if not decision:
        if not can_act(actor, "task:view", project):
            raise NotFound("comment not found")
        raise Forbidden(decision.reason, "not allowed to task:delete_comment")

    t.remove_comment(comment_id)
    db.commit()

def add_subtask(db: Session, actor: ActorContext, task_id: uuid.UUID, title: str) -> Subtask:
    t, project = _load_with_project(db, task_id, lock=True)
    authorize(actor, "task:manage_subtasks", project)

    s = t.add_subtask(_clean(title, "subtask title"))
    db.commit()
    db.refresh(s)
    return s

def update_subtask(
    db: Session,
    actor: ActorContext,
    task_id: uuid.UUID,
    subtask_id: int,
    title: str | None = None,
    completed: bool | None = None,
) -> Subtask:
    t, project = _load_with_project(db, task_id, lock=True)
    authorize(actor, "task:manage_subtasks", project)

    s = t.update_subtask(
        subtask_id,
        title=_clean(title, "subtask title") if title is not None else None,
        completed=completed,
    )
    db.commit()
    db.refresh(s)
    return s

def delete_subtask(db: Session, actor: ActorContext, task_id: uuid.UUID, subtask_id: int) -> None:
    t, project = _load_with_project(db, task_id, lock=True)
    authorize(actor, "task:manage_subtasks", project)

    t.remove_subtask(subtask_id)
    db.commit()

def log_time(
    db: Session,
    actor: ActorContext,
    task_id: uuid.UUID,
    start_time: datetime,
    end_time: datetime,
    description: str = "",
) -> TimeLogResult:
    t, project = _load_with_project(db, task_id, lock=True)
    authorize(actor, "task:log_time", project)

    entry = t.log_time(actor.id, start_time, end_time, description)
    db.flush()

    # the log rows are the source of truth for the total
    t.time_spent_minutes = db.scalar(
        select(func.coalesce(func.sum(TimeLog.duration_minutes), 0)).where(TimeLog.task_id == t.id)
    )
    db.commit()
    db.refresh(entry)
    db.refresh(t)

    logger.info(
        "time logged",
        extra={"fields": {"task_id": str(t.id), "minutes": entry.duration_minutes, "user_id": str(actor.id)}},
    )
    return TimeLogResult(
        time_log=entry,
        time_spent_minutes=t.time_spent_minutes,
        duration_minutes=entry.duration_minutes,
    )
