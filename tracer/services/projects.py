import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from tracer.errors import InvalidOperation, NotFound, ValidationError
from tracer.models.base import clean_tags, now_utc
from tracer.models.enums import Priority, ProjectRole, ProjectStatus, TaskStatus
from tracer.models.project import Project, ProjectTag, TeamMember
from tracer.models.task import Task, percent
from tracer.models.user import User
from tracer.notifications import MEMBER_ADDED, OWNERSHIP_TRANSFERRED, TASK_ASSIGNED, Notifier, safe_notify
from tracer.rbac.policy import ActorContext, authorize, is_super

logger = logging.getLogger(__name__)

@dataclass
class ProjectDetail:
    project: Project
    tasks: dict[str, int] = field(default_factory=dict)
    progress: int = 0

def load_project(db: Session, project_id: uuid.UUID, lock: bool = False) -> Project:
    # always re-read; authorization must see the membership as it is now
    stmt = (
        select(Project)
        .where(Project.id == project_id)
        .options(selectinload(Project.team), selectinload(Project.tag_rows))
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()

    p = db.scalar(stmt)
    if p is None:
        raise NotFound("project not found")
    return p

def _enum(kind, value, label: str):
    try:
        return kind(value)
    except ValueError:
        raise InvalidOperation(f"invalid {label}: {value}")

def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("project name is required")
    return name

def task_counts(db: Session, project_id: uuid.UUID) -> dict[str, int]:
    counts = {s.value: 0 for s in TaskStatus}
    rows = db.execute(
        select(Task.status, func.count()).where(Task.project_id == project_id).group_by(Task.status)
    ).all()
    for status, n in rows:
        counts[TaskStatus(status).value] = int(n)
    counts["total"] = sum(counts.values())
    return counts

def create_project(
    db: Session,
    actor: ActorContext,
    name: str,
    description: str = "",
    status: ProjectStatus | str = ProjectStatus.planning,
    priority: Priority | str = Priority.medium,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    tags: Iterable[str] = (),
) -> Project:
    authorize(actor, "create_project")

    p = Project.create(
        owner_id=actor.id,
        name=_clean_name(name),
        description=description or "",
        status=_enum(ProjectStatus, status, "project status"),
        priority=_enum(Priority, priority, "priority"),
        start_date=start_date or now_utc(),
        end_date=end_date,
    )
    p.set_tags(tags)
    db.add(p)
    db.commit()
    db.refresh(p)
    logger.info("project created", extra={"fields": {"project_id": str(p.id), "owner_id": str(actor.id)}})
    return p

def get_project(db: Session, actor: ActorContext, project_id: uuid.UUID) -> ProjectDetail:
    p = load_project(db, project_id)
    authorize(actor, "project:view", p)

    counts = task_counts(db, p.id)
    return ProjectDetail(
        project=p,
        tasks=counts,
        progress=percent(counts[TaskStatus.completed.value], counts["total"]),
    )

def list_projects(
    db: Session,
    actor: ActorContext,
    status: ProjectStatus | str | None = None,
    archived: bool | None = False,
    owner_id: uuid.UUID | None = None,
    priority: Priority | str | None = None,
    tags: Iterable[str] | None = None,
    search: str | None = None,
) -> list[Project]:
    q = select(Project).options(selectinload(Project.team), selectinload(Project.tag_rows))

    if not is_super(actor):
        q = q.where(
            or_(
                Project.owner_id == actor.id,
                Project.team.any(TeamMember.user_id == actor.id),
            )
        )
    if status is not None:
        q = q.where(Project.status == _enum(ProjectStatus, status, "project status"))
    if archived is not None:
        q = q.where(Project.is_archived == archived)
    if owner_id is not None:
        q = q.where(Project.owner_id == owner_id)
    if priority is not None:
        q = q.where(Project.priority == _enum(Priority, priority, "priority"))

    # any of the given tags
    wanted = clean_tags(tags)
    if wanted:
        q = q.where(Project.tag_rows.any(ProjectTag.tag.in_(wanted)))

    search = (search or "").strip()
    if search:
        q = q.where(
            or_(
                Project.name.icontains(search, autoescape=True),
                Project.description.icontains(search, autoescape=True),
                Project.tag_rows.any(ProjectTag.tag.icontains(search, autoescape=True)),
            )
        )

    q = q.order_by(Project.updated_at.desc(), Project.created_at.desc())
    return list(db.scalars(q).all())

def update_project(
    db: Session,
    actor: ActorContext,
    project_id: uuid.UUID,
    name: str | None = None,
    description: str | None = None,
    status: ProjectStatus | str | None = None,
    priority: Priority | str | None = None,
    is_archived: bool | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    tags: Iterable[str] | None = None,
) -> Project:
    p = load_project(db, project_id, lock=True)
    authorize(actor, "project:update", p)

    # validate everything before touching the row
    updates: dict = {}
    if name is not None:
        updates["name"] = _clean_name(name)
    if description is not None:
        updates["description"] = description
    if status is not None:
        updates["status"] = _enum(ProjectStatus, status, "project status")
    if priority is not None:
        updates["priority"] = _enum(Priority, priority, "priority")
    if is_archived is not None:
        updates["is_archived"] = is_archived
    if start_date is not None:
        updates["start_date"] = start_date
    if end_date is not None:
        updates["end_date"] = end_date

    for k, v in updates.items():
        setattr(p, k, v)
    if tags is not None:
        p.set_tags(tags)

    db.commit()
    db.refresh(p)
    return p

def cascade_delete_project(db: Session, project: Project) -> int:
    # children first, so an interrupted run never leaves tasks pointing at nothing
    tasks = db.scalars(select(Task).where(Task.project_id == project.id)).all()
    for t in tasks:
        db.delete(t)
    db.flush()

    db.delete(project)
    db.flush()
    return len(tasks)

def delete_project(db: Session, actor: ActorContext, project_id: uuid.UUID) -> int:
    p = load_project(db, project_id, lock=True)
    authorize(actor, "project:delete", p)

    n = cascade_delete_project(db, p)
    db.commit()
    logger.info(
        "project deleted",
        extra={"fields": {"project_id": str(project_id), "tasks_deleted": n, "actor_id": str(actor.id)}},
    )
    return n

def add_team_member(
    db: Session,
    actor: ActorContext,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    role: ProjectRole | str = ProjectRole.member,
    notifier: Notifier | None = None,
) -> Project:
    p = load_project(db, project_id, lock=True)
    authorize(actor, "project:manage_team", p)

    role = _enum(ProjectRole, role, "team role")
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("user not found")

    invited = not p.is_team_member(user_id)
    p.add_team_member(user_id, role)
    db.commit()
    db.refresh(p)

    if invited:
        safe_notify(
            notifier,
            MEMBER_ADDED,
            project_id=p.id,
            project_name=p.name,
            user_id=user_id,
            role=role.value,
            invited_by=actor.id,
        )
    return p

def remove_team_member(
    db: Session,
    actor: ActorContext,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    notifier: Notifier | None = None,
) -> Project:
    p = load_project(db, project_id, lock=True)
    authorize(actor, "project:remove_member", p, subject_id=user_id)

    if not p.remove_team_member(user_id):
        raise InvalidOperation("user is not a member of this project")

    # assignees must stay on the team; their open work falls back to the owner
    reassigned = db.scalars(
        select(Task).where(Task.project_id == p.id, Task.assigned_to == user_id)
    ).all()
    for t in reassigned:
        t.assigned_to = p.owner_id

    db.commit()
    db.refresh(p)

    if reassigned and p.owner_id != actor.id:
        for t in reassigned:
            safe_notify(notifier, TASK_ASSIGNED, task_id=t.id, task_title=t.title, project_id=p.id,
                        user_id=p.owner_id, assigned_by=actor.id)
    return p

def transfer_ownership(
    db: Session,
    actor: ActorContext,
    project_id: uuid.UUID,
    new_owner_id: uuid.UUID,
    notifier: Notifier | None = None,
) -> Project:
    p = load_project(db, project_id, lock=True)
    authorize(actor, "project:transfer", p)

    previous = p.owner_id
    p.transfer_ownership(new_owner_id)
    db.commit()
    db.refresh(p)

    if previous != p.owner_id:
        logger.info(
            "project ownership transferred",
            extra={"fields": {"project_id": str(p.id), "from": str(previous), "to": str(p.owner_id)}},
        )
        safe_notify(notifier, OWNERSHIP_TRANSFERRED, project_id=p.id, previous_owner_id=previous, owner_id=p.owner_id)
    return p
