"""Account removal.

Removing a user touches several tables: owned projects are handed to the next
team member (or deleted when nobody is left), memberships are dropped, and
tasks assigned to the user go to the project owner. Every step runs in the
caller's transaction and is committed once, after the user row is gone.
"""

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from tracer.errors import InvalidOperation, NotFound
from tracer.models.project import Project, TeamMember
from tracer.models.task import Task
from tracer.models.user import User
from tracer.notifications import OWNERSHIP_TRANSFERRED, TASK_ASSIGNED, Notifier, safe_notify
from tracer.rbac.policy import ActorContext, authorize
from tracer.services.projects import cascade_delete_project

logger = logging.getLogger(__name__)

@dataclass
class UserRemoval:
    user_id: uuid.UUID
    promoted: dict[uuid.UUID, uuid.UUID] = field(default_factory=dict)
    deleted_projects: list[uuid.UUID] = field(default_factory=list)
    memberships_removed: int = 0
    reassigned_tasks: dict[uuid.UUID, uuid.UUID | None] = field(default_factory=dict)

def _remove_user(db: Session, user: User) -> UserRemoval:
    result = UserRemoval(user_id=user.id)

    # 1. owned projects: promote the first other member, or delete the project
    owned = db.scalars(
        select(Project)
        .where(Project.owner_id == user.id)
        .options(selectinload(Project.team))
        .order_by(Project.created_at)
        .with_for_update()
    ).all()
    for p in owned:
        others = p.other_members(user.id)
        if others:
            successor = others[0].user_id
            p.transfer_ownership(successor)
            p.remove_team_member(user.id)
            result.promoted[p.id] = successor
        else:
            pid = p.id
            cascade_delete_project(db, p)
            result.deleted_projects.append(pid)
    db.flush()

    # 2. plain memberships on everyone else's projects
    member_of = db.scalars(
        select(Project)
        .join(TeamMember, TeamMember.project_id == Project.id)
        .where(TeamMember.user_id == user.id)
        .options(selectinload(Project.team))
        .execution_options(populate_existing=True)
    ).all()
    for p in member_of:
        if p.remove_team_member(user.id):
            result.memberships_removed += 1
    db.flush()

    # 3. assigned tasks go to the (possibly new) project owner
    assigned = db.scalars(select(Task).where(Task.assigned_to == user.id)).all()
    owners: dict[uuid.UUID, uuid.UUID] = {}
    for t in assigned:
        if t.project_id not in owners:
            owner_id = db.scalar(select(Project.owner_id).where(Project.id == t.project_id))
            owners[t.project_id] = owner_id
        new_assignee = owners[t.project_id]
        t.assigned_to = new_assignee if new_assignee != user.id else None
        result.reassigned_tasks[t.id] = t.assigned_to
    db.flush()

    # 4. only now the user row itself
    db.delete(user)
    db.flush()
    return result

def _announce(result: UserRemoval, notifier: Notifier | None) -> None:
    for project_id, owner_id in result.promoted.items():
        safe_notify(notifier, OWNERSHIP_TRANSFERRED, project_id=project_id,
                    previous_owner_id=result.user_id, owner_id=owner_id)
    for task_id, assignee in result.reassigned_tasks.items():
        if assignee is not None:
            safe_notify(notifier, TASK_ASSIGNED, task_id=task_id, user_id=assignee, assigned_by=None)

def delete_user(
    db: Session,
    actor: ActorContext,
    user_id: uuid.UUID,
    notifier: Notifier | None = None,
) -> UserRemoval:
    authorize(actor, "delete_user")
    if user_id == actor.id:
        raise InvalidOperation("you cannot delete your own account here")

    user = db.get(User, user_id)
    if user is None:
        raise NotFound("user not found")

    result = _remove_user(db, user)
    db.commit()

    logger.info(
        "user deleted",
        extra={
            "fields": {
                "user_id": str(user_id),
                "actor_id": str(actor.id),
                "promoted": len(result.promoted),
                "projects_deleted": len(result.deleted_projects),
                "tasks_reassigned": len(result.reassigned_tasks),
            }
        },
    )
    _announce(result, notifier)
    return result

def delete_own_account(db: Session, actor: ActorContext, notifier: Notifier | None = None) -> UserRemoval:
    user = db.get(User, actor.id)
    if user is None:
        raise NotFound("user not found")

    owned = db.scalar(select(func.count()).select_from(Project).where(Project.owner_id == actor.id)) or 0
    if owned:
        raise InvalidOperation("transfer or delete the projects you own before deleting your account")

    result = _remove_user(db, user)
    db.commit()
    logger.info("account closed", extra={"fields": {"user_id": str(actor.id)}})
    _announce(result, notifier)
    return result
