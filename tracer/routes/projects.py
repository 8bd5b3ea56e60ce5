import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tracer.auth.deps import get_current_actor
from tracer.db import get_db
from tracer.models.enums import Priority, ProjectStatus
from tracer.notifications import Notifier, get_notifier
from tracer.rbac.deps import require_perm
from tracer.rbac.policy import ActorContext
from tracer.schemas.projects import (
    ProjectCreateIn,
    ProjectDetailOut,
    ProjectOut,
    ProjectUpdateIn,
    TeamMemberIn,
    TransferOwnershipIn,
)
from tracer.services import projects as svc

router = APIRouter(prefix="/projects", tags=["projects"])

@router.post("", response_model=ProjectOut)
def create_project(
    payload: ProjectCreateIn,
    actor: ActorContext = Depends(require_perm("create_project")),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = svc.create_project(
        db,
        actor,
        name=payload.name,
        description=payload.description,
        status=payload.status,
        priority=payload.priority,
        start_date=payload.start_date,
        end_date=payload.end_date,
        tags=payload.tags,
    )
    return ProjectOut.model_validate(p)

@router.get("", response_model=list[ProjectOut])
def list_projects(
    status: ProjectStatus | None = None,
    archived: bool = False,
    # lists live and archived projects together; overrides archived
    include_archived: bool = False,
    owner_id: uuid.UUID | None = None,
    priority: Priority | None = None,
    tags: list[str] | None = Query(default=None),
    search: str | None = None,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> list[ProjectOut]:
    rows = svc.list_projects(
        db,
        actor,
        status=status,
        archived=None if include_archived else archived,
        owner_id=owner_id,
        priority=priority,
        tags=tags,
        search=search,
    )
    return [ProjectOut.model_validate(p) for p in rows]

@router.get("/{project_id}", response_model=ProjectDetailOut)
def get_project(
    project_id: uuid.UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> ProjectDetailOut:
    d = svc.get_project(db, actor, project_id)
    return ProjectDetailOut(project=ProjectOut.model_validate(d.project), tasks=d.tasks, progress=d.progress)

@router.patch("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdateIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = svc.update_project(db, actor, project_id, **payload.model_dump(exclude_unset=True))
    return ProjectOut.model_validate(p)

@router.delete("/{project_id}")
def delete_project(
    project_id: uuid.UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    n = svc.delete_project(db, actor, project_id)
    return {"deleted": True, "tasks_deleted": n}

@router.post("/{project_id}/team", response_model=ProjectOut)
def add_team_member(
    project_id: uuid.UUID,
    payload: TeamMemberIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ProjectOut:
    p = svc.add_team_member(db, actor, project_id, payload.user_id, payload.role, notifier=notifier)
    return ProjectOut.model_validate(p)

@router.delete("/{project_id}/team/{user_id}", response_model=ProjectOut)
def remove_team_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ProjectOut:
    p = svc.remove_team_member(db, actor, project_id, user_id, notifier=notifier)
    return ProjectOut.model_validate(p)

@router.post("/{project_id}/owner", response_model=ProjectOut)
def transfer_ownership(
    project_id: uuid.UUID,
    payload: TransferOwnershipIn,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ProjectOut:
    p = svc.transfer_ownership(db, actor, project_id, payload.user_id, notifier=notifier)
    return ProjectOut.model_validate(p)
