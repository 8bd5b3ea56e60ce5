import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tracer.auth.deps import get_current_actor
from tracer.db import get_db
from tracer.notifications import Notifier, get_notifier
from tracer.rbac.deps import require_perm
from tracer.rbac.evaluator import get_role_name, get_user_modules, get_user_permissions
from tracer.rbac.policy import ActorContext
from tracer.schemas.users import PermissionsOut, UserRemovalOut
from tracer.services import users as svc
from tracer.services.users import UserRemoval

router = APIRouter(tags=["users"])

def removal_out(r: UserRemoval) -> UserRemovalOut:
    return UserRemovalOut(
        user_id=r.user_id,
        promoted=r.promoted,
        deleted_projects=r.deleted_projects,
        memberships_removed=r.memberships_removed,
        reassigned_tasks=r.reassigned_tasks,
    )

# navigation data only; never used to grant anything
@router.get("/me/permissions", response_model=PermissionsOut)
def my_permissions(actor: ActorContext = Depends(get_current_actor)) -> PermissionsOut:
    return PermissionsOut(
        role=actor.role,
        role_name=get_role_name(actor.role),
        permissions=get_user_permissions(actor.role),
        modules=get_user_modules(actor.role),
    )

@router.delete("/me", response_model=UserRemovalOut)
def delete_own_account(
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> UserRemovalOut:
    return removal_out(svc.delete_own_account(db, actor, notifier=notifier))

@router.delete("/users/{user_id}", response_model=UserRemovalOut)
def delete_user(
    user_id: uuid.UUID,
    actor: ActorContext = Depends(require_perm("delete_user")),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> UserRemovalOut:
    return removal_out(svc.delete_user(db, actor, user_id, notifier=notifier))
