from fastapi import Depends

from tracer.auth.deps import get_current_actor
from tracer.rbac.perms import PERMS
from tracer.rbac.policy import ActorContext, authorize

def require_perm(action: str):
    if action not in PERMS.actions:
        raise RuntimeError(f"unknown permission action: {action}")

    def _checker(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
        authorize(actor, action)
        return actor

    return _checker
