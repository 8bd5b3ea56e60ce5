"""Resource-scoped authorization.

``can_act`` is the only place that decides whether an actor may do something.
Actions listed in ``RESOURCE_POLICIES`` are decided from the actor's
relationship to a project (ownership, then team rank, then a self exception);
any other action is looked up in the static role table.
"""

import uuid
from dataclasses import dataclass

from tracer.errors import DenyReason, Forbidden
from tracer.models.enums import GlobalRole, ProjectRole
from tracer.models.project import Project
from tracer.rbac.evaluator import as_role, has_action_permission
from tracer.rbac.perms import PERMS, PermissionTable

SUPER_ROLE = GlobalRole.admin

ROLE_RANK: dict[ProjectRole, int] = {
    ProjectRole.owner: 40,
    ProjectRole.manager: 30,
    ProjectRole.member: 20,
    ProjectRole.guest: 10,
}

@dataclass(frozen=True)
class ActorContext:
    id: uuid.UUID
    role: GlobalRole
    is_active: bool = True

@dataclass(frozen=True)
class ResourcePolicy:
    # None means owner-only
    min_role: ProjectRole | None
    allow_self: bool = False

@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed

ALLOW = Decision(True)

RESOURCE_POLICIES: dict[str, ResourcePolicy] = {
    "project:view": ResourcePolicy(ProjectRole.guest),
    "project:update": ResourcePolicy(ProjectRole.manager),
    "project:manage_team": ResourcePolicy(ProjectRole.manager),
    # members may always leave
    "project:remove_member": ResourcePolicy(ProjectRole.manager, allow_self=True),
    "project:delete": ResourcePolicy(None),
    "project:transfer": ResourcePolicy(None),

    "task:view": ResourcePolicy(ProjectRole.guest),
    "task:create": ResourcePolicy(ProjectRole.member),
    "task:update": ResourcePolicy(ProjectRole.member),
    # subject is the task creator
    "task:delete": ResourcePolicy(ProjectRole.manager, allow_self=True),
    "task:comment": ResourcePolicy(ProjectRole.guest),
    # subject is the comment author
    "task:delete_comment": ResourcePolicy(None, allow_self=True),
    "task:log_time": ResourcePolicy(ProjectRole.member),
    "task:manage_subtasks": ResourcePolicy(ProjectRole.member),
}

def can_act(
    actor: ActorContext,
    action: str,
    resource: Project | None = None,
    subject_id: uuid.UUID | None = None,
    table: PermissionTable = PERMS,
) -> Decision:
    if not actor.is_active:
        return Decision(False, DenyReason.inactive)

    policy = RESOURCE_POLICIES.get(action)
    if policy is None:
        if has_action_permission(actor.role, action, table):
            return ALLOW
        return Decision(False, DenyReason.insufficient_role)

    if resource is None:
        raise ValueError(f"action {action!r} needs a resource")

    if as_role(actor.role) == SUPER_ROLE:
        return ALLOW

    if actor.id == resource.owner_id:
        return ALLOW

    member_role = resource.member_role(actor.id)
    if policy.min_role is not None and member_role is not None:
        if ROLE_RANK[member_role] >= ROLE_RANK[policy.min_role]:
            return ALLOW

    if policy.allow_self and subject_id is not None and subject_id == actor.id:
        return ALLOW

    if policy.min_role is None:
        return Decision(False, DenyReason.not_owner)
    if member_role is None:
        return Decision(False, DenyReason.not_member)
    return Decision(False, DenyReason.insufficient_role)

def authorize(
    actor: ActorContext,
    action: str,
    resource: Project | None = None,
    subject_id: uuid.UUID | None = None,
) -> None:
    decision = can_act(actor, action, resource, subject_id)
    if not decision:
        raise Forbidden(decision.reason or DenyReason.insufficient_role, f"not allowed to {action}")

def is_super(actor: ActorContext) -> bool:
    return actor.is_active and as_role(actor.role) == SUPER_ROLE
