import uuid

import pytest

from tracer.errors import DenyReason, Forbidden
from tracer.models.enums import GlobalRole, ProjectRole
from tracer.models.project import Project
from tracer.rbac.policy import RESOURCE_POLICIES, ActorContext, authorize, can_act

def actor(role: GlobalRole = GlobalRole.user, is_active: bool = True) -> ActorContext:
    return ActorContext(id=uuid.uuid4(), role=role, is_active=is_active)

def project_with(owner: ActorContext, **members: ActorContext) -> Project:
    p = Project.create(owner_id=owner.id, name="p")
    for role, a in members.items():
        p.add_team_member(a.id, ProjectRole(role))
    return p

def test_admin_bypasses_resource_checks():
    owner, admin = actor(), actor(GlobalRole.admin)
    p = project_with(owner)

    for action in RESOURCE_POLICIES:
        assert can_act(admin, action, p), action

def test_owner_can_do_everything_on_own_project():
    owner = actor(GlobalRole.installer)
    p = project_with(owner)

    for action in RESOURCE_POLICIES:
        assert can_act(owner, action, p), action

def test_rank_thresholds():
    owner, manager, member, guest = actor(), actor(), actor(), actor()
    p = project_with(owner, manager=manager, member=member, guest=guest)

    assert can_act(manager, "project:manage_team", p)
    assert can_act(manager, "project:update", p)
    assert can_act(member, "task:update", p)
    assert can_act(guest, "task:view", p)
    assert can_act(guest, "task:comment", p)

    d = can_act(member, "project:manage_team", p)
    assert not d and d.reason == DenyReason.insufficient_role

    d = can_act(guest, "task:create", p)
    assert not d and d.reason == DenyReason.insufficient_role

def test_owner_only_actions_deny_managers_with_not_owner():
    owner, manager = actor(), actor(GlobalRole.supervisor)
    p = project_with(owner, manager=manager)

    for action in ("project:delete", "project:transfer"):
        d = can_act(manager, action, p)
        assert not d
        assert d.reason == DenyReason.not_owner

def test_outsider_is_not_member():
    owner, outsider = actor(), actor(GlobalRole.supervisor)
    p = project_with(owner)

    d = can_act(outsider, "project:view", p)
    assert not d
    assert d.reason == DenyReason.not_member

def test_member_can_remove_self_but_not_others():
    owner, a, b = actor(), actor(), actor()
    p = project_with(owner, member=a, guest=b)

    assert can_act(a, "project:remove_member", p, subject_id=a.id)
    d = can_act(a, "project:remove_member", p, subject_id=b.id)
    assert not d and d.reason == DenyReason.insufficient_role

def test_comment_author_may_delete_own_comment_only():
    owner, manager, author = actor(), actor(), actor()
    p = project_with(owner, manager=manager, member=author)

    assert can_act(author, "task:delete_comment", p, subject_id=author.id)
    assert can_act(owner, "task:delete_comment", p, subject_id=author.id)

    # managers do not get to delete other people's comments
    d = can_act(manager, "task:delete_comment", p, subject_id=author.id)
    assert not d and d.reason == DenyReason.not_owner

def test_task_creator_may_delete_own_task():
    owner, creator, other = actor(), actor(), actor()
    p = project_with(owner, member=creator)
    p.add_team_member(other.id, ProjectRole.member)

    assert can_act(creator, "task:delete", p, subject_id=creator.id)
    assert not can_act(other, "task:delete", p, subject_id=creator.id)

def test_inactive_actor_is_denied_even_as_admin():
    owner = actor()
    p = project_with(owner)
    ghost = ActorContext(id=owner.id, role=GlobalRole.admin, is_active=False)

    d = can_act(ghost, "project:view", p)
    assert not d and d.reason == DenyReason.inactive
    assert not can_act(ghost, "create_project")

def test_non_resource_actions_use_role_table():
    assert can_act(actor(GlobalRole.admin), "delete_user")
    d = can_act(actor(GlobalRole.supervisor), "delete_user")
    assert not d and d.reason == DenyReason.insufficient_role

    # unknown action is simply not granted
    assert not can_act(actor(GlobalRole.admin), "launch_rockets")

def test_resource_action_without_resource_is_a_caller_bug():
    with pytest.raises(ValueError):
        can_act(actor(), "project:view")

def test_authorize_raises_forbidden_with_reason():
    owner, outsider = actor(), actor()
    p = project_with(owner)

    with pytest.raises(Forbidden) as exc:
        authorize(outsider, "task:create", p)
    assert exc.value.reason == DenyReason.not_member

    authorize(owner, "task:create", p)
