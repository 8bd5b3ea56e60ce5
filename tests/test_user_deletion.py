import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from tracer.errors import DenyReason, Forbidden, InvalidOperation, NotFound
from tracer.models.enums import GlobalRole, ProjectRole
from tracer.models.project import Project, TeamMember
from tracer.models.task import Task
from tracer.models.user import User
from tracer.notifications import OWNERSHIP_TRANSFERRED, TASK_ASSIGNED
from tracer.rbac.policy import ActorContext
from tracer.services import projects as project_svc
from tracer.services import tasks as task_svc
from tracer.services import users as svc

def actor(u: User) -> ActorContext:
    return ActorContext(id=u.id, role=u.role, is_active=u.is_active)

def test_owner_removal_promotes_first_member(db_session: Session, make_user, notifier):
    u1, u2, u3 = make_user(name="u1"), make_user(name="u2"), make_user(name="u3")
    admin = make_user(GlobalRole.admin, "admin")

    p = project_svc.create_project(db_session, actor(u1), name="P")
    project_svc.add_team_member(db_session, actor(u1), p.id, u2.id, ProjectRole.member)
    project_svc.add_team_member(db_session, actor(u1), p.id, u3.id, ProjectRole.manager)
    t = task_svc.create_task(db_session, actor(u1), p.id, title="t", assigned_to=u1.id)
    u1_id, pid, tid = u1.id, p.id, t.id

    r = svc.delete_user(db_session, actor(admin), u1_id, notifier=notifier)

    assert r.promoted == {pid: u2.id}
    assert r.reassigned_tasks == {tid: u2.id}

    p = project_svc.load_project(db_session, pid)
    assert p.owner_id == u2.id
    assert p.member_role(u2.id) == ProjectRole.owner
    assert p.member_role(u3.id) == ProjectRole.manager
    assert not p.is_team_member(u1_id)
    assert db_session.get(Task, tid).assigned_to == u2.id
    assert db_session.get(User, u1_id) is None

    assert notifier.of(OWNERSHIP_TRANSFERRED)[0]["owner_id"] == u2.id
    assert notifier.of(TASK_ASSIGNED)[0]["user_id"] == u2.id

def test_sole_owner_project_is_deleted_with_tasks(db_session: Session, make_user):
    u1 = make_user(name="u1")
    admin = make_user(GlobalRole.admin, "admin")

    q = project_svc.create_project(db_session, actor(u1), name="Q")
    for i in range(2):
        task_svc.create_task(db_session, actor(u1), q.id, title=f"t{i}", assigned_to=u1.id)
    qid = q.id

    r = svc.delete_user(db_session, actor(admin), u1.id)

    assert r.deleted_projects == [qid]
    assert r.reassigned_tasks == {}
    assert db_session.get(Project, qid) is None
    assert db_session.scalars(select(Task).where(Task.project_id == qid)).all() == []

def test_memberships_elsewhere_are_dropped(db_session: Session, make_user):
    owner, u1 = make_user(name="owner"), make_user(name="u1")
    admin = make_user(GlobalRole.admin, "admin")

    p = project_svc.create_project(db_session, actor(owner), name="p")
    project_svc.add_team_member(db_session, actor(owner), p.id, u1.id, ProjectRole.member)
    t = task_svc.create_task(db_session, actor(u1), p.id, title="t", assigned_to=u1.id)
    pid, tid, u1_id = p.id, t.id, u1.id

    r = svc.delete_user(db_session, actor(admin), u1_id)

    assert r.memberships_removed == 1
    assert r.reassigned_tasks == {tid: owner.id}
    assert db_session.scalars(select(TeamMember).where(TeamMember.user_id == u1_id)).all() == []

    # history keeps pointing at the removed user
    t = db_session.get(Task, tid)
    assert t.created_by == u1_id
    assert t.assigned_to == owner.id
    assert project_svc.load_project(db_session, pid).owner_id == owner.id

def test_delete_user_requires_admin(db_session: Session, make_user):
    boss = make_user(GlobalRole.supervisor, "boss")
    victim = make_user(name="victim")

    with pytest.raises(Forbidden) as exc:
        svc.delete_user(db_session, actor(boss), victim.id)
    assert exc.value.reason == DenyReason.insufficient_role
    assert db_session.get(User, victim.id) is not None

def test_admin_cannot_delete_self_here(db_session: Session, make_user):
    admin = make_user(GlobalRole.admin, "admin")

    with pytest.raises(InvalidOperation):
        svc.delete_user(db_session, actor(admin), admin.id)

def test_delete_missing_user(db_session: Session, make_user):
    admin = make_user(GlobalRole.admin, "admin")

    with pytest.raises(NotFound):
        svc.delete_user(db_session, actor(admin), uuid.uuid4())

def test_own_account_blocked_while_owning(db_session: Session, make_user):
    u1, u2 = make_user(name="u1"), make_user(name="u2")
    p = project_svc.create_project(db_session, actor(u1), name="p")
    project_svc.add_team_member(db_session, actor(u1), p.id, u2.id)

    with pytest.raises(InvalidOperation):
        svc.delete_own_account(db_session, actor(u1))
    assert db_session.get(User, u1.id) is not None

    # once ownership moves on, leaving works
    project_svc.transfer_ownership(db_session, actor(u1), p.id, u2.id)
    r = svc.delete_own_account(db_session, actor(u1))
    assert r.memberships_removed == 1
    assert r.promoted == {}
    assert not project_svc.load_project(db_session, p.id).is_team_member(r.user_id)
