import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from tracer.auth.tokens import issue_access_token
from tracer.db import SessionLocal
from tracer.models.enums import GlobalRole, ProjectRole, TaskStatus
from tracer.models.project import Project
from tracer.models.task import Task
from tracer.models.user import User

@dataclass
class SeedResult:
    # label -> (email, id)
    users: dict[str, tuple[str, uuid.UUID]]
    project_id: uuid.UUID
    task_id: uuid.UUID

def get_or_create_user(db: Session, email: str, name: str, role: GlobalRole = GlobalRole.user) -> User:
    email = email.lower().strip()
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(email=email, name=name, role=role)
        db.add(u)
        db.flush()
    elif u.role != role:
        u.role = role
        db.flush()
    return u

def get_or_create_project(db: Session, owner: User, name: str) -> Project:
    p = db.scalar(select(Project).where(Project.owner_id == owner.id, Project.name == name))
    if p is None:
        p = Project.create(owner_id=owner.id, name=name, description="seeded")
        p.set_tags(["demo", "seed"])
        db.add(p)
        db.flush()
    return p

def get_or_create_task(db: Session, project: Project, title: str, created_by: User, assigned_to: User | None) -> Task:
    t = db.scalar(select(Task).where(Task.project_id == project.id, Task.title == title))
    if t is None:
        t = Task(
            project_id=project.id,
            title=title,
            created_by=created_by.id,
            assigned_to=assigned_to.id if assigned_to else None,
        )
        t.set_status(TaskStatus.todo)
        t.add_subtask("read the brief")
        t.add_subtask("ship it")
        db.add(t)
        db.flush()
    elif assigned_to is not None and t.assigned_to != assigned_to.id:
        # keep it stable if you re-run seed
        t.assigned_to = assigned_to.id
        db.flush()
    return t

def seed() -> SeedResult:
    db = SessionLocal()
    try:
        admin = get_or_create_user(db, "admin@example.com", "admin", GlobalRole.admin)
        owner = get_or_create_user(db, "owner@example.com", "owner", GlobalRole.supervisor)
        manager = get_or_create_user(db, "manager@example.com", "manager", GlobalRole.installer)
        member = get_or_create_user(db, "member@example.com", "member")

        project = get_or_create_project(db, owner, "seeded project")
        project.add_team_member(manager.id, ProjectRole.manager)
        project.add_team_member(member.id, ProjectRole.member)
        db.flush()

        task = get_or_create_task(db, project, "seeded task", created_by=owner, assigned_to=member)

        db.commit()
        users = {
            label: (u.email, u.id)
            for label, u in (("admin", admin), ("owner", owner), ("manager", manager), ("member", member))
        }
        return SeedResult(users=users, project_id=project.id, task_id=task.id)
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"project_id={r.project_id}")
    print(f"task_id={r.task_id}")
    print("bearer tokens:")
    for label, (email, user_id) in r.users.items():
        print(f"  {label:8} {email}: {issue_access_token(user_id)}")
