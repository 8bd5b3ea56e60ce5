import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracer.errors import InvalidOperation
from tracer.models.base import Base, clean_tags, now_utc
from tracer.models.enums import Priority, ProjectRole, ProjectStatus, enum_values

class TeamMember(Base):
    __tablename__ = "project_team_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_team_member_project_user"),)

    # integer key keeps insertion order, which decides who is promoted on owner removal
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False
    )
    role: Mapped[ProjectRole] = mapped_column(
        Enum(ProjectRole, name="project_role", values_callable=enum_values),
        nullable=False,
        default=ProjectRole.member,
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)

    project: Mapped["Project"] = relationship(back_populates="team")

class ProjectTag(Base):
    __tablename__ = "project_tags"
    __table_args__ = (UniqueConstraint("project_id", "tag", name="uq_project_tag"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id"), index=True, nullable=False
    )
    tag: Mapped[str] = mapped_column(String(50), index=True, nullable=False)

class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (Index("ix_projects_start_date_end_date", "start_date", "end_date"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus, name="project_status", values_callable=enum_values),
        nullable=False,
        default=ProjectStatus.planning,
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, name="priority", values_callable=enum_values),
        nullable=False,
        default=Priority.medium,
    )

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False
    )
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    team: Mapped[list[TeamMember]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by=TeamMember.id,
    )
    tag_rows: Mapped[list[ProjectTag]] = relationship(cascade="all, delete-orphan", order_by=ProjectTag.id)

    @classmethod
    def create(cls, owner_id: uuid.UUID, **fields) -> "Project":
        project = cls(owner_id=owner_id, **fields)
        project.team.append(TeamMember(user_id=owner_id, role=ProjectRole.owner, added_at=now_utc()))
        return project

    @property
    def tags(self) -> list[str]:
        return [r.tag for r in self.tag_rows]

    def set_tags(self, tags) -> None:
        wanted = clean_tags(tags)
        # keep surviving rows so the unique (project_id, tag) key is never hit mid-flush
        self.tag_rows[:] = [r for r in self.tag_rows if r.tag in wanted]
        have = {r.tag for r in self.tag_rows}
        self.tag_rows.extend(ProjectTag(tag=t) for t in wanted if t not in have)

    def team_entry(self, user_id: uuid.UUID) -> TeamMember | None:
        for m in self.team:
            if m.user_id == user_id:
                return m
        return None

    def is_team_member(self, user_id: uuid.UUID) -> bool:
        return self.team_entry(user_id) is not None

    def member_role(self, user_id: uuid.UUID) -> ProjectRole | None:
        m = self.team_entry(user_id)
        return m.role if m is not None else None

    def add_team_member(self, user_id: uuid.UUID, role: ProjectRole = ProjectRole.member) -> TeamMember:
        role = ProjectRole(role)

        # the owner role only moves through transfer_ownership
        if user_id == self.owner_id and role != ProjectRole.owner:
            raise InvalidOperation("project owner role can only change through ownership transfer")
        if user_id != self.owner_id and role == ProjectRole.owner:
            raise InvalidOperation("use ownership transfer to make a member the owner")

        existing = self.team_entry(user_id)
        if existing is not None:
            existing.role = role
            return existing

        m = TeamMember(user_id=user_id, role=role, added_at=now_utc())
        self.team.append(m)
        return m

    def remove_team_member(self, user_id: uuid.UUID) -> bool:
        if user_id == self.owner_id:
            raise InvalidOperation("project owner cannot be removed from the team")

        m = self.team_entry(user_id)
        if m is None:
            return False
        self.team.remove(m)
        return True

    def other_members(self, user_id: uuid.UUID) -> list[TeamMember]:
        return [m for m in self.team if m.user_id != user_id]

    def transfer_ownership(
        self, new_owner_id: uuid.UUID, previous_owner_role: ProjectRole = ProjectRole.manager
    ) -> None:
        if new_owner_id == self.owner_id:
            return
        if ProjectRole(previous_owner_role) == ProjectRole.owner:
            raise InvalidOperation("a project has exactly one owner")

        incoming = self.team_entry(new_owner_id)
        if incoming is None:
            raise InvalidOperation("new owner must already be a team member")

        outgoing = self.team_entry(self.owner_id)
        incoming.role = ProjectRole.owner
        self.owner_id = new_owner_id
        if outgoing is not None:
            outgoing.role = ProjectRole(previous_owner_role)
