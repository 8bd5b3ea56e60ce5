import math
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracer.errors import InvalidOperation, NotFound, ValidationError
from tracer.models.base import Base, clean_tags, now_utc
from tracer.models.enums import Priority, TaskStatus, enum_values

def percent(done: int, total: int) -> int:
    if total <= 0:
        return 0
    # half-up, so 12.5% reads as 13 rather than banker's 12
    return int(math.floor(100 * done / total + 0.5))

def duration_minutes(start_time: datetime, end_time: datetime) -> int:
    if (start_time.tzinfo is None) != (end_time.tzinfo is None):
        raise ValidationError("start_time and end_time must both be timezone-aware or both naive")
    if end_time < start_time:
        raise InvalidOperation("end_time must not be before start_time")
    return int(math.floor((end_time - start_time).total_seconds() / 60 + 0.5))

class TimeLog(Base):
    __tablename__ = "task_time_logs"
    __table_args__ = (CheckConstraint("duration_minutes >= 0", name="ck_task_time_logs_duration_non_negative"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tasks.id"), index=True, nullable=False
    )

    # plain attribution, kept after the user is gone
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)

class Subtask(Base):
    __tablename__ = "task_subtasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tasks.id"), index=True, nullable=False
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

class Comment(Base):
    __tablename__ = "task_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tasks.id"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)

class TaskTag(Base):
    __tablename__ = "task_tags"
    __table_args__ = (UniqueConstraint("task_id", "tag", name="uq_task_tag"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tasks.id"), index=True, nullable=False
    )
    tag: Mapped[str] = mapped_column(String(50), index=True, nullable=False)

class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        # completed_at mirrors status
        CheckConstraint(
            "(status = 'completed') = (completed_at IS NOT NULL)", name="ck_tasks_completed_at_matches_status"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id"), index=True, nullable=False
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="task_status", values_callable=enum_values),
        nullable=False,
        default=TaskStatus.todo,
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, name="priority", values_callable=enum_values),
        nullable=False,
        default=Priority.medium,
    )
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=True
    )

    estimate_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_spent_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    time_logs: Mapped[list[TimeLog]] = relationship(cascade="all, delete-orphan", order_by=TimeLog.id)
    subtasks: Mapped[list[Subtask]] = relationship(cascade="all, delete-orphan", order_by=Subtask.id)
    comments: Mapped[list[Comment]] = relationship(cascade="all, delete-orphan", order_by=Comment.id)
    tag_rows: Mapped[list[TaskTag]] = relationship(cascade="all, delete-orphan", order_by=TaskTag.id)

    @property
    def tags(self) -> list[str]:
        return [r.tag for r in self.tag_rows]

    def set_tags(self, tags) -> None:
        wanted = clean_tags(tags)
        self.tag_rows[:] = [r for r in self.tag_rows if r.tag in wanted]
        have = {r.tag for r in self.tag_rows}
        self.tag_rows.extend(TaskTag(tag=t) for t in wanted if t not in have)

    def set_status(self, status: TaskStatus | str, now: datetime | None = None) -> None:
        try:
            status = TaskStatus(status)
        except ValueError:
            raise InvalidOperation(f"invalid task status: {status}")

        if status == TaskStatus.completed:
            if self.completed_at is None:
                self.completed_at = now or now_utc()
        else:
            self.completed_at = None
        self.status = status

    def log_time(
        self,
        user_id: uuid.UUID,
        start_time: datetime,
        end_time: datetime,
        description: str = "",
    ) -> TimeLog:
        entry = TimeLog(
            user_id=user_id,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes(start_time, end_time),
            description=description or "",
            created_at=now_utc(),
        )
        self.time_logs.append(entry)
        self.recompute_time_spent()
        return entry

    def recompute_time_spent(self) -> int:
        self.time_spent_minutes = sum(log.duration_minutes for log in self.time_logs)
        return self.time_spent_minutes

    def add_comment(self, user_id: uuid.UUID, text: str) -> Comment:
        c = Comment(user_id=user_id, text=text, created_at=now_utc())
        self.comments.append(c)
        return c

    def find_comment(self, comment_id: int) -> Comment:
        for c in self.comments:
            if c.id == comment_id:
                return c
        raise NotFound("comment not found")

    def remove_comment(self, comment_id: int) -> None:
        self.comments.remove(self.find_comment(comment_id))

    def add_subtask(self, title: str) -> Subtask:
        s = Subtask(title=title, completed=False)
        self.subtasks.append(s)
        return s

    def find_subtask(self, subtask_id: int) -> Subtask:
        for s in self.subtasks:
            if s.id == subtask_id:
                return s
        raise NotFound("subtask not found")

    def update_subtask(
        self,
        subtask_id: int,
        title: str | None = None,
        completed: bool | None = None,
        now: datetime | None = None,
    ) -> Subtask:
        s = self.find_subtask(subtask_id)
        if title is not None:
            s.title = title
        if completed is not None:
            if completed and s.completed_at is None:
                s.completed_at = now or now_utc()
            elif not completed:
                s.completed_at = None
            s.completed = completed
        return s

    def remove_subtask(self, subtask_id: int) -> None:
        self.subtasks.remove(self.find_subtask(subtask_id))

    def calculate_subtask_progress(self) -> int:
        done = sum(1 for s in self.subtasks if s.completed)
        return percent(done, len(self.subtasks))
