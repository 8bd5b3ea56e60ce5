from tracer.models.project import Project, ProjectTag, TeamMember
from tracer.models.task import Comment, Subtask, Task, TaskTag, TimeLog
from tracer.models.user import User

__all__ = ["User", "Project", "ProjectTag", "TeamMember", "Task", "TaskTag", "TimeLog", "Subtask", "Comment"]
