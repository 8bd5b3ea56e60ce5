from enum import Enum

class GlobalRole(str, Enum):
    admin = "admin"
    supervisor = "supervisor"
    accountant = "accountant"
    warehouse = "warehouse"
    installer = "installer"
    user = "user"

class ProjectRole(str, Enum):
    owner = "owner"
    manager = "manager"
    member = "member"
    guest = "guest"

class ProjectStatus(str, Enum):
    planning = "planning"
    active = "active"
    completed = "completed"
    on_hold = "on-hold"
    cancelled = "cancelled"

class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in-progress"
    review = "review"
    completed = "completed"

# store enum values ("in-progress"), not member names
def enum_values(e: type[Enum]) -> list[str]:
    return [m.value for m in e]
