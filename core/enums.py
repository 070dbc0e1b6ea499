"""Core enumerations for the planner backend"""

from enum import Enum


class EntityKind(str, Enum):
    """Persisted entity kinds"""
    TASKS = "todo-tasks"
    CARDS = "kanban-tasks"
    BUDGET = "budget-data"


class OwnerKind(str, Enum):
    """Who owns the current session's data"""
    GUEST = "guest"
    AUTHENTICATED = "authenticated"

    @property
    def scope(self) -> str:
        """Prefix used for local storage keys"""
        return "guest" if self is OwnerKind.GUEST else "user"


class TaskStatus(str, Enum):
    """Task / card status"""
    TODO = "todo"
    IN_PROGRESS = "inprogress"
    DONE = "done"


class TaskPriority(str, Enum):
    """Task priority"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recurrence(str, Enum):
    """Task recurrence"""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecalcStrategy(str, Enum):
    """Formula recalculation strategy"""
    GRAPH = "graph"
    ITERATIVE = "iterative"
