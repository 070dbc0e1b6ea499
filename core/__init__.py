"""Core abstractions for the planner backend"""

from .models import *
from .enums import *
from .exceptions import *
from .interfaces import *

__all__ = [
    # Models
    "Cell",
    "Row",
    "Table",
    "CategoryBudget",
    "BudgetData",
    "CategoryStatus",
    "CategoryShare",
    "RecalcReport",
    "Owner",
    "MigrationReport",
    "ChecklistItem",
    "Comment",
    "Task",
    # Enums
    "EntityKind",
    "OwnerKind",
    "TaskStatus",
    "TaskPriority",
    "Recurrence",
    "RecalcStrategy",
    # Exceptions
    "PlannerError",
    "StorageError",
    "IdentityError",
    "MigrationError",
    "FormulaError",
    "ConfigError",
    # Interfaces
    "StorageBackend",
]
