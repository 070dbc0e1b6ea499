"""Core data models for the planner backend"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import EntityKind, OwnerKind, TaskStatus, TaskPriority, Recurrence, RecalcStrategy


def new_id() -> str:
    """Generate an opaque unique identifier"""
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string"""
    return datetime.now(timezone.utc).isoformat()


class SnapshotModel(BaseModel):
    """Base for models persisted as camelCase JSON snapshots"""

    model_config = ConfigDict(populate_by_name=True)

    def to_snapshot(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─────────────────────────────────────────────────────────────
# Budget spreadsheet
# ─────────────────────────────────────────────────────────────

class Cell(SnapshotModel):
    """Single cell: display value plus the formula it came from, if any"""
    value: str = ""
    formula: Optional[str] = None


class Row(SnapshotModel):
    """Table row keyed by column name"""
    id: str = Field(default_factory=new_id)
    cells: dict[str, Cell] = {}


class CategoryBudget(SnapshotModel):
    """Spending limit tracked against a table"""
    id: str = Field(default_factory=new_id)
    name: str
    limit: float
    spent: float = 0.0
    alert_threshold: float = Field(default=80.0, alias="alertThreshold")


class Table(SnapshotModel):
    """Named spreadsheet table.

    Column letters (A, B, ...) follow ``headers`` order and row numbers
    follow ``rows`` order, so coordinates are positional.
    """
    id: str = Field(default_factory=new_id)
    name: str
    headers: list[str] = []
    rows: list[Row] = []
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    category_budgets: list[CategoryBudget] = Field(default=[], alias="categoryBudgets")

    def get_row(self, row_id: str) -> Optional[Row]:
        for row in self.rows:
            if row.id == row_id:
                return row
        return None


class BudgetData(SnapshotModel):
    """Persisted budget snapshot"""
    tables: list[Table] = []
    active_table_id: Optional[str] = Field(default=None, alias="activeTableId")


class CategoryStatus(BaseModel):
    """Derived (never stored) view of a category budget"""
    category_id: str
    name: str
    limit: float
    spent: float
    remaining: float
    percentage: float
    is_over_budget: bool
    is_near_limit: bool


class CategoryShare(BaseModel):
    """Category share of total spending"""
    category_id: str
    name: str
    spent: float
    share: float


class RecalcReport(BaseModel):
    """Outcome of a recalculation run"""
    strategy: RecalcStrategy
    passes: int = 0
    changed_cells: int = 0
    converged: bool = True
    cycles: list[list[str]] = []


# ─────────────────────────────────────────────────────────────
# Identity & persistence
# ─────────────────────────────────────────────────────────────

class Owner(BaseModel):
    """Identity used to namespace persisted data"""
    key: str
    kind: OwnerKind
    email: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return self.kind == OwnerKind.GUEST

    @property
    def storage_prefix(self) -> str:
        return f"{self.kind.scope}_{self.key}"


class MigrationReport(BaseModel):
    """Outcome of a guest-to-owner migration"""
    guest_key: str
    owner_key: str
    migrated: list[EntityKind] = []
    skipped_existing: list[EntityKind] = []
    skipped_empty: list[EntityKind] = []

    @property
    def performed(self) -> bool:
        return bool(self.migrated)


# ─────────────────────────────────────────────────────────────
# Tasks & cards
# ─────────────────────────────────────────────────────────────

class ChecklistItem(SnapshotModel):
    """Subtask or checklist entry"""
    id: str = Field(default_factory=new_id)
    text: str
    completed: bool = False


class Comment(SnapshotModel):
    """Task comment"""
    id: str = Field(default_factory=new_id)
    text: str
    timestamp: str = Field(default_factory=utc_now_iso)


class Task(SnapshotModel):
    """Task shared by the to-do list and the kanban board"""
    id: str = Field(default_factory=new_id)
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    project: Optional[str] = None
    tags: list[str] = []
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    reminder_time: Optional[str] = Field(default=None, alias="reminderTime")
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    owner: Optional[str] = None
    assignee: Optional[str] = None
    subtasks: list[ChecklistItem] = []
    checklist: list[ChecklistItem] = []
    comments: list[Comment] = []
    recurring: Recurrence = Recurrence.NONE
