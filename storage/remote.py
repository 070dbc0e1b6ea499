"""Remote (authenticated) persistence on Supabase tables.

Tasks and cards are stored one row per item; budget tables one row per
table with the serialized table in a JSON column. Every row is keyed by
``(user_id, id)``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.enums import EntityKind, TaskStatus
from core.exceptions import StorageError
from core.interfaces import StorageBackend
from core.models import BudgetData, Owner, Table, Task
from config import settings

try:
    from supabase import create_client, Client
    SUPABASE_AVAILABLE = True
except ImportError:
    SUPABASE_AVAILABLE = False
    Client = None

logger = logging.getLogger(__name__)

ENTITY_TABLES = {
    EntityKind.TASKS: "tasks",
    EntityKind.CARDS: "cards",
    EntityKind.BUDGET: "budget_tables",
}


def create_supabase_client() -> Optional["Client"]:
    """Supabase client from settings, or None when not configured"""
    if not SUPABASE_AVAILABLE or not settings.SUPABASE_URL or not settings.supabase_key():
        return None
    try:
        return create_client(settings.SUPABASE_URL, settings.supabase_key())
    except Exception as e:
        logger.warning("Failed to initialize Supabase client: %s", e)
        return None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ─────────────────────────────────────────────────────────────
# Row mapping
# ─────────────────────────────────────────────────────────────

def task_to_row(task: Task, kind: EntityKind, user_id: str) -> Dict[str, Any]:
    data = task.model_dump(mode="json")
    row = {
        "id": task.id,
        "user_id": user_id,
        "title": task.title,
        "description": task.description,
        "status": data["status"],
        "priority": data["priority"],
        "project": task.project,
        "tags": task.tags,
        "due_date": task.due_date,
        "created_at": task.created_at,
        "updated_at": _now(),
    }
    if kind == EntityKind.CARDS:
        row.update({
            "comments": data["comments"],
            "checklist": data["checklist"],
            "assignees": [task.assignee] if task.assignee else [],
        })
    else:
        row.update({
            "reminder_time": task.reminder_time,
            "completed": task.status == TaskStatus.DONE,
            "subtasks": data["subtasks"],
            "recurring": data["recurring"],
        })
    return row


def row_to_task(row: Dict[str, Any], kind: EntityKind) -> Task:
    status = row.get("status") or (TaskStatus.DONE.value if row.get("completed") else TaskStatus.TODO.value)
    fields = {
        "id": row["id"],
        "title": row.get("title") or "",
        "description": row.get("description"),
        "status": status,
        "priority": row.get("priority") or "medium",
        "project": row.get("project"),
        "tags": row.get("tags") or [],
        "due_date": row.get("due_date"),
        "owner": row.get("user_id"),
    }
    if row.get("created_at"):
        fields["created_at"] = row["created_at"]
    if kind == EntityKind.CARDS:
        assignees = row.get("assignees") or []
        fields.update({
            "comments": row.get("comments") or [],
            "checklist": row.get("checklist") or [],
            "assignee": assignees[0] if assignees else None,
        })
    else:
        fields.update({
            "reminder_time": row.get("reminder_time"),
            "subtasks": row.get("subtasks") or [],
            "recurring": row.get("recurring") or "none",
            "completed_at": row.get("updated_at") if status == TaskStatus.DONE.value else None,
        })
    return Task.model_validate(fields)


def budget_to_rows(data: BudgetData, user_id: str) -> List[Dict[str, Any]]:
    return [
        {
            "id": table.id,
            "user_id": user_id,
            "name": table.name,
            "position": position,
            "active": table.id == data.active_table_id,
            "data": table.to_snapshot(),
            "created_at": table.created_at,
            "updated_at": _now(),
        }
        for position, table in enumerate(data.tables)
    ]


def rows_to_budget(rows: List[Dict[str, Any]]) -> BudgetData:
    ordered = sorted(rows, key=lambda row: row.get("position") or 0)
    tables = [Table.model_validate(row["data"]) for row in ordered]
    active = next((row["id"] for row in ordered if row.get("active")), None)
    return BudgetData(tables=tables, active_table_id=active)


class SupabaseRowStore(StorageBackend):
    """StorageBackend over Supabase row tables.

    The Supabase Python client is synchronous, so every call runs in a worker
    thread.
    """

    def __init__(self, client: "Client"):
        if client is None:
            raise StorageError("Supabase client not initialized")
        self.client = client

    @property
    def name(self) -> str:
        return "supabase"

    def _table_name(self, kind: EntityKind) -> str:
        try:
            return ENTITY_TABLES[kind]
        except KeyError:
            raise StorageError(f"No remote table for {kind.value}", kind=kind.value)

    # Row-level operations ---------------------------------------------------

    async def fetch_all(self, kind: EntityKind, owner: Owner) -> List[Dict[str, Any]]:
        table = self._table_name(kind)

        def _do():
            query = self.client.table(table).select("*").eq("user_id", owner.key)
            if kind == EntityKind.BUDGET:
                query = query.order("position")
            else:
                query = query.order("created_at", desc=True)
            return query.execute()

        try:
            response = await asyncio.to_thread(_do)
        except Exception as e:
            raise StorageError(f"Failed to fetch {table}: {e}", kind=kind.value, owner=owner.key) from e
        return response.data or []

    async def replace_all(self, kind: EntityKind, owner: Owner, rows: List[Dict[str, Any]]) -> None:
        """Delete every row the owner has, then bulk insert ``rows``"""
        table = self._table_name(kind)

        def _do():
            self.client.table(table).delete().eq("user_id", owner.key).execute()
            if rows:
                return self.client.table(table).insert(rows).execute()
            return None

        try:
            response = await asyncio.to_thread(_do)
        except Exception as e:
            raise StorageError(f"Failed to replace {table}: {e}", kind=kind.value, owner=owner.key) from e
        err = getattr(response, "error", None)
        if err:
            raise StorageError(f"Supabase insert error: {err}", kind=kind.value, owner=owner.key)
        logger.info("Replaced %d %s row(s) for %s", len(rows), table, owner.key)

    async def update_by_id(
        self, kind: EntityKind, owner: Owner, row_id: str, updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        table = self._table_name(kind)
        changes = {key: value for key, value in updates.items() if key not in ("id", "user_id")}
        changes["updated_at"] = _now()

        def _do():
            return (
                self.client.table(table)
                .update(changes)
                .eq("id", row_id)
                .eq("user_id", owner.key)
                .execute()
            )

        try:
            response = await asyncio.to_thread(_do)
        except Exception as e:
            raise StorageError(f"Failed to update {table} {row_id}: {e}", kind=kind.value, owner=owner.key) from e
        data = response.data or []
        return data[0] if data else None

    async def delete_by_id(self, kind: EntityKind, owner: Owner, row_id: str) -> None:
        table = self._table_name(kind)

        def _do():
            return self.client.table(table).delete().eq("id", row_id).eq("user_id", owner.key).execute()

        try:
            await asyncio.to_thread(_do)
        except Exception as e:
            raise StorageError(f"Failed to delete {table} {row_id}: {e}", kind=kind.value, owner=owner.key) from e

    # StorageBackend ---------------------------------------------------------

    async def load(self, kind: EntityKind, owner: Owner) -> Optional[Any]:
        try:
            rows = await self.fetch_all(kind, owner)
            if kind == EntityKind.BUDGET:
                return rows_to_budget(rows).to_snapshot() if rows else None
            return [row_to_task(row, kind).to_snapshot() for row in rows]
        except Exception as e:
            logger.error("Error loading %s for %s: %s", kind.value, owner.key, e)
            return None

    async def save(self, kind: EntityKind, owner: Owner, snapshot: Any) -> None:
        try:
            if kind == EntityKind.BUDGET:
                rows = budget_to_rows(BudgetData.model_validate(snapshot or {}), owner.key)
            else:
                rows = [task_to_row(Task.model_validate(item), kind, owner.key) for item in snapshot or []]
        except ValueError as e:
            raise StorageError(f"Invalid {kind.value} snapshot: {e}", kind=kind.value, owner=owner.key) from e
        await self.replace_all(kind, owner, rows)

    async def exists(self, kind: EntityKind, owner: Owner) -> bool:
        table = self._table_name(kind)

        def _do():
            return self.client.table(table).select("id").eq("user_id", owner.key).limit(1).execute()

        try:
            response = await asyncio.to_thread(_do)
        except Exception as e:
            raise StorageError(f"Failed to query {table}: {e}", kind=kind.value, owner=owner.key) from e
        return bool(response.data)

    async def clear(self, kind: EntityKind, owner: Owner) -> None:
        await self.replace_all(kind, owner, [])
