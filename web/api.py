"""FastAPI application: tasks, cards and budget tables over dual-mode storage"""

import logging
from typing import Optional, List, Dict, Any

from fastapi import FastAPI, Depends, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from budget.categories import (
    add_category,
    delete_category,
    get_category,
    set_spent,
    spending_breakdown,
    table_statuses,
)
from budget.tables import TableBook
from budget.workspace import BudgetWorkspace
from core.enums import EntityKind
from core.exceptions import MigrationError, StorageError
from core.models import Owner, Table, Task
from config import settings
from storage.identity import IdentityResolver
from storage.local import LocalBackend, LocalStore
from storage.remote import SupabaseRowStore, create_supabase_client
from storage.sync import DataSync

logger = logging.getLogger(__name__)

supabase = create_supabase_client()
local_store: Optional[LocalStore] = None

security = HTTPBearer(auto_error=False)  # Guests have no token

app = FastAPI(
    title="Planner API",
    description="Tasks, kanban cards and budget spreadsheets",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Task columns accepted by partial updates, keyed by request field name
TASK_UPDATE_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "project": "project",
    "tags": "tags",
    "dueDate": "due_date",
    "due_date": "due_date",
    "reminderTime": "reminder_time",
    "reminder_time": "reminder_time",
    "subtasks": "subtasks",
    "checklist": "checklist",
    "comments": "comments",
    "recurring": "recurring",
    "completed": "completed",
}


# Request models
class ItemsRequest(BaseModel):
    items: List[Dict[str, Any]]


class CreateTableRequest(BaseModel):
    rows: int
    columns: int
    name: Optional[str] = None


class RenameRequest(BaseModel):
    name: str


class SetCellRequest(BaseModel):
    row_id: str
    column: int
    value: str = ""


class CategoryRequest(BaseModel):
    name: str
    limit: Any
    threshold: Any = None


class SpentRequest(BaseModel):
    spent: Any


class PreviewRequest(BaseModel):
    table_id: str
    formula: str


# ─────────────────────────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────────────────────────

def get_local_store() -> LocalStore:
    global local_store
    if local_store is None:
        local_store = LocalStore()
    return local_store


def get_supabase():
    return supabase


async def get_sync(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: LocalStore = Depends(get_local_store),
    client=Depends(get_supabase),
) -> DataSync:
    """Session-scoped DataSync; guests are identified by the guest-id cookie"""
    resolver = IdentityResolver(None, auth_client=client, cookies=dict(request.cookies))
    remote = SupabaseRowStore(client) if client is not None else None
    sync = DataSync(resolver, LocalBackend(store), remote)
    token = credentials.credentials if credentials else None
    try:
        await sync.start(token)
    except MigrationError as e:
        # guest copy stays local; the next request or /api/migrate retries
        logger.error("Migration on sign-in failed for %s: %s", sync.owner.key, e)

    if resolver.cookie_updated:
        response.set_cookie(
            settings.GUEST_COOKIE_NAME,
            resolver.owner_key,
            max_age=settings.GUEST_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return sync


def require_authenticated(sync: DataSync = Depends(get_sync)) -> DataSync:
    if sync.owner.is_guest or sync.remote is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return sync


async def get_workspace(sync: DataSync = Depends(get_sync)) -> BudgetWorkspace:
    workspace = BudgetWorkspace(sync)
    await workspace.load()
    return workspace


def _require_table(book: TableBook, table_id: str) -> Table:
    table = book.get_table(table_id)
    if table is None:
        raise HTTPException(status_code=404, detail="Table not found")
    return table


async def _persist(workspace: BudgetWorkspace) -> Dict[str, Any]:
    try:
        await workspace.save()
    except StorageError as e:
        logger.error("Failed to save budget data: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return workspace.book.to_snapshot()


def _owner_info(owner: Owner) -> Dict[str, Any]:
    return {"id": owner.key, "email": owner.email, "guest": owner.is_guest}


# ─────────────────────────────────────────────────────────────
# Tasks & cards
# ─────────────────────────────────────────────────────────────

async def _list_items(sync: DataSync, kind: EntityKind) -> List[Dict[str, Any]]:
    return await sync.load(kind, default=[]) or []


async def _replace_items(sync: DataSync, kind: EntityKind, items: List[Dict[str, Any]]) -> Dict[str, Any]:
    try:
        snapshot = [Task.model_validate(item).to_snapshot() for item in items]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {kind.value}: {e}")
    try:
        await sync.save(kind, snapshot)
    except StorageError as e:
        logger.error("Failed to save %s: %s", kind.value, e)
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True}


async def _update_item(sync: DataSync, kind: EntityKind, payload: Dict[str, Any]) -> Dict[str, Any]:
    item_id = payload.get("id")
    if not item_id:
        raise HTTPException(status_code=400, detail="Missing id")
    updates = {
        column: payload[field]
        for field, column in TASK_UPDATE_FIELDS.items()
        if field in payload
    }
    try:
        row = await sync.remote.update_by_id(kind, sync.owner, item_id, updates)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "item": row}


async def _delete_item(sync: DataSync, kind: EntityKind, item_id: Optional[str]) -> Dict[str, Any]:
    if not item_id:
        raise HTTPException(status_code=400, detail="Missing id")
    try:
        await sync.remote.delete_by_id(kind, sync.owner, item_id)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True}


@app.get("/api/tasks")
async def list_tasks(sync: DataSync = Depends(get_sync)):
    return {"tasks": await _list_items(sync, EntityKind.TASKS)}


@app.post("/api/tasks")
async def replace_tasks(request: ItemsRequest, sync: DataSync = Depends(get_sync)):
    return await _replace_items(sync, EntityKind.TASKS, request.items)


@app.put("/api/tasks")
async def update_task(payload: Dict[str, Any], sync: DataSync = Depends(require_authenticated)):
    return await _update_item(sync, EntityKind.TASKS, payload)


@app.delete("/api/tasks")
async def delete_task(id: Optional[str] = None, sync: DataSync = Depends(require_authenticated)):
    return await _delete_item(sync, EntityKind.TASKS, id)


@app.get("/api/cards")
async def list_cards(sync: DataSync = Depends(get_sync)):
    return {"cards": await _list_items(sync, EntityKind.CARDS)}


@app.post("/api/cards")
async def replace_cards(request: ItemsRequest, sync: DataSync = Depends(get_sync)):
    return await _replace_items(sync, EntityKind.CARDS, request.items)


@app.put("/api/cards")
async def update_card(payload: Dict[str, Any], sync: DataSync = Depends(require_authenticated)):
    return await _update_item(sync, EntityKind.CARDS, payload)


@app.delete("/api/cards")
async def delete_card(id: Optional[str] = None, sync: DataSync = Depends(require_authenticated)):
    return await _delete_item(sync, EntityKind.CARDS, id)


# ─────────────────────────────────────────────────────────────
# Budget tables
# ─────────────────────────────────────────────────────────────

@app.get("/api/budget")
async def get_budget(workspace: BudgetWorkspace = Depends(get_workspace)):
    book = workspace.book
    return {
        **book.to_snapshot(),
        "totals": {table.id: book.total_spending(table.id) for table in book.tables},
    }


@app.post("/api/budget/tables")
async def create_table(request: CreateTableRequest, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = workspace.book.create_table(request.rows, request.columns, request.name)
    if table is None:
        raise HTTPException(status_code=400, detail="Rows and columns must be positive")
    await _persist(workspace)
    return table.to_snapshot()


@app.put("/api/budget/tables/{table_id}")
async def rename_table(table_id: str, request: RenameRequest, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = _require_table(workspace.book, table_id)
    workspace.book.rename_table(table_id, request.name)
    await _persist(workspace)
    return table.to_snapshot()


@app.delete("/api/budget/tables/{table_id}")
async def delete_table(table_id: str, workspace: BudgetWorkspace = Depends(get_workspace)):
    _require_table(workspace.book, table_id)
    workspace.book.delete_table(table_id)
    return await _persist(workspace)


@app.put("/api/budget/tables/{table_id}/active")
async def activate_table(table_id: str, workspace: BudgetWorkspace = Depends(get_workspace)):
    _require_table(workspace.book, table_id)
    workspace.book.set_active(table_id)
    return await _persist(workspace)


@app.put("/api/budget/tables/{table_id}/cells")
async def set_cell(table_id: str, request: SetCellRequest, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = _require_table(workspace.book, table_id)
    report = workspace.book.set_cell(table_id, request.row_id, request.column, request.value)
    if report is None:
        raise HTTPException(status_code=404, detail="Cell not found")
    await _persist(workspace)
    return {"table": table.to_snapshot(), "recalc": report.model_dump(mode="json")}


@app.post("/api/budget/tables/{table_id}/rows")
async def add_row(table_id: str, workspace: BudgetWorkspace = Depends(get_workspace)):
    _require_table(workspace.book, table_id)
    row = workspace.book.add_row(table_id)
    await _persist(workspace)
    return row.to_snapshot()


@app.delete("/api/budget/tables/{table_id}/rows/{row_id}")
async def delete_row(table_id: str, row_id: str, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = _require_table(workspace.book, table_id)
    if not workspace.book.delete_row(table_id, row_id):
        raise HTTPException(status_code=404, detail="Row not found")
    await _persist(workspace)
    return table.to_snapshot()


@app.post("/api/budget/tables/{table_id}/columns")
async def add_column(table_id: str, request: RenameRequest, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = _require_table(workspace.book, table_id)
    if not workspace.book.add_column(table_id, request.name):
        raise HTTPException(status_code=400, detail="Column name is blank or already in use")
    await _persist(workspace)
    return table.to_snapshot()


@app.put("/api/budget/tables/{table_id}/columns/{index}")
async def rename_column(
    table_id: str, index: int, request: RenameRequest, workspace: BudgetWorkspace = Depends(get_workspace)
):
    table = _require_table(workspace.book, table_id)
    if not workspace.book.rename_column(table_id, index, request.name):
        raise HTTPException(status_code=400, detail="Invalid column rename")
    await _persist(workspace)
    return table.to_snapshot()


@app.delete("/api/budget/tables/{table_id}/columns/{index}")
async def delete_column(table_id: str, index: int, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = _require_table(workspace.book, table_id)
    if not workspace.book.delete_column(table_id, index):
        raise HTTPException(status_code=404, detail="Column not found")
    await _persist(workspace)
    return table.to_snapshot()


@app.get("/api/budget/tables/{table_id}/categories")
async def list_categories(table_id: str, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = _require_table(workspace.book, table_id)
    return {
        "statuses": [status.model_dump() for status in table_statuses(table)],
        "breakdown": [share.model_dump() for share in spending_breakdown(table)],
    }


@app.post("/api/budget/tables/{table_id}/categories")
async def create_category(
    table_id: str, request: CategoryRequest, workspace: BudgetWorkspace = Depends(get_workspace)
):
    table = _require_table(workspace.book, table_id)
    category = add_category(table, request.name, request.limit, request.threshold)
    if category is None:
        raise HTTPException(status_code=400, detail="Category needs a name and a numeric limit")
    await _persist(workspace)
    return category.to_snapshot()


@app.put("/api/budget/tables/{table_id}/categories/{category_id}")
async def update_category_spent(
    table_id: str, category_id: str, request: SpentRequest, workspace: BudgetWorkspace = Depends(get_workspace)
):
    table = _require_table(workspace.book, table_id)
    category = set_spent(table, category_id, request.spent)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    await _persist(workspace)
    return category.to_snapshot()


@app.delete("/api/budget/tables/{table_id}/categories/{category_id}")
async def remove_category(table_id: str, category_id: str, workspace: BudgetWorkspace = Depends(get_workspace)):
    table = _require_table(workspace.book, table_id)
    if get_category(table, category_id) is None:
        raise HTTPException(status_code=404, detail="Category not found")
    delete_category(table, category_id)
    await _persist(workspace)
    return {"success": True}


@app.post("/api/budget/preview")
async def preview_formula(request: PreviewRequest, workspace: BudgetWorkspace = Depends(get_workspace)):
    _require_table(workspace.book, request.table_id)
    return {"value": workspace.book.preview_formula(request.table_id, request.formula)}


# ─────────────────────────────────────────────────────────────
# Identity & migration
# ─────────────────────────────────────────────────────────────

@app.get("/api/auth/me")
async def get_current_owner(sync: DataSync = Depends(get_sync)):
    return _owner_info(sync.owner)


@app.post("/api/migrate")
async def migrate_guest_data(sync: DataSync = Depends(require_authenticated)):
    """Move the caller's guest data (guest-id cookie) into their account"""
    try:
        report = sync.migration_report or await sync.migrate()
    except MigrationError as e:
        logger.error("Migration failed for %s: %s", sync.owner.key, e)
        raise HTTPException(status_code=500, detail=str(e))
    if report is None:
        return {"performed": False, "migrated": []}
    return {"performed": report.performed, **report.model_dump(mode="json")}


@app.get("/health")
async def health():
    return {"status": "ok", "supabase": supabase is not None}
