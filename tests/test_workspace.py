import pytest

from budget.workspace import BudgetWorkspace
from core.enums import EntityKind


@pytest.mark.asyncio
async def test_empty_workspace_loads_empty_book(make_sync):
    sync = make_sync()
    await sync.start()
    workspace = BudgetWorkspace(sync)
    book = await workspace.load()
    assert book.tables == []
    assert book.active_table is None


@pytest.mark.asyncio
async def test_edits_persist_across_sessions(make_sync):
    sync = make_sync()
    await sync.start()
    workspace = BudgetWorkspace(sync)
    await workspace.load()
    table = workspace.book.create_table(2, 1, "Savings")
    workspace.book.set_cell(table.id, table.rows[0].id, 0, "100")
    workspace.book.set_cell(table.id, table.rows[1].id, 0, "=A1*12")
    await workspace.save()

    reopened_sync = make_sync()
    await reopened_sync.start()
    reopened = BudgetWorkspace(reopened_sync)
    book = await reopened.load()
    assert book.get_cell(table.id, 1, 0).value == "1200"
    assert book.get_cell(table.id, 1, 0).formula == "=A1*12"


@pytest.mark.asyncio
async def test_remote_snapshot_replaces_book(make_sync):
    sync = make_sync()
    await sync.start()
    workspace = BudgetWorkspace(sync)
    await workspace.load()

    sync.apply_remote_snapshot(EntityKind.BUDGET, {"tables": [{"id": "t1", "name": "Pushed"}]})
    assert [table.name for table in workspace.book.tables] == ["Pushed"]

    sync.apply_remote_snapshot(EntityKind.TASKS, [])
    assert [table.name for table in workspace.book.tables] == ["Pushed"]

    workspace.close()
    sync.apply_remote_snapshot(EntityKind.BUDGET, {"tables": []})
    assert [table.name for table in workspace.book.tables] == ["Pushed"]
