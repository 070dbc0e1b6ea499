"""Command line entry point for the planner backend"""

import asyncio
import argparse
import logging
import sys
from typing import Optional

from openpyxl.utils.cell import column_index_from_string, coordinate_from_string
from openpyxl.utils.exceptions import CellCoordinatesException

from budget.categories import table_statuses
from budget.workspace import BudgetWorkspace
from core.enums import RecalcStrategy
from core.exceptions import IdentityError, PlannerError
from config import settings
from storage.identity import IdentityResolver
from storage.local import LocalBackend, LocalStore
from storage.remote import SupabaseRowStore, create_supabase_client
from storage.sync import DataSync


async def open_workspace(
    token: Optional[str] = None,
    strategy: Optional[RecalcStrategy] = None,
    migrate: bool = True,
) -> BudgetWorkspace:
    store = LocalStore()
    client = create_supabase_client()
    resolver = IdentityResolver(store, auth_client=client)
    remote = SupabaseRowStore(client) if client is not None else None
    sync = DataSync(resolver, LocalBackend(store), remote)
    await sync.start(token, migrate=migrate)
    workspace = BudgetWorkspace(sync, strategy=strategy)
    await workspace.load()
    return workspace


def print_table(workspace: BudgetWorkspace, name_or_id: Optional[str]) -> int:
    book = workspace.book
    table = book.get_table(name_or_id) if name_or_id else book.active_table
    if table is None and name_or_id:
        table = next((t for t in book.tables if t.name.lower() == name_or_id.lower()), None)
    if table is None:
        print(f"Error: Table not found: {name_or_id or '(no active table)'}")
        return 1

    print(f"{table.name} ({table.id})")
    print("\t".join(["#"] + table.headers))
    for number, row in enumerate(table.rows, start=1):
        values = [row.cells[h].value if h in row.cells else "" for h in table.headers]
        print("\t".join([str(number)] + values))
    print(f"Total spending: {book.total_spending(table.id)}")
    for status in table_statuses(table):
        flag = "OVER" if status.is_over_budget else ("NEAR" if status.is_near_limit else "ok")
        print(f"  {status.name}: {status.spent}/{status.limit} ({status.percentage:.1f}%) {flag}")
    return 0


async def run(args) -> int:
    strategy = RecalcStrategy(args.strategy) if args.strategy else None
    workspace = await open_workspace(args.token, strategy)
    book = workspace.book

    if args.command == "tables":
        for table in book.tables:
            marker = "*" if table.id == book.data.active_table_id else " "
            print(f"{marker} {table.id}  {table.name}  ({len(table.rows)}x{len(table.headers)})")
        return 0

    if args.command == "show":
        return print_table(workspace, args.table)

    if args.command == "create":
        table = book.create_table(args.rows, args.columns, args.name)
        if table is None:
            print("Error: Rows and columns must be positive")
            return 1
        await workspace.save()
        print(f"Created {table.name} ({table.id})")
        return 0

    if args.command == "set":
        table = book.get_table(args.table)
        if table is None:
            print(f"Error: Table not found: {args.table}")
            return 1
        col, row_number = coordinate_from_string(args.cell.upper())
        row_index = row_number - 1
        if not 0 <= row_index < len(table.rows):
            print(f"Error: Row out of range: {row_number}")
            return 1
        report = book.set_cell(table.id, table.rows[row_index].id, column_index_from_string(col) - 1, args.value)
        if report is None:
            print(f"Error: Column out of range: {col}")
            return 1
        await workspace.save()
        print(f"{args.cell.upper()} = {book.get_cell(table.id, row_index, column_index_from_string(col) - 1).value}")
        if not report.converged:
            print(f"Warning: recalculation did not converge ({len(report.cycles)} cycle(s))")
        return 0

    if args.command == "migrate":
        if workspace.sync.owner.is_guest:
            raise IdentityError("Migration requires a valid --token")
        report = workspace.sync.migration_report
        if report is None or not report.performed:
            print("Nothing to migrate")
        else:
            print(f"Migrated: {', '.join(kind.value for kind in report.migrated)}")
        return 0

    return 1


def main():
    parser = argparse.ArgumentParser(description="Planner - tasks, kanban and budget tables")
    parser.add_argument("--token", type=str, default=None, help="Supabase access token (guest when omitted)")
    parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in RecalcStrategy],
        default=None,
        help=f"Recalculation strategy (default: {settings.RECALC_STRATEGY})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("tables", help="List budget tables")

    show = subparsers.add_parser("show", help="Print a table")
    show.add_argument("table", nargs="?", default=None, help="Table id or name (default: active)")

    create = subparsers.add_parser("create", help="Create a table")
    create.add_argument("rows", type=int)
    create.add_argument("columns", type=int)
    create.add_argument("--name", type=str, default=None)

    set_cell = subparsers.add_parser("set", help="Write a value or formula into a cell")
    set_cell.add_argument("table", help="Table id")
    set_cell.add_argument("cell", help="Cell address, e.g. B3")
    set_cell.add_argument("value", help="Raw input, e.g. 42 or =SUM(A1:A3)")

    subparsers.add_parser("migrate", help="Move guest data into the authenticated account")

    subparsers.add_parser("serve", help="Run the HTTP API")

    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn
        uvicorn.run("web.api:app", host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
        return 0

    try:
        return asyncio.run(run(args))
    except (PlannerError, CellCoordinatesException, ValueError) as e:
        print(f"\n✗ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
