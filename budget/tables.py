"""Budget table model and its mutation API.

Structural edits with invalid input (blank names, non-positive sizes, unknown
ids, out-of-range indexes) are silent no-ops: they return ``None``/``False``
and leave the book untouched.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from core.enums import RecalcStrategy
from core.models import BudgetData, Cell, RecalcReport, Row, Table
from utils.numeric import to_number
from .formula import FormulaEvaluator, is_formula
from .recalc import recalculate

logger = logging.getLogger(__name__)

NUMERIC_HEADER_KEYWORDS = ("amount", "price", "cost", "total", "value")


def _empty_row(headers: List[str]) -> Row:
    return Row(cells={header: Cell() for header in headers})


def is_numeric_column(header: str) -> bool:
    """Whether a column counts towards total spending"""
    lowered = header.lower()
    return any(keyword in lowered for keyword in NUMERIC_HEADER_KEYWORDS) or to_number(header) is not None


class TableBook:
    """In-memory owner of every budget table for a session"""

    def __init__(self, data: Optional[BudgetData] = None, strategy: Optional[RecalcStrategy] = None):
        self.data = data or BudgetData()
        self.strategy = strategy
        self.last_report: Optional[RecalcReport] = None

    @classmethod
    def from_snapshot(cls, snapshot, strategy: Optional[RecalcStrategy] = None) -> "TableBook":
        """Build a book from a persisted snapshot (dict or bare table list)"""
        if isinstance(snapshot, list):
            snapshot = {"tables": snapshot}
        data = BudgetData.model_validate(snapshot or {})
        return cls(data, strategy=strategy)

    def to_snapshot(self) -> dict:
        return self.data.to_snapshot()

    @property
    def tables(self) -> List[Table]:
        return self.data.tables

    @property
    def active_table(self) -> Optional[Table]:
        return self.get_table(self.data.active_table_id)

    def get_table(self, table_id: Optional[str]) -> Optional[Table]:
        for table in self.tables:
            if table.id == table_id:
                return table
        return None

    # ─────────────────────────────────────────────────────────────
    # Tables
    # ─────────────────────────────────────────────────────────────

    def create_table(self, row_count: int, col_count: int, name: Optional[str] = None) -> Optional[Table]:
        """Create a table of empty cells and make it active"""
        if row_count <= 0 or col_count <= 0:
            return None

        headers = [f"Column {i + 1}" for i in range(col_count)]
        table = Table(
            name=(name or "").strip() or f"Table {len(self.tables) + 1}",
            headers=headers,
            rows=[_empty_row(headers) for _ in range(row_count)],
        )
        self.tables.append(table)
        self.data.active_table_id = table.id
        return table

    def delete_table(self, table_id: str) -> bool:
        table = self.get_table(table_id)
        if table is None:
            return False
        self.tables.remove(table)
        if self.data.active_table_id == table_id:
            self.data.active_table_id = self.tables[0].id if self.tables else None
        return True

    def rename_table(self, table_id: str, name: str) -> bool:
        """Rename a table.

        Cross-table formulas that used the old name stop resolving (they read
        as 0); formulas that reference the table id keep working.
        """
        table = self.get_table(table_id)
        if table is None or not name or not name.strip():
            return False
        table.name = name.strip()
        return True

    def set_active(self, table_id: str) -> bool:
        if self.get_table(table_id) is None:
            return False
        self.data.active_table_id = table_id
        return True

    # ─────────────────────────────────────────────────────────────
    # Rows & columns
    # ─────────────────────────────────────────────────────────────

    def add_row(self, table_id: str) -> Optional[Row]:
        table = self.get_table(table_id)
        if table is None:
            return None
        row = _empty_row(table.headers)
        table.rows.append(row)
        return row

    def delete_row(self, table_id: str, row_id: str) -> bool:
        table = self.get_table(table_id)
        row = table.get_row(row_id) if table else None
        if row is None:
            return False
        table.rows.remove(row)
        return True

    def add_column(self, table_id: str, name: str) -> bool:
        table = self.get_table(table_id)
        header = (name or "").strip()
        if table is None or not header or header in table.headers:
            return False
        table.headers.append(header)
        for row in table.rows:
            row.cells[header] = Cell()
        return True

    def delete_column(self, table_id: str, index: int) -> bool:
        table = self.get_table(table_id)
        if table is None or not 0 <= index < len(table.headers):
            return False
        header = table.headers.pop(index)
        for row in table.rows:
            row.cells.pop(header, None)
        return True

    def rename_column(self, table_id: str, index: int, new_name: str) -> bool:
        """Rename a column, carrying every row's cell (value and formula) over"""
        table = self.get_table(table_id)
        header = (new_name or "").strip()
        if table is None or not header or not 0 <= index < len(table.headers):
            return False
        old_header = table.headers[index]
        if header == old_header:
            return True
        if header in table.headers:
            return False

        table.headers[index] = header
        for row in table.rows:
            row.cells = {
                (header if key == old_header else key): cell
                for key, cell in row.cells.items()
            }
        return True

    # ─────────────────────────────────────────────────────────────
    # Cells
    # ─────────────────────────────────────────────────────────────

    def set_cell(self, table_id: str, row_id: str, column_index: int, raw_input: str) -> Optional[RecalcReport]:
        """Write raw user input into a cell, then recalculate every table.

        Formula input (``=...``) is evaluated against the book as it stands
        before the write; plain input is stored verbatim.
        """
        table = self.get_table(table_id)
        row = table.get_row(row_id) if table else None
        if row is None or not 0 <= column_index < len(table.headers):
            return None

        raw_input = raw_input or ""
        header = table.headers[column_index]
        if is_formula(raw_input):
            value = FormulaEvaluator(self.tables).evaluate(raw_input, table_id)
            row.cells[header] = Cell(value=value, formula=raw_input)
        else:
            row.cells[header] = Cell(value=raw_input)

        return self.recalculate()

    def get_cell(self, table_id: str, row_index: int, column_index: int) -> Optional[Cell]:
        """Cell at 0-based positional coordinates"""
        table = self.get_table(table_id)
        if table is None or not 0 <= row_index < len(table.rows) or not 0 <= column_index < len(table.headers):
            return None
        return table.rows[row_index].cells.get(table.headers[column_index])

    def preview_formula(self, table_id: str, raw_input: str) -> str:
        """Evaluate input without storing it; empty for non-formulas"""
        if not is_formula(raw_input):
            return ""
        return FormulaEvaluator(self.tables).evaluate(raw_input, table_id)

    def recalculate(self) -> RecalcReport:
        self.last_report = recalculate(self.tables, strategy=self.strategy)
        return self.last_report

    # ─────────────────────────────────────────────────────────────
    # Totals
    # ─────────────────────────────────────────────────────────────

    def column_total(self, table_id: str, index: int) -> float:
        table = self.get_table(table_id)
        if table is None or not 0 <= index < len(table.headers):
            return 0.0
        header = table.headers[index]
        total = 0.0
        for row in table.rows:
            cell = row.cells.get(header)
            number = to_number(cell.value) if cell else None
            total += number or 0.0
        return total

    def total_spending(self, table_id: str) -> float:
        """Sum of every numeric-looking column"""
        table = self.get_table(table_id)
        if table is None:
            return 0.0
        return sum(
            self.column_total(table_id, index)
            for index, header in enumerate(table.headers)
            if is_numeric_column(header)
        )
