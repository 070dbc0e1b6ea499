"""Formula evaluation for budget table cells.

A formula is any cell input starting with ``=``. References are replaced by
numbers in a fixed order (same-table cells, cross-table cells, SUM, AVERAGE,
COUNT) and the remaining text is handed to the arithmetic parser.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from openpyxl.utils.cell import column_index_from_string, get_column_letter

from core.exceptions import FormulaError
from core.models import Table
from utils.numeric import format_number, safe_divide, to_number
from .arithmetic import ArithmeticParser

logger = logging.getLogger(__name__)

FORMULA_SIGIL = "="
ERROR_MARKER = "#ERROR"


def is_formula(raw: Optional[str]) -> bool:
    return bool(raw) and raw.startswith(FORMULA_SIGIL)


def cell_address(table_id: str, col_index: int, row_index: int) -> str:
    """Stable string key for a cell, e.g. ``tbl!B3`` (indexes are 0-based)"""
    return f"{table_id}!{get_column_letter(col_index + 1)}{row_index + 1}"


class FormulaEvaluator:
    """Evaluate formulas against a snapshot of every table.

    The evaluator never mutates the tables it reads.
    """

    # A1 that is not qualified by a table name and not a range endpoint
    CELL_REF_PATTERN = re.compile(r"(?<![\w.:$])(?P<col>[A-Z])(?P<row>\d+)(?![\w.:])")
    QUALIFIED_REF_PATTERN = re.compile(
        r"(?<![\w.])(?P<table>\w+)\.(?P<col>[A-Z])(?P<row>\d+)(?![\w.:])"
    )
    RANGE_BODY = (
        r"\s*(?:(?P<table>\w+)\.)?(?P<start_col>[A-Z])(?P<start_row>\d+)"
        r"\s*:\s*(?P<end_col>[A-Z])(?P<end_row>\d+)\s*"
    )
    SUM_PATTERN = re.compile(r"(?i:SUM)\(" + RANGE_BODY + r"\)")
    AVERAGE_PATTERN = re.compile(r"(?i:AVERAGE)\(" + RANGE_BODY + r"\)")
    COUNT_PATTERN = re.compile(r"(?i:COUNT)\(" + RANGE_BODY + r"\)")
    RANGE_COLON_PATTERN = re.compile(r"\s*:\s*")  # ``A1 : A3`` reads as ``A1:A3``

    def __init__(self, tables: Sequence[Table]):
        self.tables = tables

    def evaluate(self, formula: str, table_id: str) -> str:
        """Evaluate ``formula`` as if it lived in table ``table_id``.

        Returns the display string: the formatted number, ``#ERROR`` when the
        expression cannot be evaluated, or the input unchanged when it is not
        a formula.
        """
        if not is_formula(formula):
            return formula
        try:
            expression = self.substitute(formula[len(FORMULA_SIGIL):], table_id)
            return format_number(ArithmeticParser.evaluate(expression))
        except FormulaError as e:
            logger.debug("Formula %r in table %s failed: %s", formula, table_id, e)
            return ERROR_MARKER

    def substitute(self, expression: str, table_id: str) -> str:
        """Replace references and range functions with numbers"""
        expression = self.RANGE_COLON_PATTERN.sub(":", expression)
        current = self.find_table(table_id)

        def same_table(match: re.Match) -> str:
            return format_number(self._cell_number(current, match["col"], match["row"]))

        def cross_table(match: re.Match) -> str:
            table = self.find_table(match["table"])
            return format_number(self._cell_number(table, match["col"], match["row"]))

        def range_sum(match: re.Match) -> str:
            return format_number(self._range_sum(match, current))

        def range_average(match: re.Match) -> str:
            total = self._range_sum(match, current)
            count = self._range_count(match, current)
            return format_number(safe_divide(total, count))

        def range_count(match: re.Match) -> str:
            return format_number(self._range_count(match, current))

        expression = self.CELL_REF_PATTERN.sub(same_table, expression)
        expression = self.QUALIFIED_REF_PATTERN.sub(cross_table, expression)
        expression = self.SUM_PATTERN.sub(range_sum, expression)
        expression = self.AVERAGE_PATTERN.sub(range_average, expression)
        expression = self.COUNT_PATTERN.sub(range_count, expression)
        return expression

    def find_table(self, name_or_id: Optional[str]) -> Optional[Table]:
        """Resolve a table by id or by case-insensitive display name"""
        if not name_or_id:
            return None
        lowered = name_or_id.lower()
        for table in self.tables:
            if table.id == name_or_id or table.name.lower() == lowered:
                return table
        return None

    def references(self, formula: str, table_id: str) -> List[str]:
        """Addresses of every existing cell a formula reads, in formula order"""
        if not is_formula(formula):
            return []
        expression = formula[len(FORMULA_SIGIL):]
        expression = self.RANGE_COLON_PATTERN.sub(":", expression)
        current = self.find_table(table_id)
        found: List[str] = []

        for match in self.CELL_REF_PATTERN.finditer(expression):
            found.extend(self._addresses(current, match["col"], match["row"], match["col"], match["row"]))
        for match in self.QUALIFIED_REF_PATTERN.finditer(expression):
            table = self.find_table(match["table"])
            found.extend(self._addresses(table, match["col"], match["row"], match["col"], match["row"]))
        for pattern in (self.SUM_PATTERN, self.AVERAGE_PATTERN, self.COUNT_PATTERN):
            for match in pattern.finditer(expression):
                table = self._range_table(match, current)
                found.extend(
                    self._addresses(
                        table,
                        match["start_col"], match["start_row"],
                        match["end_col"], match["end_row"],
                    )
                )

        seen = set()
        ordered = []
        for address in found:
            if address not in seen:
                seen.add(address)
                ordered.append(address)
        return ordered

    def _cell_value(self, table: Optional[Table], col_index: int, row_index: int) -> str:
        if table is None or row_index < 0 or col_index < 0:
            return ""
        if col_index >= len(table.headers) or row_index >= len(table.rows):
            return ""
        cell = table.rows[row_index].cells.get(table.headers[col_index])
        return cell.value if cell else ""

    def _cell_number(self, table: Optional[Table], col: str, row: str) -> float:
        value = self._cell_value(table, column_index_from_string(col) - 1, int(row) - 1)
        number = to_number(value)
        return 0.0 if number is None else number

    def _range_table(self, match: re.Match, current: Optional[Table]) -> Optional[Table]:
        if match["table"]:
            return self.find_table(match["table"])
        return current

    def _iter_range(
        self, table: Optional[Table], start_col: str, start_row: str, end_col: str, end_row: str
    ) -> Iterator[Tuple[int, int]]:
        if table is None:
            return
        first_col, last_col = sorted(
            (column_index_from_string(start_col) - 1, column_index_from_string(end_col) - 1)
        )
        first_row, last_row = sorted((int(start_row) - 1, int(end_row) - 1))
        for row_index in range(max(first_row, 0), min(last_row, len(table.rows) - 1) + 1):
            for col_index in range(first_col, min(last_col, len(table.headers) - 1) + 1):
                yield col_index, row_index

    def _range_values(self, match: re.Match, current: Optional[Table]) -> Iterable[str]:
        table = self._range_table(match, current)
        for col_index, row_index in self._iter_range(
            table, match["start_col"], match["start_row"], match["end_col"], match["end_row"]
        ):
            yield self._cell_value(table, col_index, row_index)

    def _range_sum(self, match: re.Match, current: Optional[Table]) -> float:
        total = 0.0
        for value in self._range_values(match, current):
            number = to_number(value)
            total += 0.0 if number is None else number
        return total

    def _range_count(self, match: re.Match, current: Optional[Table]) -> int:
        return sum(1 for value in self._range_values(match, current) if value)

    def _addresses(
        self, table: Optional[Table], start_col: str, start_row: str, end_col: str, end_row: str
    ) -> List[str]:
        return [
            cell_address(table.id, col_index, row_index)
            for col_index, row_index in self._iter_range(table, start_col, start_row, end_col, end_row)
        ]


def evaluate_formula(formula: str, table_id: str, tables: Sequence[Table]) -> str:
    """Evaluate a single formula against ``tables``"""
    return FormulaEvaluator(tables).evaluate(formula, table_id)
