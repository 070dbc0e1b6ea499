"""Recalculation of formula cells across every table."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
from typing import Dict, List, Optional, Sequence, Set

from core.enums import RecalcStrategy
from core.exceptions import ConfigError
from core.models import Cell, RecalcReport, Table
from config import settings
from .formula import FormulaEvaluator, cell_address

logger = logging.getLogger(__name__)

MAX_PASSES = 10


@dataclass
class FormulaSlot:
    """A formula cell located in the current table structure"""
    address: str
    table: Table
    cell: Cell


def collect_formula_cells(tables: Sequence[Table]) -> List[FormulaSlot]:
    """Formula cells in table, row, then column order"""
    slots: List[FormulaSlot] = []
    for table in tables:
        for row_index, row in enumerate(table.rows):
            for col_index, header in enumerate(table.headers):
                cell = row.cells.get(header)
                if cell is not None and cell.formula:
                    slots.append(
                        FormulaSlot(
                            address=cell_address(table.id, col_index, row_index),
                            table=table,
                            cell=cell,
                        )
                    )
    return slots


class IterativeRecalculator:
    """Re-evaluate formula cells until a pass changes nothing.

    Writes land immediately, so later cells in a pass see values computed
    earlier in the same pass. Stops after ``max_passes`` even if values are
    still moving (e.g. circular references); those last values are kept.
    """

    def __init__(self, max_passes: Optional[int] = None):
        self.max_passes = max_passes or settings.RECALC_MAX_PASSES or MAX_PASSES

    def run(self, tables: Sequence[Table], only: Optional[Set[str]] = None) -> RecalcReport:
        evaluator = FormulaEvaluator(tables)
        report = RecalcReport(strategy=RecalcStrategy.ITERATIVE, converged=False)

        while report.passes < self.max_passes:
            report.passes += 1
            changed = 0
            for slot in collect_formula_cells(tables):
                if only is not None and slot.address not in only:
                    continue
                value = evaluator.evaluate(slot.cell.formula, slot.table.id)
                if value != slot.cell.value:
                    slot.cell.value = value
                    changed += 1
            report.changed_cells += changed
            if not changed:
                report.converged = True
                break

        return report


class DependencyGraphRecalculator:
    """Evaluate formula cells in dependency order.

    Acyclic cells are evaluated exactly once, after everything they read.
    Cells on a circular reference (and anything downstream of one) fall back
    to the capped iterative loop.
    """

    def __init__(self, max_passes: Optional[int] = None):
        self.fallback = IterativeRecalculator(max_passes)

    def run(self, tables: Sequence[Table]) -> RecalcReport:
        evaluator = FormulaEvaluator(tables)
        slots = collect_formula_cells(tables)
        by_address: Dict[str, FormulaSlot] = {slot.address: slot for slot in slots}

        adjacency: Dict[str, Set[str]] = {address: set() for address in by_address}
        reverse_adjacency: Dict[str, Set[str]] = {address: set() for address in by_address}
        in_degree: Dict[str, int] = {address: 0 for address in by_address}

        for slot in slots:
            for source in evaluator.references(slot.cell.formula, slot.table.id):
                if source not in by_address or slot.address in adjacency[source]:
                    continue
                adjacency[source].add(slot.address)
                reverse_adjacency[slot.address].add(source)
                in_degree[slot.address] += 1

        execution_order = self._topological_sort(list(by_address), adjacency, in_degree)

        report = RecalcReport(strategy=RecalcStrategy.GRAPH, passes=1)
        for address in execution_order:
            slot = by_address[address]
            value = evaluator.evaluate(slot.cell.formula, slot.table.id)
            if value != slot.cell.value:
                slot.cell.value = value
                report.changed_cells += 1

        evaluated = set(execution_order)
        remaining = [address for address in by_address if address not in evaluated]
        if remaining:
            report.cycles = self._components(remaining, adjacency, reverse_adjacency)
            fallback = self.fallback.run(tables, only=set(remaining))
            report.passes += fallback.passes
            report.changed_cells += fallback.changed_cells
            report.converged = fallback.converged

        return report

    def _topological_sort(
        self, nodes: List[str], adjacency: Dict[str, Set[str]], in_degree: Dict[str, int]
    ) -> List[str]:
        degrees = dict(in_degree)
        position = {node: index for index, node in enumerate(nodes)}
        queue = deque([node for node in nodes if degrees[node] == 0])
        order: List[str] = []

        while queue:
            node = queue.popleft()
            order.append(node)
            for neighbor in sorted(adjacency.get(node, set()), key=position.get):
                degrees[neighbor] -= 1
                if degrees[neighbor] == 0:
                    queue.append(neighbor)

        return order

    def _components(
        self,
        nodes: List[str],
        adjacency: Dict[str, Set[str]],
        reverse_adjacency: Dict[str, Set[str]],
    ) -> List[List[str]]:
        members = set(nodes)
        visited: Set[str] = set()
        components: List[List[str]] = []
        for start in nodes:
            if start in visited:
                continue
            stack = [start]
            component: Set[str] = set()
            while stack:
                node = stack.pop()
                if node in component:
                    continue
                component.add(node)
                stack.extend(n for n in adjacency.get(node, set()) if n in members)
                stack.extend(n for n in reverse_adjacency.get(node, set()) if n in members)
            visited.update(component)
            components.append([node for node in nodes if node in component])
        return components


def recalculate(
    tables: Sequence[Table],
    strategy: Optional[RecalcStrategy] = None,
    max_passes: Optional[int] = None,
) -> RecalcReport:
    """Bring every formula cell in ``tables`` to a fixed point"""
    try:
        chosen = RecalcStrategy(strategy or settings.RECALC_STRATEGY)
    except ValueError as e:
        raise ConfigError(f"Unknown recalculation strategy: {strategy or settings.RECALC_STRATEGY}") from e

    if chosen == RecalcStrategy.ITERATIVE:
        report = IterativeRecalculator(max_passes).run(tables)
    else:
        report = DependencyGraphRecalculator(max_passes).run(tables)

    if not report.converged:
        logger.warning(
            "Recalculation stopped after %d passes without converging (%d circular group(s))",
            report.passes,
            len(report.cycles),
        )
    return report
