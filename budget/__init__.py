"""Budget spreadsheet engine"""

from .arithmetic import ArithmeticParser
from .formula import FormulaEvaluator, evaluate_formula, ERROR_MARKER
from .recalc import IterativeRecalculator, DependencyGraphRecalculator, recalculate
from .tables import TableBook
from .workspace import BudgetWorkspace

__all__ = [
    "ArithmeticParser",
    "FormulaEvaluator",
    "evaluate_formula",
    "ERROR_MARKER",
    "IterativeRecalculator",
    "DependencyGraphRecalculator",
    "recalculate",
    "TableBook",
    "BudgetWorkspace",
]
