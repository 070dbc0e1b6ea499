import pytest

from budget.arithmetic import ArithmeticParser
from core.exceptions import FormulaError


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("1+2*3", 7),
        ("(1+2)*3", 9),
        ("10-4-3", 3),
        ("8/4/2", 1),
        ("-5+2", -3),
        ("--5", 5),
        ("2*-3", -6),
        (" 1.5 + .5 ", 2),
        ("1e3/10", 100),
    ],
)
def test_evaluates_arithmetic(expression, expected):
    assert ArithmeticParser.evaluate(expression) == pytest.approx(expected)


@pytest.mark.parametrize(
    "expression",
    ["", "1+", "(1+2", "1+2)", "2 3", "abc", "__import__('os')", "1/0", "1e308*10", "SUM(A1:A2)"],
)
def test_rejects_invalid_expressions(expression):
    with pytest.raises(FormulaError):
        ArithmeticParser.evaluate(expression)


def test_error_carries_position():
    with pytest.raises(FormulaError) as exc:
        ArithmeticParser.evaluate("1 + x")
    assert exc.value.position == 4


def test_rejects_excessive_nesting():
    with pytest.raises(FormulaError, match="nested too deeply"):
        ArithmeticParser.evaluate("(" * 400 + "1" + ")" * 400)
    with pytest.raises(FormulaError):
        ArithmeticParser.evaluate("-" * 1200 + "1")
    assert ArithmeticParser.evaluate("(" * 90 + "2" + ")" * 90) == 2
