"""Constrained arithmetic expression evaluator.

Accepts numeric literals, ``+ - * /``, unary signs and parentheses. Anything
else is rejected with a FormulaError; nothing is ever executed as code.
"""

from __future__ import annotations

import math
import re
from typing import Dict, List

from core.exceptions import FormulaError


class ArithmeticParser:
    """Tokenizer plus precedence-climbing parser for residual formula text."""

    TOKEN_PATTERN = re.compile(
        r'''
        (?P<ws>\s+)
        |(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
        |(?P<op>[+\-*/])
        |(?P<lparen>\()
        |(?P<rparen>\))
        |(?P<invalid>.)
        ''',
        re.VERBOSE,
    )
    PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}
    MAX_NESTING = 100  # parentheses plus unary signs

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = self._tokenize(expression)
        self.pos = 0
        self.depth = 0

    @classmethod
    def evaluate(cls, expression: str) -> float:
        """Evaluate ``expression`` and return a finite float.

        Raises:
            FormulaError: On any syntax error, division by zero or overflow
        """
        parser = cls(expression)
        if not parser.tokens:
            raise FormulaError("empty expression", position=0)
        value = parser._parse_expression(1)
        if parser.pos < len(parser.tokens):
            token = parser.tokens[parser.pos]
            raise FormulaError(f"unexpected token '{token['value']}'", position=token["pos"])
        if not math.isfinite(value):
            raise FormulaError("result is not a finite number")
        return value

    def _tokenize(self, expr: str) -> List[Dict[str, str]]:
        tokens: List[Dict[str, str]] = []
        for match in self.TOKEN_PATTERN.finditer(expr):
            kind = match.lastgroup
            if kind == "ws":
                continue
            if kind == "invalid":
                raise FormulaError(
                    f"unexpected character '{match.group()}'", position=match.start()
                )
            tokens.append({"type": kind, "value": match.group(), "pos": match.start()})
        return tokens

    def _peek(self):
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def _advance(self):
        token = self._peek()
        if token is None:
            raise FormulaError("unexpected end of expression", position=len(self.expression))
        self.pos += 1
        return token

    def _enter(self, token: Dict[str, str]) -> None:
        self.depth += 1
        if self.depth > self.MAX_NESTING:
            raise FormulaError("expression nested too deeply", position=token["pos"])

    def _parse_expression(self, min_precedence: int) -> float:
        left = self._parse_unary()
        while True:
            token = self._peek()
            if token is None or token["type"] != "op":
                return left
            precedence = self.PRECEDENCE[token["value"]]
            if precedence < min_precedence:
                return left
            self._advance()
            right = self._parse_expression(precedence + 1)
            left = self._apply(token, left, right)

    def _parse_unary(self) -> float:
        token = self._peek()
        if token is not None and token["type"] == "op" and token["value"] in ("+", "-"):
            self._advance()
            self._enter(token)
            operand = self._parse_unary()
            self.depth -= 1
            return -operand if token["value"] == "-" else operand
        return self._parse_primary()

    def _parse_primary(self) -> float:
        token = self._advance()
        if token["type"] == "number":
            return float(token["value"])
        if token["type"] == "lparen":
            self._enter(token)
            value = self._parse_expression(1)
            closing = self._advance()
            if closing["type"] != "rparen":
                raise FormulaError("expected ')'", position=closing["pos"])
            self.depth -= 1
            return value
        raise FormulaError(f"unexpected token '{token['value']}'", position=token["pos"])

    @staticmethod
    def _apply(token: Dict[str, str], left: float, right: float) -> float:
        op = token["value"]
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if right == 0:
            raise FormulaError("division by zero", position=token["pos"])
        return left / right
