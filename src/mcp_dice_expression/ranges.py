from __future__ import annotations

from .config import DEFAULT_EXPLODE_MULTIPLIER
from .errors import DiceEvaluationError
from .models import (
    BinaryOp,
    ConditionalDice,
    DiceRoll,
    Node,
    NumberLiteral,
    Parentheses,
    RerollDice,
    ValueRange,
)
from .parser import left_spine


def _denominators(right: ValueRange) -> list[int]:
    """Nonzero denominator candidates covering every sign the right operand can take."""

    candidates = {v for v in (right.min, right.max) if v != 0}
    if right.min <= 0 <= right.max:
        if right.min <= -1:
            candidates.add(-1)
        if right.max >= 1:
            candidates.add(1)
    if not candidates:
        raise DiceEvaluationError("Division by zero: divisor is always 0")
    return sorted(candidates)


def _combine(operator: str, left: ValueRange, right: ValueRange) -> ValueRange:
    if operator == "+":
        return ValueRange(left.min + right.min, left.max + right.max)
    if operator == "-":
        return ValueRange(left.min - right.max, left.max - right.min)
    if operator == "*":
        corners = [a * b for a in (left.min, left.max) for b in (right.min, right.max)]
        return ValueRange(min(corners), max(corners))
    if operator == "/":
        corners = [a // b for a in (left.min, left.max) for b in _denominators(right)]
        return ValueRange(min(corners), max(corners))
    raise DiceEvaluationError(f"Unknown operator: {operator}")


def expression_range(node: Node, explode_multiplier: int = DEFAULT_EXPLODE_MULTIPLIER) -> ValueRange:
    """Static min/max bounds of an expression; no dice are rolled.

    Exploding and recursive rerolls have no true maximum, so their ceiling is
    `count * sides * explode_multiplier`.
    """

    if isinstance(node, NumberLiteral):
        return ValueRange(node.value, node.value)
    if isinstance(node, DiceRoll):
        return ValueRange(node.count, node.count * node.sides)
    if isinstance(node, ConditionalDice):
        return ValueRange(0, node.count)
    if isinstance(node, RerollDice):
        ceiling = node.count * node.sides
        if node.reroll_type in ("exploding", "recursive"):
            ceiling *= explode_multiplier
        return ValueRange(node.count, ceiling)
    if isinstance(node, Parentheses):
        return expression_range(node.inner, explode_multiplier)
    if isinstance(node, BinaryOp):
        first, chain = left_spine(node)
        bounds = expression_range(first, explode_multiplier)
        for op in chain:
            bounds = _combine(op.operator, bounds, expression_range(op.right, explode_multiplier))
        return bounds
    raise DiceEvaluationError(f"Unknown node type: {type(node).__name__}")
