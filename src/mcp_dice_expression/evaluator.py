from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from .config import DEFAULT_MAX_REROLLS
from .errors import DiceEvaluationError, MaxRerollsExceededError
from .models import (
    BinaryOp,
    ConditionalDice,
    DiceRoll,
    EvaluationMetrics,
    EvaluationResult,
    Node,
    NumberLiteral,
    Parentheses,
    RerollDice,
)
from .parser import left_spine
from .random_source import RandomSource, roll_die, system_source

if TYPE_CHECKING:
    from .explanation import ExplanationRecorder


logger = logging.getLogger(__name__)


def compare(value: int, operator: str, threshold: int) -> bool:
    if operator == ">":
        return value > threshold
    if operator == ">=":
        return value >= threshold
    if operator == "<":
        return value < threshold
    if operator == "<=":
        return value <= threshold
    if operator in ("=", "=="):
        return value == threshold
    raise DiceEvaluationError(f"Unknown comparison operator: {operator}")


def apply_operator(operator: str, left: int, right: int) -> int:
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if operator == "/":
        if right == 0:
            raise DiceEvaluationError(f"Division by zero ({left} / 0)")
        return left // right
    raise DiceEvaluationError(f"Unknown operator: {operator}")


class Evaluator:
    """Tree-walking evaluator for parsed dice expressions.

    One instance may be reused; roll history and metrics are reset at the
    start of every evaluation. The random source is shared across calls, so
    a seeded source keeps advancing between evaluations.
    """

    def __init__(
        self,
        random_source: RandomSource | None = None,
        max_rerolls: int = DEFAULT_MAX_REROLLS,
        recorder: ExplanationRecorder | None = None,
        max_execution_time: int | None = None,
    ) -> None:
        self.random_source = random_source or system_source()
        self.max_rerolls = max_rerolls
        self.recorder = recorder
        self.max_execution_time = max_execution_time
        self.rolls: list[int] = []
        self.metrics = EvaluationMetrics()

    def evaluate(self, node: Node) -> int:
        self.rolls = []
        self.metrics = EvaluationMetrics()
        return self._eval(node)

    def evaluate_detailed(self, node: Node) -> EvaluationResult:
        start = time.perf_counter()
        value = self.evaluate(node)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.debug("Evaluated %d nodes in %.3fms", self.metrics.nodes_evaluated, elapsed_ms)
        # The budget is reported, never enforced.
        if self.max_execution_time is not None and elapsed_ms > self.max_execution_time:
            logger.warning(
                "Evaluation took %.1fms, over the %dms budget",
                elapsed_ms,
                self.max_execution_time,
            )
        return EvaluationResult(
            value=value,
            rolls=list(self.rolls),
            execution_time=elapsed_ms,
            metrics=self.metrics,
        )

    def _draw(self, sides: int) -> int:
        value = roll_die(self.random_source, sides)
        self.rolls.append(value)
        self.metrics.dice_rolled += 1
        return value

    def _eval(self, node: Node) -> int:
        self.metrics.nodes_evaluated += 1

        if isinstance(node, NumberLiteral):
            result = node.value
        elif isinstance(node, DiceRoll):
            result = self._eval_dice(node)
        elif isinstance(node, BinaryOp):
            result = self._eval_binary(node)
        elif isinstance(node, Parentheses):
            result = self._eval(node.inner)
            if self.recorder is not None:
                self.recorder.record_parentheses(result)
        elif isinstance(node, ConditionalDice):
            result = self._eval_conditional(node)
        elif isinstance(node, RerollDice):
            result = self._eval_reroll(node)
        else:
            raise DiceEvaluationError(f"Unknown node type: {type(node).__name__}")

        if self.recorder is not None:
            self.recorder.record_node_evaluation(node, result)
        return result

    def _eval_dice(self, node: DiceRoll) -> int:
        rolls = [self._draw(node.sides) for _ in range(node.count)]
        total = sum(rolls)
        if self.recorder is not None:
            self.recorder.record_dice_roll(node, rolls, total)
        return total

    def _eval_binary(self, node: BinaryOp) -> int:
        first, chain = left_spine(node)
        # `node` itself is counted and recorded by _eval.
        self.metrics.nodes_evaluated += len(chain) - 1
        left = self._eval(first)
        for op in chain:
            right = self._eval(op.right)
            result = apply_operator(op.operator, left, right)
            if self.recorder is not None:
                self.recorder.record_operation(op.operator, left, right, result)
                if op is not node:
                    self.recorder.record_node_evaluation(op, result)
            left = result
        return left

    def _eval_conditional(self, node: ConditionalDice) -> int:
        rolls = [self._draw(node.sides) for _ in range(node.count)]
        successes = sum(1 for r in rolls if compare(r, node.operator, node.threshold))
        if self.recorder is not None:
            self.recorder.record_conditional_dice(node, rolls, successes)
        return successes

    def _eval_reroll(self, node: RerollDice) -> int:
        all_rolls: list[int] = []
        finals: list[int] = []
        rerolls = 0

        for _ in range(node.count):
            value, drawn = self._roll_with_rerolls(node)
            finals.append(value)
            all_rolls.extend(drawn)
            rerolls += len(drawn) - 1

        total = sum(finals)
        if self.recorder is not None:
            self.recorder.record_reroll_dice(node, all_rolls, finals, total, rerolls)
        return total

    def _roll_with_rerolls(self, node: RerollDice) -> tuple[int, list[int]]:
        current = self._draw(node.sides)
        total = current
        drawn = [current]
        count = 0

        while compare(current, node.condition, node.threshold):
            if count >= self.max_rerolls:
                raise MaxRerollsExceededError(self.max_rerolls)

            current = self._draw(node.sides)
            drawn.append(current)
            count += 1
            self.metrics.rerolls_performed += 1

            if node.reroll_type == "exploding":
                total += current
            else:
                total = current

            if node.reroll_type == "once":
                break

        return total, drawn
