from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from .models import (
    BinaryOp,
    ConditionalDice,
    DetailedResult,
    DiceRoll,
    Node,
    NumberLiteral,
    Parentheses,
    RerollDice,
    Token,
)
from .parser import to_notation


class StepType(str, Enum):
    TOKENIZATION = "tokenization"
    PARSING = "parsing"
    EVALUATION = "evaluation"
    DICE_ROLL = "dice_roll"
    REROLL = "reroll"
    CONDITIONAL = "conditional"
    OPERATION = "operation"
    PARENTHESES = "parentheses"
    FINAL_RESULT = "final_result"


_OPERATION_NAMES = {
    "+": "addition",
    "-": "subtraction",
    "*": "multiplication",
    "/": "division",
}


@dataclass(frozen=True)
class ExplanationOptions:
    include_tokenization: bool = True
    include_parsing: bool = True
    include_intermediate_steps: bool = True
    include_dice_details: bool = True
    include_timestamps: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class Step:
    step: int
    operation: StepType
    description: str
    value: int
    details: str | None = None
    rolls: list[int] | None = None
    node: Node | None = None


@dataclass
class Explanation:
    original_expression: str
    tokenization: list[str]
    parsing: str
    steps: list[Step]
    final_result: int
    execution_time: float | None = None
    options: ExplanationOptions = field(default_factory=ExplanationOptions)

    def to_text(self) -> str:
        lines = [f"Expression: {self.original_expression}", ""]

        if self.options.include_tokenization and self.tokenization:
            lines += [f"Tokenization: {' -> '.join(self.tokenization)}", ""]
        if self.options.include_parsing and self.parsing:
            lines += [f"Parsing: {self.parsing}", ""]

        lines.append("Evaluation Steps:")
        for step in self.steps:
            lines.append(f"  {step.step}. {step.description}")
            if step.details and self.options.verbose:
                lines.append(f"     Details: {step.details}")

        lines += ["", f"Final Result: {self.final_result}"]
        if self.execution_time is not None and self.options.include_timestamps:
            lines.append(f"Execution Time: {self.execution_time:.3f}ms")
        return "\n".join(lines)

    def to_markdown(self) -> str:
        lines = [f"# Expression Evaluation: `{self.original_expression}`", ""]

        if self.options.include_tokenization and self.tokenization:
            lines += ["## Tokenization", f"`{' -> '.join(self.tokenization)}`", ""]
        if self.options.include_parsing and self.parsing:
            lines += ["## Parsing", self.parsing, ""]

        lines.append("## Evaluation Steps")
        for step in self.steps:
            lines.append(f"{step.step}. **{step.operation.value}**: {step.description}")
            if step.details and self.options.verbose:
                lines.append(f"   - *{step.details}*")

        lines += ["", f"## Final Result: **{self.final_result}**"]
        if self.execution_time is not None and self.options.include_timestamps:
            lines.append(f"*Execution Time: {self.execution_time:.3f}ms*")
        return "\n".join(lines)


@dataclass(frozen=True)
class ExplainedResult:
    result: DetailedResult
    explanation: Explanation


def describe_node(node: Node, result: int) -> str:
    if isinstance(node, NumberLiteral):
        return f"Number literal: {node.value}"
    if isinstance(node, DiceRoll):
        return f"Dice expression: {to_notation(node)} = {result}"
    if isinstance(node, BinaryOp):
        return f"Binary operation: {node.operator} = {result}"
    if isinstance(node, Parentheses):
        return f"Parenthetical expression = {result}"
    if isinstance(node, ConditionalDice):
        return f"Conditional dice: {to_notation(node)} = {result}"
    if isinstance(node, RerollDice):
        return f"Reroll dice: {to_notation(node)} = {result}"
    return f"{type(node).__name__} = {result}"


def _verbose_node(node: Node) -> str:
    if isinstance(node, DiceRoll):
        return f"Rolling {node.count} dice with {node.sides} sides each"
    if isinstance(node, BinaryOp):
        return f"Performing {_OPERATION_NAMES[node.operator]} operation"
    if isinstance(node, ConditionalDice):
        return f"Counting successes where each die roll {node.operator} {node.threshold}"
    if isinstance(node, RerollDice):
        return f"Rerolling ({node.reroll_type}) dice that meet condition {node.condition}{node.threshold}"
    return f"Processing {type(node).__name__} node"


class ExplanationRecorder:
    """Collects evaluation steps. Purely observational: it never alters a value."""

    def __init__(self, expression: str, options: ExplanationOptions | None = None) -> None:
        self.expression = expression
        self.options = options or ExplanationOptions()
        self.steps: list[Step] = []
        self.tokenization: list[str] = []
        self.parsing = ""
        self.final_result: int | None = None

    def _add(self, operation: StepType, description: str, value: int, **extra) -> None:
        self.steps.append(
            Step(step=len(self.steps) + 1, operation=operation, description=description, value=value, **extra)
        )

    def _verbose(self, text: str) -> str | None:
        return text if self.options.verbose else None

    def record_tokenization(self, tokens: Sequence[Token | str]) -> None:
        if not self.options.include_tokenization:
            return
        texts = [t if isinstance(t, str) else t.text for t in tokens]
        self.tokenization = texts
        self._add(
            StepType.TOKENIZATION,
            f"Tokenized expression into: {', '.join(texts)}",
            len(texts),
            details=self._verbose(", ".join(f'{i}. "{t}"' for i, t in enumerate(texts, start=1))),
        )

    def record_parsing(self, description: str, node_count: int) -> None:
        if not self.options.include_parsing:
            return
        self.parsing = description
        self._add(
            StepType.PARSING,
            f"Parsed tokens into AST: {description}",
            node_count,
            details=self._verbose(f"Abstract syntax tree contains {node_count} nodes"),
        )

    def record_node_evaluation(self, node: Node, result: int) -> None:
        if not self.options.include_intermediate_steps:
            return
        self._add(
            StepType.EVALUATION,
            describe_node(node, result),
            result,
            details=self._verbose(_verbose_node(node)),
            node=node,
        )

    def record_dice_roll(self, node: DiceRoll, rolls: list[int], total: int) -> None:
        details = None
        if self.options.include_dice_details:
            details = "Individual rolls: [" + ", ".join(f"die {i}: {r}" for i, r in enumerate(rolls, start=1)) + "]"
        self._add(
            StepType.DICE_ROLL,
            f"Rolled {to_notation(node)}: {', '.join(map(str, rolls))} (total: {total})",
            total,
            details=details,
            rolls=list(rolls),
            node=node,
        )

    def record_conditional_dice(self, node: ConditionalDice, rolls: list[int], successes: int) -> None:
        details = None
        if self.options.include_dice_details:
            details = f"Rolls: {', '.join(map(str, rolls))}"
        self._add(
            StepType.CONDITIONAL,
            f"Evaluated {node.count}d{node.sides} with condition {node.operator}{node.threshold}: {successes} successes",
            successes,
            details=details,
            rolls=list(rolls),
            node=node,
        )

    def record_reroll_dice(
        self,
        node: RerollDice,
        all_rolls: list[int],
        final_values: list[int],
        total: int,
        reroll_count: int,
    ) -> None:
        details = None
        if self.options.include_dice_details:
            details = (
                f"All rolls: [{', '.join(map(str, all_rolls))}] | "
                f"Final values: [{', '.join(map(str, final_values))}] | Reroll type: {node.reroll_type}"
            )
        self._add(
            StepType.REROLL,
            f"Rolled {node.count}d{node.sides} with rerolls on {node.condition}{node.threshold}: "
            f"{total} ({reroll_count} rerolls)",
            total,
            details=details,
            rolls=list(final_values),
            node=node,
        )

    def record_parentheses(self, inner_result: int) -> None:
        if not self.options.include_intermediate_steps:
            return
        self._add(StepType.PARENTHESES, f"Evaluated parenthetical expression: {inner_result}", inner_result)

    def record_operation(self, operator: str, left: int, right: int, result: int) -> None:
        self._add(
            StepType.OPERATION,
            f"{left} {operator} {right} = {result}",
            result,
            details=self._verbose(f"{_OPERATION_NAMES.get(operator, operator).capitalize()} of {left} and {right}"),
        )

    def record_final_result(self, value: int) -> None:
        self.final_result = value
        self._add(StepType.FINAL_RESULT, f"Final result: {value}", value)

    def build(self, execution_time: float | None = None) -> Explanation:
        if self.final_result is not None:
            final = self.final_result
        else:
            final = self.steps[-1].value if self.steps else 0
        return Explanation(
            original_expression=self.expression,
            tokenization=list(self.tokenization),
            parsing=self.parsing,
            steps=list(self.steps),
            final_result=final,
            execution_time=execution_time,
            options=self.options,
        )
