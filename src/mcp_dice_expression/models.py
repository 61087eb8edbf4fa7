from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias


MAX_DICE_COUNT = 1000
MAX_DICE_SIDES = 10000
MAX_NESTING_DEPTH = 50

ArithmeticOperator: TypeAlias = Literal["+", "-", "*", "/"]
ComparisonOperator: TypeAlias = Literal[">", ">=", "<", "<=", "=", "=="]
RerollType: TypeAlias = Literal["exploding", "once", "recursive"]

REROLL_MARKERS: dict[str, RerollType] = {
    "": "exploding",
    "o": "once",
    "r": "recursive",
}


# Tokens


@dataclass(frozen=True)
class NumberToken:
    text: str
    position: int
    value: int

    @property
    def length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class DiceToken:
    text: str
    position: int
    count: int
    sides: int

    @property
    def length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class ConditionalDiceToken:
    text: str
    position: int
    count: int
    sides: int
    operator: ComparisonOperator
    threshold: int

    @property
    def length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class RerollDiceToken:
    text: str
    position: int
    count: int
    sides: int
    reroll_type: RerollType
    condition: ComparisonOperator
    threshold: int

    @property
    def length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class OperatorToken:
    text: str
    position: int
    operator: ArithmeticOperator

    @property
    def length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class ParenToken:
    text: str
    position: int
    is_open: bool

    @property
    def length(self) -> int:
        return len(self.text)


Token: TypeAlias = (
    NumberToken | DiceToken | ConditionalDiceToken | RerollDiceToken | OperatorToken | ParenToken
)


# AST


@dataclass(frozen=True)
class NumberLiteral:
    value: int


@dataclass(frozen=True)
class DiceRoll:
    count: int
    sides: int


@dataclass(frozen=True)
class BinaryOp:
    operator: ArithmeticOperator
    left: Node
    right: Node


@dataclass(frozen=True)
class Parentheses:
    inner: Node


@dataclass(frozen=True)
class ConditionalDice:
    count: int
    sides: int
    operator: ComparisonOperator
    threshold: int


@dataclass(frozen=True)
class RerollDice:
    count: int
    sides: int
    reroll_type: RerollType
    condition: ComparisonOperator
    threshold: int


Node: TypeAlias = NumberLiteral | DiceRoll | BinaryOp | Parentheses | ConditionalDice | RerollDice


# Results


@dataclass(frozen=True)
class ValueRange:
    min: int
    max: int


@dataclass
class EvaluationMetrics:
    nodes_evaluated: int = 0
    dice_rolled: int = 0
    rerolls_performed: int = 0


@dataclass(frozen=True)
class EvaluationResult:
    value: int
    rolls: list[int]
    execution_time: float
    metrics: EvaluationMetrics = field(default_factory=EvaluationMetrics)


@dataclass(frozen=True)
class DetailedResult:
    expression: str
    value: int
    rolls: list[int]
    min_value: int
    max_value: int
    execution_time: float
    metrics: EvaluationMetrics = field(default_factory=EvaluationMetrics)
