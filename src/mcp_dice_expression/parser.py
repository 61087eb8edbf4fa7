from __future__ import annotations

from dataclasses import dataclass

from .config import DEFAULT_MAX_EXPRESSION_LENGTH
from .errors import DiceEvaluationError, ParseError
from .models import (
    MAX_NESTING_DEPTH,
    REROLL_MARKERS,
    BinaryOp,
    ConditionalDice,
    ConditionalDiceToken,
    DiceRoll,
    DiceToken,
    Node,
    NumberLiteral,
    NumberToken,
    OperatorToken,
    Parentheses,
    ParenToken,
    RerollDice,
    RerollDiceToken,
    Token,
)
from .tokenizer import tokenize


_ADDITIVE = ("+", "-")
_MULTIPLICATIVE = ("*", "/")
_MARKER_FOR_TYPE = {reroll_type: marker for marker, reroll_type in REROLL_MARKERS.items()}


@dataclass
class _Cursor:
    tokens: list[Token]
    index: int = 0
    depth: int = 0

    def at_end(self) -> bool:
        return self.index >= len(self.tokens)

    def peek(self) -> Token | None:
        return None if self.at_end() else self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def end_position(self) -> int:
        if not self.tokens:
            return 0
        last = self.tokens[-1]
        return last.position + last.length


def _peek_operator(cursor: _Cursor, allowed: tuple[str, ...]) -> OperatorToken | None:
    token = cursor.peek()
    if isinstance(token, OperatorToken) and token.operator in allowed:
        return token
    return None


def _parse_expr(cursor: _Cursor) -> Node:
    left = _parse_term(cursor)
    while (op := _peek_operator(cursor, _ADDITIVE)) is not None:
        cursor.advance()
        left = BinaryOp(operator=op.operator, left=left, right=_parse_term(cursor))
    return left


def _parse_term(cursor: _Cursor) -> Node:
    left = _parse_primary(cursor)
    while (op := _peek_operator(cursor, _MULTIPLICATIVE)) is not None:
        cursor.advance()
        left = BinaryOp(operator=op.operator, left=left, right=_parse_primary(cursor))
    return left


def _parse_group(cursor: _Cursor, opening: ParenToken) -> Node:
    nxt = cursor.peek()
    if isinstance(nxt, ParenToken) and not nxt.is_open:
        raise ParseError("Empty parenthesis group", opening.position, "()")

    cursor.depth += 1
    if cursor.depth > MAX_NESTING_DEPTH:
        raise ParseError(
            f"Parentheses nested deeper than {MAX_NESTING_DEPTH} levels",
            opening.position,
            opening.text,
        )
    inner = _parse_expr(cursor)

    closing = cursor.peek()
    if not (isinstance(closing, ParenToken) and not closing.is_open):
        raise ParseError("Unmatched opening parenthesis", opening.position, opening.text)

    cursor.advance()
    cursor.depth -= 1
    return Parentheses(inner=inner)


def _parse_primary(cursor: _Cursor) -> Node:
    if cursor.at_end():
        raise ParseError("Unexpected end of expression", cursor.end_position())

    token = cursor.advance()

    if isinstance(token, NumberToken):
        return NumberLiteral(value=token.value)
    if isinstance(token, DiceToken):
        return DiceRoll(count=token.count, sides=token.sides)
    if isinstance(token, ConditionalDiceToken):
        return ConditionalDice(
            count=token.count,
            sides=token.sides,
            operator=token.operator,
            threshold=token.threshold,
        )
    if isinstance(token, RerollDiceToken):
        return RerollDice(
            count=token.count,
            sides=token.sides,
            reroll_type=token.reroll_type,
            condition=token.condition,
            threshold=token.threshold,
        )
    if isinstance(token, ParenToken):
        if token.is_open:
            return _parse_group(cursor, token)
        if cursor.depth == 0:
            raise ParseError("Unmatched closing parenthesis", token.position, token.text)
        raise ParseError("Expected a value before closing parenthesis", token.position, token.text)
    if isinstance(token, OperatorToken):
        raise ParseError(f"Unexpected operator '{token.operator}'", token.position, token.text)

    raise ParseError(f"Unrecognized token '{token.text}'", token.position, token.text)


def parse(tokens: list[Token]) -> Node:
    """Build an AST from tokens using standard arithmetic precedence.

    Every token must be consumed; the first leftover token is reported.
    """

    if not tokens:
        raise ParseError("Empty expression", 0)

    first, last = tokens[0], tokens[-1]
    if isinstance(first, OperatorToken):
        raise ParseError("Expression cannot start with an operator", first.position, first.text)
    if isinstance(last, OperatorToken):
        raise ParseError("Expression cannot end with an operator", last.position, last.text)

    cursor = _Cursor(tokens=list(tokens))
    ast = _parse_expr(cursor)

    leftover = cursor.peek()
    if leftover is not None:
        if isinstance(leftover, ParenToken) and not leftover.is_open:
            raise ParseError("Unmatched closing parenthesis", leftover.position, leftover.text)
        raise ParseError(f"Unexpected token '{leftover.text}'", leftover.position, leftover.text)

    return ast


def left_spine(node: BinaryOp) -> tuple[Node, list[BinaryOp]]:
    """Unwind a left-leaning operator chain.

    Returns the leftmost operand and the operators in evaluation order, so
    `1+2+3` gives `(1, [1+2, (1+2)+3])`. Tree walks loop over this rather
    than recurse down the left side.
    """

    chain: list[BinaryOp] = []
    current: Node = node
    while isinstance(current, BinaryOp):
        chain.append(current)
        current = current.left
    chain.reverse()
    return current, chain


def to_notation(node: Node) -> str:
    """Render an AST back into canonical dice notation."""

    if isinstance(node, NumberLiteral):
        return str(node.value)
    if isinstance(node, DiceRoll):
        return f"{node.count}d{node.sides}"
    if isinstance(node, BinaryOp):
        first, chain = left_spine(node)
        parts = [to_notation(first)]
        for op in chain:
            parts.append(op.operator)
            parts.append(to_notation(op.right))
        return " ".join(parts)
    if isinstance(node, Parentheses):
        return f"({to_notation(node.inner)})"
    if isinstance(node, ConditionalDice):
        return f"{node.count}d{node.sides}{node.operator}{node.threshold}"
    if isinstance(node, RerollDice):
        condition = "" if node.condition == "=" else node.condition
        return f"{node.count}d{node.sides}r{_MARKER_FOR_TYPE[node.reroll_type]}{condition}{node.threshold}"
    raise DiceEvaluationError(f"Unknown node type: {type(node).__name__}")


def count_nodes(node: Node) -> int:
    total = 0
    pending = [node]
    while pending:
        current = pending.pop()
        total += 1
        if isinstance(current, BinaryOp):
            pending.extend((current.left, current.right))
        elif isinstance(current, Parentheses):
            pending.append(current.inner)
    return total


def parse_text(text: str, max_length: int = DEFAULT_MAX_EXPRESSION_LENGTH) -> Node:
    """Tokenize and parse in one step, without any caching."""

    return parse(tokenize(text, max_length))
