from __future__ import annotations

import re

from .config import DEFAULT_MAX_EXPRESSION_LENGTH
from .errors import DiceValidationError, TokenizationError
from .models import (
    MAX_DICE_COUNT,
    MAX_DICE_SIDES,
    REROLL_MARKERS,
    ConditionalDiceToken,
    DiceToken,
    NumberToken,
    OperatorToken,
    ParenToken,
    RerollDiceToken,
    Token,
)


_WHITESPACE_RE = re.compile(r"\s+")

# Order matters: the most specific dice forms must be tried first.
_CONDITIONAL_RE = re.compile(
    r"(?P<count>\d*)[dD](?P<sides>\d+)(?P<op>>=|<=|==|[<>=])(?P<threshold>\d+)"
)
_REROLL_RE = re.compile(
    r"(?P<count>\d*)[dD](?P<sides>\d+)r(?P<marker>[or]?)(?P<op>>=|<=|[<>=])?(?P<threshold>\d+)"
)
_DICE_RE = re.compile(r"(?P<count>\d*)[dD](?P<sides>\d+)")
_OPERATOR_RE = re.compile(r"[+\-*/]")
_PAREN_RE = re.compile(r"[()]")
_NUMBER_RE = re.compile(r"\d+")


def check_length(text: str, max_length: int = DEFAULT_MAX_EXPRESSION_LENGTH) -> None:
    """Reject oversized input before any pattern matching runs."""

    if len(text) > max_length:
        raise DiceValidationError(
            f"Expression too long ({len(text)} characters, maximum {max_length})", position=0
        )


def strip_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub("", text)


def _dice_shape(m: re.Match[str], position: int) -> tuple[int, int]:
    count_str = m.group("count")
    count = int(count_str) if count_str else 1
    sides = int(m.group("sides"))

    if count <= 0:
        raise DiceValidationError(f"Dice count must be a positive integer, got {count}", position=position)
    if sides <= 0:
        raise DiceValidationError(f"Dice sides must be a positive integer, got {sides}", position=position)
    if count > MAX_DICE_COUNT:
        raise DiceValidationError(f"Too many dice ({count}, maximum {MAX_DICE_COUNT})", position=position)
    if sides > MAX_DICE_SIDES:
        raise DiceValidationError(f"Too many sides ({sides}, maximum {MAX_DICE_SIDES})", position=position)
    return count, sides


def _checked_threshold(m: re.Match[str], sides: int, position: int) -> int:
    threshold = int(m.group("threshold"))
    if threshold < 1 or threshold > sides:
        raise DiceValidationError(
            f"Threshold {threshold} must be between 1 and {sides}", position=position
        )
    return threshold


def _next_token(source: str, pos: int) -> Token | None:
    m = _CONDITIONAL_RE.match(source, pos)
    if m:
        count, sides = _dice_shape(m, pos)
        return ConditionalDiceToken(
            text=m.group(0),
            position=pos,
            count=count,
            sides=sides,
            operator=m.group("op"),
            threshold=_checked_threshold(m, sides, pos),
        )

    m = _REROLL_RE.match(source, pos)
    if m:
        count, sides = _dice_shape(m, pos)
        return RerollDiceToken(
            text=m.group(0),
            position=pos,
            count=count,
            sides=sides,
            reroll_type=REROLL_MARKERS[m.group("marker")],
            condition=m.group("op") or "=",
            threshold=_checked_threshold(m, sides, pos),
        )

    m = _DICE_RE.match(source, pos)
    if m:
        count, sides = _dice_shape(m, pos)
        return DiceToken(text=m.group(0), position=pos, count=count, sides=sides)

    m = _OPERATOR_RE.match(source, pos)
    if m:
        return OperatorToken(text=m.group(0), position=pos, operator=m.group(0))

    m = _PAREN_RE.match(source, pos)
    if m:
        return ParenToken(text=m.group(0), position=pos, is_open=m.group(0) == "(")

    m = _NUMBER_RE.match(source, pos)
    if m:
        return NumberToken(text=m.group(0), position=pos, value=int(m.group(0)))

    return None


def tokenize(text: str, max_length: int = DEFAULT_MAX_EXPRESSION_LENGTH) -> list[Token]:
    """Scan an expression into tokens.

    Whitespace is removed first, so token positions index into the stripped
    text and joining every token's text reproduces it exactly.
    """

    check_length(text, max_length)
    source = strip_whitespace(text)

    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        token = _next_token(source, pos)
        if token is None:
            raise TokenizationError("Invalid dice expression syntax", pos, source[pos:])
        tokens.append(token)
        pos += token.length

    return tokens
