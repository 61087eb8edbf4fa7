from __future__ import annotations


class DiceError(ValueError):
    """User-facing expression errors. The message always starts with a stable code."""

    code = "DICE_ERROR"

    def __init__(self, message: str) -> None:
        self.detail = message
        super().__init__(f"[{self.code}] {message}")


class TokenizationError(DiceError):
    code = "TOKENIZATION_ERROR"

    def __init__(self, message: str, position: int, fragment: str) -> None:
        self.position = position
        self.fragment = fragment
        super().__init__(f"{message} at position {position}: '{fragment}'")


class ParseError(DiceError):
    code = "PARSE_ERROR"

    def __init__(self, message: str, position: int, token: str | None = None) -> None:
        self.position = position
        self.token = token
        super().__init__(f"{message} (position {position})")


class DiceValidationError(DiceError):
    """Syntactically fine, semantically rejected (limits, zero dice, bad thresholds)."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        super().__init__(message)


class DiceEvaluationError(DiceError):
    code = "EVALUATION_ERROR"


class MaxRerollsExceededError(DiceEvaluationError):
    code = "MAX_REROLLS_EXCEEDED"

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Maximum rerolls exceeded ({limit}) for a single die")
