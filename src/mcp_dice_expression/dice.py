from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone
from typing import Any

from .config import EngineConfig
from .engine import DiceEngine
from .explanation import Step, StepType
from .parser import to_notation
from .random_source import seeded_source


_ENGINE: DiceEngine | None = None

_TERM_STEPS = {StepType.DICE_ROLL, StepType.CONDITIONAL, StepType.REROLL}


def get_engine() -> DiceEngine:
    """Shared engine, configured from DICE_* variables on first use."""

    global _ENGINE
    if _ENGINE is None:
        _ENGINE = DiceEngine(EngineConfig.from_env())
    return _ENGINE


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _term_record(step: Step) -> dict[str, Any]:
    record: dict[str, Any] = {
        "type": step.operation.value,
        "notation": to_notation(step.node) if step.node is not None else None,
        "rolls": step.rolls or [],
        "subtotal": step.value,
    }
    if step.details:
        record["details"] = step.details
    return record


def roll_from_text(text: str, seed: int | None = None, engine: DiceEngine | None = None) -> dict[str, Any]:
    """Parse, evaluate and audit one dice expression. Raises DiceError for invalid input.

    Rolls are drawn from a seeded source, so passing the returned
    `rng.seed` back in replays the exact same dice.
    """

    engine = engine or get_engine()
    if seed is None:
        seed = secrets.randbits(63)

    explained = engine.evaluate_with_explanation(text, random_source=seeded_source(seed))
    result = explained.result
    explanation = explained.explanation

    return {
        "request_id": uuid.uuid4().hex,
        "timestamp": _now_utc_iso(),
        "input": text,
        "normalized_expression": to_notation(engine.parse(text)),
        "rng": {
            "source": "random.Random",
            "seed": seed,
        },
        "terms": [_term_record(s) for s in explanation.steps if s.operation in _TERM_STEPS],
        "rolls": result.rolls,
        "min": result.min_value,
        "max": result.max_value,
        "total": result.value,
        "explanation": explanation.to_text(),
    }
