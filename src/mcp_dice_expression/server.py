from __future__ import annotations

import logging
import os
import sys
from typing import Literal

from mcp.server.fastmcp import FastMCP

from .dice import get_engine, roll_from_text
from .errors import DiceError


logger = logging.getLogger(__name__)

mcp = FastMCP("mcp-dice-expression")


@mcp.tool()
def roll_dice(text: str, seed: int | None = None):
    """Roll a dice expression such as '3d6+5', '(2d6+3)*2', '4d6>3' or '2d6r1'.

    Input: text (string), optional seed (integer) to replay an earlier roll
    Output: structured JSON with audit details, min/max bounds and explanation

    Raises a hard error (exception) on invalid input.
    """

    try:
        return roll_from_text(text, seed=seed)
    except DiceError as e:
        # Fail-fast: surface stable error codes in the message.
        raise ValueError(str(e)) from None


@mcp.tool()
def explain_roll(text: str, fmt: Literal["text", "markdown"] = "markdown") -> str:
    """Roll a dice expression and return a step-by-step explanation."""

    try:
        return get_engine().explain(text, fmt=fmt)
    except DiceError as e:
        raise ValueError(str(e)) from None


@mcp.tool()
def dice_range(text: str) -> dict[str, int]:
    """Return the minimum and maximum possible values without rolling."""

    try:
        bounds = get_engine().range(text)
    except DiceError as e:
        raise ValueError(str(e)) from None
    return {"min": bounds.min, "max": bounds.max}


@mcp.tool()
def validate_dice(text: str) -> dict[str, object]:
    """Check an expression without rolling. Never raises for bad input."""

    errors = get_engine().get_validation_errors(text)
    return {"valid": not errors, "errors": errors}


def run() -> None:
    # stdout carries the stdio transport, so logs go to stderr.
    logging.basicConfig(
        stream=sys.stderr,
        level=os.environ.get("DICE_LOG_LEVEL", "WARNING").upper(),
        format="[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
    )
    logger.info("Starting mcp-dice-expression over stdio")
    mcp.run()


if __name__ == "__main__":
    run()
