import importlib

import pytest

from mcp_dice_expression import dice
from mcp_dice_expression.config import EngineConfig
from mcp_dice_expression.dice import roll_from_text
from mcp_dice_expression.engine import DiceEngine
from mcp_dice_expression.errors import DiceError, DiceValidationError


def test_roll_record_shape():
    record = roll_from_text("2d6+3", seed=42)

    assert record["input"] == "2d6+3"
    assert record["normalized_expression"] == "2d6 + 3"
    assert record["rng"] == {"source": "random.Random", "seed": 42}
    assert (record["min"], record["max"]) == (5, 15)
    assert record["total"] == sum(record["rolls"]) + 3
    assert len(record["rolls"]) == 2
    assert record["terms"] == [
        {
            "type": "dice_roll",
            "notation": "2d6",
            "rolls": record["rolls"],
            "subtotal": sum(record["rolls"]),
            "details": record["terms"][0]["details"],
        }
    ]
    assert record["timestamp"].endswith("Z")
    assert record["explanation"].endswith(f"Final Result: {record['total']}")


def test_same_seed_replays_same_roll():
    a = roll_from_text("4d6>3 + 2d8r8", seed=7)
    b = roll_from_text("4d6>3 + 2d8r8", seed=7)

    assert a["rolls"] == b["rolls"]
    assert a["total"] == b["total"]
    assert a["request_id"] != b["request_id"]


def test_seed_is_generated_when_missing():
    record = roll_from_text("d20")
    assert isinstance(record["rng"]["seed"], int)
    replay = roll_from_text("d20", seed=record["rng"]["seed"])
    assert replay["total"] == record["total"]


def test_custom_engine_config_is_honoured():
    engine = DiceEngine(EngineConfig(max_expression_length=3))
    with pytest.raises(DiceError) as exc:
        roll_from_text("1d20", seed=1, engine=engine)
    assert str(exc.value).startswith("[VALIDATION_ERROR]")


@pytest.mark.parametrize(
    ("text", "prefix"),
    [
        ("", "[PARSE_ERROR]"),
        ("2d6 +", "[PARSE_ERROR]"),
        ("roll a d20", "[TOKENIZATION_ERROR]"),
        ("0d6", "[VALIDATION_ERROR]"),
        ("6/(1d1-1)", "[EVALUATION_ERROR]"),
    ],
)
def test_invalid_input_raises(text, prefix):
    with pytest.raises(DiceError) as exc:
        roll_from_text(text, seed=1)
    assert str(exc.value).startswith(prefix)


def test_shared_engine_reads_environment_on_first_use(monkeypatch):
    monkeypatch.setattr(dice, "_ENGINE", None)
    monkeypatch.setenv("DICE_MAX_REROLLS", "many")
    with pytest.raises(DiceValidationError):
        dice.get_engine()

    monkeypatch.setenv("DICE_MAX_REROLLS", "7")
    engine = dice.get_engine()
    assert engine.config.max_rerolls == 7
    assert dice.get_engine() is engine


def test_import_does_not_read_environment(monkeypatch):
    monkeypatch.setenv("DICE_MAX_REROLLS", "many")
    importlib.reload(dice)
    assert dice._ENGINE is None
