import pytest

from mcp_dice_expression import parser, tokenizer
from mcp_dice_expression.config import EngineConfig
from mcp_dice_expression.engine import DiceEngine
from mcp_dice_expression.errors import DiceError, DiceValidationError, MaxRerollsExceededError
from mcp_dice_expression.models import DiceRoll, ValueRange
from mcp_dice_expression.random_source import sequence_source


@pytest.fixture
def tokenize_calls(monkeypatch):
    calls = []
    original = tokenizer.tokenize

    def counting(text, *args, **kwargs):
        calls.append(text)
        return original(text, *args, **kwargs)

    monkeypatch.setattr(tokenizer, "tokenize", counting)
    return calls


def test_evaluate_midpoint():
    engine = DiceEngine(random_source=sequence_source([0.5]))
    assert engine.evaluate("3d6") == 12
    assert engine.evaluate("(2d6+3)*2") == 22


def test_cached_expression_is_tokenized_and_parsed_once(tokenize_calls, monkeypatch):
    parse_calls = []
    original_parse = parser.parse

    def counting_parse(tokens):
        parse_calls.append(tokens)
        return original_parse(tokens)

    monkeypatch.setattr(parser, "parse", counting_parse)

    engine = DiceEngine(EngineConfig(seed=3))
    for _ in range(5):
        engine.evaluate("3d6+2")

    assert tokenize_calls == ["3d6+2"]
    assert len(parse_calls) == 1
    assert engine.cache_stats()["hits"] == 4


def test_without_caching_every_call_tokenizes(tokenize_calls):
    engine = DiceEngine(EngineConfig(enable_caching=False, seed=3))
    for _ in range(3):
        engine.evaluate("3d6+2")
    assert len(tokenize_calls) == 3
    assert engine.cache_stats()["size"] == 0


def test_cache_is_keyed_by_exact_text(tokenize_calls):
    engine = DiceEngine(EngineConfig(seed=3))
    engine.evaluate("3d6+2")
    engine.evaluate("3d6 + 2")
    assert len(tokenize_calls) == 2


def test_cache_capacity_from_config():
    engine = DiceEngine(EngineConfig(cache_size=2, seed=1))
    for text in ("1d4", "1d6", "1d8"):
        engine.parse(text)
    assert engine.cache_stats()["size"] == 2

    engine.clear_cache()
    assert engine.cache_stats()["size"] == 0


def test_overlong_expression_is_rejected_before_tokenizing(tokenize_calls):
    engine = DiceEngine()
    with pytest.raises(DiceValidationError):
        engine.evaluate("1" * 1001)
    assert tokenize_calls == []


def test_max_expression_length_is_configurable(tokenize_calls):
    engine = DiceEngine(EngineConfig(max_expression_length=4))
    assert engine.validate("1d20") is True
    assert engine.validate("1d20+1") is False
    assert tokenize_calls == ["1d20"]


def test_seeded_config_replays_identically():
    engine = DiceEngine(EngineConfig(seed=1234))
    first = engine.evaluate_detailed("10d20")
    second = engine.evaluate_detailed("10d20")
    assert first.rolls == second.rolls
    assert first.value == second.value


def test_injected_source_keeps_advancing():
    engine = DiceEngine(random_source=sequence_source([0.0, 0.5]))
    assert engine.evaluate("1d6") == 1
    assert engine.evaluate("1d6") == 4


def test_evaluate_detailed():
    engine = DiceEngine(random_source=sequence_source([0.5]))
    result = engine.evaluate_detailed("2d6+3")
    assert result.expression == "2d6+3"
    assert result.value == 11
    assert result.rolls == [4, 4]
    assert (result.min_value, result.max_value) == (5, 15)
    assert result.execution_time >= 0
    assert result.metrics.dice_rolled == 2


def test_range():
    engine = DiceEngine()
    assert engine.range("(2d6+3)*2") == ValueRange(10, 30)
    assert engine.range("3d6-1") == ValueRange(2, 17)


def test_range_uses_configured_explode_multiplier():
    engine = DiceEngine(EngineConfig(explode_multiplier=2))
    assert engine.range("1d6r6") == ValueRange(1, 12)


def test_max_rerolls_from_config():
    engine = DiceEngine(EngineConfig(max_rerolls=3))
    with pytest.raises(MaxRerollsExceededError) as exc:
        engine.evaluate("1d1r1")
    assert exc.value.limit == 3


@pytest.mark.parametrize("text", ["3d6", "(2d6+3)*2", "4d6>3", "2d6r1", "d20 + 5"])
def test_validate_accepts(text):
    engine = DiceEngine()
    assert engine.validate(text) is True
    assert engine.get_validation_errors(text) == []


@pytest.mark.parametrize(
    ("text", "prefix"),
    [
        ("+3d6", "[PARSE_ERROR]"),
        ("0d6", "[VALIDATION_ERROR]"),
        ("3d", "[TOKENIZATION_ERROR]"),
        ("1" * 1001, "[VALIDATION_ERROR]"),
    ],
)
def test_validation_errors_are_returned_not_raised(text, prefix):
    engine = DiceEngine()
    assert engine.validate(text) is False
    (message,) = engine.get_validation_errors(text)
    assert message.startswith(prefix)


def test_parse_returns_cached_tree():
    engine = DiceEngine()
    assert engine.parse("d8") == DiceRoll(1, 8)
    assert engine.parse("d8") is engine.parse("d8")


def test_errors_propagate_from_evaluate():
    engine = DiceEngine()
    with pytest.raises(DiceError):
        engine.evaluate("(2d6")


def test_config_defaults():
    config = EngineConfig()
    assert config.max_rerolls == 100
    assert config.max_expression_length == 1000
    assert config.enable_caching is True
    assert config.cache_size == 100
    assert config.seed is None


def test_config_from_env():
    config = EngineConfig.from_env(
        {
            "DICE_MAX_REROLLS": "5",
            "DICE_MAX_EXPRESSION_LENGTH": "50",
            "DICE_ENABLE_CACHING": "off",
            "DICE_CACHE_SIZE": "7",
            "DICE_SEED": "42",
            "UNRELATED": "x",
        }
    )
    assert config == EngineConfig(
        max_rerolls=5,
        max_expression_length=50,
        enable_caching=False,
        cache_size=7,
        seed=42,
    )


@pytest.mark.parametrize(
    "environ",
    [
        {"DICE_MAX_REROLLS": "many"},
        {"DICE_MAX_REROLLS": "0"},
        {"DICE_ENABLE_CACHING": "maybe"},
    ],
)
def test_config_from_env_rejects_bad_values(environ):
    with pytest.raises(DiceValidationError):
        EngineConfig.from_env(environ)


def test_deep_nesting_is_a_validation_error():
    engine = DiceEngine()
    text = "(" * 499 + "1" + ")" * 499
    assert engine.validate(text) is False
    (message,) = engine.get_validation_errors(text)
    assert message.startswith("[PARSE_ERROR]")
    with pytest.raises(DiceError):
        engine.evaluate(text)


def test_long_chain_through_every_entry_point():
    engine = DiceEngine(random_source=sequence_source([0.5]))
    text = "+".join(["1"] * 500)
    assert engine.validate(text) is True
    assert engine.evaluate(text) == 500
    assert engine.range(text) == ValueRange(500, 500)
    assert engine.evaluate_detailed(text).metrics.nodes_evaluated == 999
    assert engine.explain(text).endswith("Final Result: 500")


def test_execution_budget_comes_from_config():
    engine = DiceEngine(EngineConfig(max_execution_time=25))
    assert engine._evaluator().max_execution_time == 25
