import pytest

from mcp_dice_expression.errors import DiceError, ParseError, TokenizationError
from mcp_dice_expression.parser import parse_text


@pytest.mark.parametrize(
    ("text", "prefix"),
    [
        ("+3d6", "[PARSE_ERROR]"),
        ("3d6+", "[PARSE_ERROR]"),
        ("()", "[PARSE_ERROR]"),
        ("(2d6", "[PARSE_ERROR]"),
        ("2d6)", "[PARSE_ERROR]"),
        ("", "[PARSE_ERROR]"),
        ("   ", "[PARSE_ERROR]"),
        ("2d6**3", "[PARSE_ERROR]"),
        ("(2+)", "[PARSE_ERROR]"),
        ("2(3)", "[PARSE_ERROR]"),
        ("0d6", "[VALIDATION_ERROR]"),
        ("2d0", "[VALIDATION_ERROR]"),
        ("1001d6", "[VALIDATION_ERROR]"),
        ("1d10001", "[VALIDATION_ERROR]"),
        ("4d6>7", "[VALIDATION_ERROR]"),
        ("2d6r0", "[VALIDATION_ERROR]"),
        ("d", "[TOKENIZATION_ERROR]"),
        ("3d", "[TOKENIZATION_ERROR]"),
        ("2d6x", "[TOKENIZATION_ERROR]"),
        ("3d6<>4", "[TOKENIZATION_ERROR]"),
        ("2d6ro", "[TOKENIZATION_ERROR]"),
    ],
)
def test_parse_rejections(text, prefix):
    with pytest.raises(DiceError) as exc:
        parse_text(text)
    assert str(exc.value).startswith(prefix)


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("+3d6", "cannot start with an operator"),
        ("3d6+", "cannot end with an operator"),
        ("()", "Empty parenthesis group"),
        ("(2d6", "Unmatched opening parenthesis"),
        ("2d6)", "Unmatched closing parenthesis"),
        ("", "Empty expression"),
    ],
)
def test_parse_error_messages(text, message):
    with pytest.raises(ParseError, match=message):
        parse_text(text)


def test_parse_error_carries_position_of_unmatched_parenthesis():
    with pytest.raises(ParseError) as exc:
        parse_text("1+(2d6")
    assert exc.value.position == 2


def test_leftover_token_is_named():
    with pytest.raises(ParseError) as exc:
        parse_text("2d6(1)")
    assert exc.value.token == "("
    assert exc.value.position == 3


def test_tokenization_error_reports_fragment():
    with pytest.raises(TokenizationError) as exc:
        parse_text("2d6 + x7")
    assert exc.value.position == 4
    assert exc.value.fragment == "x7"


def test_deep_nesting_is_rejected_with_position():
    with pytest.raises(ParseError, match="nested deeper than 50 levels") as exc:
        parse_text("(" * 499 + "1" + ")" * 499)
    assert exc.value.position == 50
    assert exc.value.token == "("
