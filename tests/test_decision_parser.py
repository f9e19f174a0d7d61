import pytest

from kalshi_oracle.models.schemas import Action, Side, TradeDecision
from kalshi_oracle.strategy.decision_parser import extract_json, parse_decision

BARE = '{"action": "BUY", "side": "YES", "shares": 3, "max_price_cents": 42, "reasoning": "momentum up"}'


def test_bare_object():
    decision = parse_decision(BARE)
    assert decision.action is Action.BUY
    assert decision.side is Side.YES
    assert decision.shares == 3
    assert decision.max_price_cents == 42
    assert decision.is_actionable()


@pytest.mark.parametrize(
    "wrapped",
    [
        f"Here is my call:\n```json\n{BARE}\n```\nGood luck.",
        f"```json\n{BARE}",
        f"   \n{BARE}\n  ",
        f"After weighing the orderbook I decided {BARE} and that's final.",
    ],
)
def test_wrapped_object_matches_bare(wrapped):
    assert parse_decision(wrapped) == parse_decision(BARE)


def test_no_braces_defaults_to_pass():
    decision = parse_decision("I cannot decide right now")
    assert decision == TradeDecision(action=Action.PASS, reasoning="Failed to parse AI response")
    assert decision.side is None
    assert decision.shares is None
    assert decision.max_price_cents is None


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "{not json at all}",
        '```json\n{"action": "HOLD", "reasoning": "?"}\n```',
        '{"side": "YES", "reasoning": "missing action"}',
        '{"action": "BUY", "shares": -2, "reasoning": "negative"}',
        '{"action": "BUY", "side": "YES", "shares": true, "max_price_cents": 40, "reasoning": "bool"}',
        '{"action": "BUY", "side": "YES", "shares": "3", "max_price_cents": 40, "reasoning": "string"}',
        '{"action": "BUY", "side": "YES", "shares": 2, "max_price_cents": 2.0, "reasoning": "float"}',
        "} backwards {",
        "[1, 2, 3]",
    ],
)
def test_malformed_input_is_pass(raw):
    assert parse_decision(raw) == TradeDecision.failed()


def test_action_and_side_are_case_insensitive():
    decision = parse_decision('{"action": "sell", "side": "no", "shares": 1, "max_price_cents": 60, "reasoning": "x"}')
    assert decision.action is Action.SELL
    assert decision.side is Side.NO


def test_pass_without_optional_fields():
    decision = parse_decision('{"action": "PASS", "reasoning": "spread too wide"}')
    assert decision.action is Action.PASS
    assert decision.reasoning == "spread too wide"
    assert not decision.is_actionable()


def test_buy_missing_fields_is_parsed_but_not_actionable():
    decision = parse_decision('{"action": "BUY", "side": "YES", "reasoning": "forgot size"}')
    assert decision.action is Action.BUY
    assert not decision.is_actionable()


def test_fence_takes_priority_over_earlier_braces():
    raw = 'Context {ignored}\n```json\n{"action": "PASS", "reasoning": "fenced"}\n```'
    assert extract_json(raw) == '{"action": "PASS", "reasoning": "fenced"}'
    assert parse_decision(raw).reasoning == "fenced"


def test_malformed_output_logs_warning(caplog):
    with caplog.at_level("WARNING"):
        parse_decision("nothing here")
    assert "defaulting to PASS" in caplog.text
