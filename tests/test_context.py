from datetime import datetime, timezone

import pydantic
import pytest

from kalshi_oracle.models.schemas import (
    Candle,
    LedgerRow,
    MarketState,
    OrderBook,
    PriceSnapshot,
    Side,
    Stats,
)
from kalshi_oracle.strategy.context import build_context, build_exit_context
from kalshi_oracle.strategy.indicators import compute_indicators
from kalshi_oracle.strategy.prompts import format_ob_side, render_entry_prompt, render_exit_prompt


def _ledger(n):
    return [
        LedgerRow(timestamp=f"2024-01-01T00:{i:02d}:00Z", ticker=f"M{i}", side="YES", shares=1, price_cents=50)
        for i in range(n)
    ]


def _market():
    return MarketState(ticker="KXBTC15M-T", title="BTC up?", yes_bid=40, minutes_to_expiry=-0.5)


def test_context_keeps_last_n_rows():
    ctx = build_context("P", Stats(), _ledger(30), _market(), OrderBook(), last_n=20)
    assert len(ctx.last_n_trades) == 20
    assert ctx.last_n_trades[0].ticker == "M10"
    assert ctx.last_n_trades[-1].ticker == "M29"

    assert build_context("P", Stats(), _ledger(3), _market(), OrderBook(), last_n=0).last_n_trades == ()


def test_context_is_frozen():
    ctx = build_context("P", Stats(), [], _market(), OrderBook())
    with pytest.raises(pydantic.ValidationError):
        ctx.prompt_md = "changed"


def test_entry_prompt_marks_unavailable_parts():
    ctx = build_context("SYSTEM PROMPT", Stats(), [], _market(), OrderBook())
    prompt = render_entry_prompt(ctx)
    assert prompt.startswith("SYSTEM PROMPT\n\n---\n## STATS\n")
    assert "## LAST 0 TRADES\nNo trades yet." in prompt
    assert "Yes bids: empty\nNo bids: empty" in prompt
    assert "Yes bid/ask: 40¢/n/a" in prompt
    assert "(-0.5min)" in prompt
    assert prompt.endswith("## BTC PRICE\nUnavailable this cycle.")


def test_entry_prompt_with_btc_snapshot():
    candles = [
        Candle(ts=datetime(2024, 1, 1, 0, i, tzinfo=timezone.utc), open=100, high=101, low=99, close=100 + i, volume=2)
        for i in range(4)
    ]
    snap = PriceSnapshot(symbol="BTCUSDT", indicators=compute_indicators(candles, candles, 104.0))
    ctx = build_context("P", Stats(), [], _market(), OrderBook(), btc_price=snap)
    prompt = render_entry_prompt(ctx)
    assert "## BTC PRICE (Binance BTCUSDT)" in prompt
    assert "Momentum: UP" in prompt
    assert "Last 3 candles (1m): O:100 H:101 L:99 C:101 V:2.0" in prompt


def test_orderbook_shows_top_five():
    levels = tuple((90 - i, i + 1) for i in range(8))
    assert format_ob_side(levels) == "90¢ x1, 89¢ x2, 88¢ x3, 87¢ x4, 86¢ x5"


def test_exit_context_carries_position():
    base = build_context("P", Stats(), _ledger(2), _market(), OrderBook(yes=((41, 3),)))
    exit_ctx = build_exit_context(base, Side.NO, 55, 2)
    assert exit_ctx.market == base.market
    assert exit_ctx.last_n_trades == base.last_n_trades
    assert (exit_ctx.entry_side, exit_ctx.entry_price_cents, exit_ctx.shares) == (Side.NO, 55, 2)

    prompt = render_exit_prompt(exit_ctx)
    assert prompt.startswith("You hold 2x NO @ 55¢ on KXBTC15M-T.")
    assert "Yes bids: 41¢ x3" in prompt
    assert "SELL = close now. PASS = hold to expiry." in prompt
