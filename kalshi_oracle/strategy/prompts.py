"""Markdown rendering of a decision context for the oracle."""
from __future__ import annotations

from typing import Optional, Sequence

from kalshi_oracle.models.schemas import (
    DecisionContext,
    ExitContext,
    LedgerRow,
    MarketState,
    OrderBookLevel,
    PriceSnapshot,
    Stats,
)

ORDERBOOK_DEPTH = 5


def _opt(value: Optional[int]) -> str:
    return "n/a" if value is None else f"{value}¢"


def format_stats(s: Stats) -> str:
    return (
        f"Trades: {s.total_trades} | W/L: {s.wins}/{s.losses} | Win rate: {s.win_rate * 100:.1f}% | "
        f"P&L: {s.total_pnl_cents}¢ | Today: {s.today_pnl_cents}¢ | Streak: {s.current_streak} | "
        f"Drawdown: {s.max_drawdown_cents}¢"
    )


def format_ledger(trades: Sequence[LedgerRow]) -> str:
    if not trades:
        return "No trades yet."
    return "\n".join(
        f"{t.timestamp} | {t.ticker} | {t.side.value} | {t.shares}x @ {t.price_cents}¢ | "
        f"{t.result.value} | {t.pnl_cents}¢"
        for t in trades
    )


def format_market(m: MarketState) -> str:
    expiry = m.expiration_time.isoformat() if m.expiration_time else "unknown"
    return (
        f"Ticker: {m.ticker} | Title: {m.title} | "
        f"Yes bid/ask: {_opt(m.yes_bid)}/{_opt(m.yes_ask)} | "
        f"No bid/ask: {_opt(m.no_bid)}/{_opt(m.no_ask)} | Last: {_opt(m.last_price)} | "
        f"Vol: {m.volume} | 24h Vol: {m.volume_24h} | OI: {m.open_interest} | "
        f"Expiry: {expiry} ({m.minutes_to_expiry:.1f}min)"
    )


def format_ob_side(levels: Sequence[OrderBookLevel]) -> str:
    if not levels:
        return "empty"
    return ", ".join(f"{price}¢ x{qty}" for price, qty in levels[:ORDERBOOK_DEPTH])


def format_btc_price(snap: PriceSnapshot) -> str:
    ind = snap.indicators
    text = (
        f"Spot: ${ind.spot_price:.2f} | 15m change: {ind.pct_change_15m:+.3f}% | "
        f"1h change: {ind.pct_change_1h:+.3f}% | Momentum: {ind.momentum.value}\n"
        f"SMA(15x1m): ${ind.sma_15m:.2f} | Price vs SMA: {ind.price_vs_sma} | "
        f"1m volatility: {ind.volatility_1m:.4f}%"
    )
    if ind.last_3_candles:
        candles = " | ".join(
            f"O:{c.open:.0f} H:{c.high:.0f} L:{c.low:.0f} C:{c.close:.0f} V:{c.volume:.1f}"
            for c in ind.last_3_candles
        )
        text += f"\nLast 3 candles (1m): {candles}"
    return text


def render_entry_prompt(ctx: DecisionContext) -> str:
    if ctx.btc_price is not None:
        btc = f"\n\n---\n## BTC PRICE (Binance {ctx.btc_price.symbol})\n{format_btc_price(ctx.btc_price)}"
    else:
        btc = "\n\n---\n## BTC PRICE\nUnavailable this cycle."

    return (
        f"{ctx.prompt_md}\n\n---\n## STATS\n{format_stats(ctx.stats)}"
        f"\n\n---\n## LAST {len(ctx.last_n_trades)} TRADES\n{format_ledger(ctx.last_n_trades)}"
        f"\n\n---\n## MARKET\n{format_market(ctx.market)}"
        f"\n\n---\n## ORDERBOOK\nYes bids: {format_ob_side(ctx.orderbook.yes)}"
        f"\nNo bids: {format_ob_side(ctx.orderbook.no)}{btc}"
    )


def render_exit_prompt(ctx: ExitContext) -> str:
    side = ctx.entry_side.value
    if ctx.btc_price is not None:
        btc = f"\n\n## BTC PRICE\n{format_btc_price(ctx.btc_price)}"
    else:
        btc = "\n\n## BTC PRICE\nUnavailable."

    return (
        f"You hold {ctx.shares}x {side} @ {ctx.entry_price_cents}¢ on {ctx.market.ticker}.\n"
        f"The contract expires in {ctx.market.minutes_to_expiry:.1f} minutes.\n\n"
        f"## CURRENT MARKET\n{format_market(ctx.market)}\n\n"
        f"## ORDERBOOK\nYes bids: {format_ob_side(ctx.orderbook.yes)}\n"
        f"No bids: {format_ob_side(ctx.orderbook.no)}{btc}\n\n"
        "## DECISION\n"
        f"Should you SELL your {side} contracts to lock in profit/cut loss, or HOLD to expiry?\n"
        f"If SELL, set max_price_cents to the price you'd sell your {side} at "
        f"(look at the {side} bid side of the orderbook).\n"
        f'Respond with JSON: {{"action": "SELL" or "PASS", "shares": {ctx.shares}, '
        f'"max_price_cents": <sell price for your {side} contracts>, "reasoning": "..."}}\n'
        "SELL = close now. PASS = hold to expiry."
    )
