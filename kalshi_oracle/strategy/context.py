from __future__ import annotations

from typing import Optional, Sequence

from kalshi_oracle.models.schemas import (
    DecisionContext,
    ExitContext,
    LedgerRow,
    MarketState,
    OrderBook,
    PriceSnapshot,
    Side,
    Stats,
)


def _tail(ledger: Sequence[LedgerRow], last_n: int) -> tuple:
    if last_n <= 0:
        return ()
    return tuple(ledger[-last_n:])


def build_context(
    prompt_md: str,
    stats: Stats,
    ledger: Sequence[LedgerRow],
    market: MarketState,
    orderbook: OrderBook,
    btc_price: Optional[PriceSnapshot] = None,
    last_n: int = 20,
) -> DecisionContext:
    """Assemble the oracle's view of this cycle from already-fetched parts."""
    return DecisionContext(
        prompt_md=prompt_md,
        stats=stats,
        last_n_trades=_tail(ledger, last_n),
        market=market,
        orderbook=orderbook,
        btc_price=btc_price,
    )


def build_exit_context(
    base: DecisionContext,
    entry_side: Side,
    entry_price_cents: int,
    shares: int,
) -> ExitContext:
    return ExitContext(
        prompt_md=base.prompt_md,
        stats=base.stats,
        last_n_trades=base.last_n_trades,
        market=base.market,
        orderbook=base.orderbook,
        btc_price=base.btc_price,
        entry_side=entry_side,
        entry_price_cents=entry_price_cents,
        shares=shares,
    )
