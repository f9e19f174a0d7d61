"""One trading decision cycle.

observe market -> observe price feed -> indicators -> stats -> risk check
-> (halt | oracle -> parse -> act or skip -> record) -> notify

Every step runs to completion before the next starts. A failing port call
aborts the cycle without touching the ledger; a risk halt skips the oracle.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from kalshi_oracle.config import Config
from kalshi_oracle.errors import KalshiHTTPError, LedgerError, OracleError, PriceFeedError
from kalshi_oracle.models.schemas import (
    Action,
    LedgerResult,
    LedgerRow,
    OrderResult,
    PriceSnapshot,
    TradeDecision,
)
from kalshi_oracle.ports import Exchange, LedgerStore, Notifier, Oracle, PriceFeed
from kalshi_oracle.strategy.context import build_context
from kalshi_oracle.strategy.decision_parser import parse_decision
from kalshi_oracle.strategy.indicators import compute_indicators
from kalshi_oracle.strategy.risk import check_risk
from kalshi_oracle.strategy.stats import compute_stats

logger = logging.getLogger(__name__)

PAYOUT_CENTS = 100
CANDLES_1M = 15
CANDLES_5M = 12

# KalshiAuthError propagates to the caller: signing failures are fatal.
PORT_ERRORS = (KalshiHTTPError, OracleError, PriceFeedError, LedgerError)


class CycleState(str, Enum):
    START = "start"
    OBSERVE_MARKET = "observe_market"
    OBSERVE_PRICE_FEED = "observe_price_feed"
    COMPUTE_INDICATORS = "compute_indicators"
    COMPUTE_STATS = "compute_stats"
    RISK_CHECK = "risk_check"
    HALTED = "halted"
    DECIDE = "decide"
    PARSE_DECISION = "parse_decision"
    ACT = "act"
    SKIP = "skip"
    RECORD_OUTCOME = "record_outcome"
    NOTIFY = "notify"
    ABORTED = "aborted"
    END = "end"


@dataclass
class CycleReport:
    states: List[CycleState] = field(default_factory=lambda: [CycleState.START])
    ticker: Optional[str] = None
    decision: Optional[TradeDecision] = None
    order: Optional[OrderResult] = None
    reason: Optional[str] = None

    def enter(self, state: CycleState) -> None:
        logger.debug("cycle -> %s", state.value)
        self.states.append(state)

    def visited(self, state: CycleState) -> bool:
        return state in self.states

    @property
    def halted(self) -> bool:
        return self.visited(CycleState.HALTED)

    @property
    def aborted(self) -> bool:
        return self.visited(CycleState.ABORTED)

    @property
    def acted(self) -> bool:
        return self.visited(CycleState.ACT)

    @property
    def outcome(self) -> str:
        for state in (CycleState.ABORTED, CycleState.HALTED, CycleState.ACT, CycleState.SKIP):
            if self.visited(state):
                return state.value
        return "incomplete"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def notify(notifier: Notifier, message: str) -> bool:
    """Deliver an alert; a broken notifier never stops the cycle."""
    try:
        return notifier.alert(message)
    except Exception:  # noqa: BLE001 - alert delivery is best effort
        logger.exception("Notifier raised while sending alert")
        return False


def observe_price_feed(price_feed: PriceFeed, symbol: str) -> Optional[PriceSnapshot]:
    candles_1m = price_feed.candles(symbol, "1m", CANDLES_1M)
    candles_5m = price_feed.candles(symbol, "5m", CANDLES_5M)
    spot = price_feed.spot_price(symbol)
    if candles_1m is None or candles_5m is None or spot is None:
        logger.info("Reference price for %s unavailable this cycle", symbol)
        return None
    return PriceSnapshot(symbol=symbol, indicators=compute_indicators(candles_1m, candles_5m, spot))


def settle_pending(exchange: Exchange, ledger: LedgerStore) -> List[LedgerRow]:
    """Settle pending rows whose market has resolved. Returns the rows settled."""
    settled = []
    for row in ledger.fetch_pending():
        market = exchange.get_market(row.ticker)
        if not market.result or market.result.lower() not in ("yes", "no"):
            continue
        won = market.result.upper() == row.side.value
        if won:
            pnl = (PAYOUT_CENTS - row.price_cents) * row.shares
        else:
            pnl = -row.price_cents * row.shares
        ledger.settle(row.id, LedgerResult.WIN if won else LedgerResult.LOSS, pnl)
        settled.append(row)
    return settled


def _entry_order(decision: TradeDecision, balance_cents: int, config: Config) -> Optional[str]:
    """Reason a parsed BUY cannot be placed, or None."""
    if decision.action is not Action.BUY:
        return f"{decision.action.value} without an open position"
    if not 1 <= decision.max_price_cents <= 99:
        return f"price {decision.max_price_cents}¢ outside 1-99¢"
    if decision.max_price_cents * min(decision.shares, config.max_shares) > balance_cents:
        return "order cost exceeds balance"
    return None


def run_cycle(
    exchange: Exchange,
    oracle: Oracle,
    notifier: Notifier,
    price_feed: PriceFeed,
    ledger: LedgerStore,
    config: Config,
    prompt_md: str,
    clock: Callable[[], str] = utc_timestamp,
) -> CycleReport:
    report = CycleReport()
    try:
        _run(report, exchange, oracle, notifier, price_feed, ledger, config, prompt_md, clock)
    except PORT_ERRORS as exc:
        report.enter(CycleState.ABORTED)
        report.reason = f"{type(exc).__name__}: {exc}"
        logger.error("Cycle aborted: %s", report.reason)
        report.enter(CycleState.NOTIFY)
        notify(notifier, f"⚠️ Cycle aborted: {report.reason}")
    report.enter(CycleState.END)
    return report


def _run(
    report: CycleReport,
    exchange: Exchange,
    oracle: Oracle,
    notifier: Notifier,
    price_feed: PriceFeed,
    ledger: LedgerStore,
    config: Config,
    prompt_md: str,
    clock: Callable[[], str],
) -> None:
    report.enter(CycleState.OBSERVE_MARKET)
    for row in settle_pending(exchange, ledger):
        logger.info("Settled ledger row %s on %s", row.id, row.ticker)

    ticker = exchange.find_open_market(config.series_ticker)
    if ticker is None:
        report.reason = f"No open market in {config.series_ticker}"
        logger.info(report.reason)
        report.enter(CycleState.SKIP)
        return
    report.ticker = ticker
    market = exchange.get_market(ticker)
    orderbook = exchange.get_order_book(ticker)
    balance = exchange.get_balance()

    report.enter(CycleState.OBSERVE_PRICE_FEED)
    report.enter(CycleState.COMPUTE_INDICATORS)
    btc_price = observe_price_feed(price_feed, config.btc_symbol)

    report.enter(CycleState.COMPUTE_STATS)
    history = ledger.fetch_all()
    stats = compute_stats(history)

    report.enter(CycleState.RISK_CHECK)
    halt_reason = check_risk(stats, balance, config)
    if halt_reason:
        report.enter(CycleState.HALTED)
        report.reason = halt_reason
        logger.warning("Trading halted: %s", halt_reason)
        report.enter(CycleState.NOTIFY)
        notify(notifier, f"🛑 Trading halted: {halt_reason}")
        return

    context = build_context(
        prompt_md,
        stats,
        history,
        market,
        orderbook,
        btc_price=btc_price,
        last_n=config.last_n_trades,
    )
    position = next((row for row in history if row.ticker == ticker and not row.is_settled), None)

    report.enter(CycleState.DECIDE)
    if position is not None:
        raw = oracle.decide_exit(context, position.side, position.price_cents, position.shares)
    else:
        raw = oracle.decide(context)

    report.enter(CycleState.PARSE_DECISION)
    decision = parse_decision(raw)
    report.decision = decision

    if position is not None:
        _exit(report, decision, position, exchange, notifier, ledger)
    else:
        _enter(report, decision, ticker, balance, exchange, notifier, ledger, config, clock)


def _skip(report: CycleReport, notifier: Notifier, ticker: str, reason: str) -> None:
    report.enter(CycleState.SKIP)
    report.reason = reason
    logger.info("No trade on %s: %s", ticker, reason)
    report.enter(CycleState.NOTIFY)
    notify(notifier, f"⏸ PASS on {ticker}: {reason}")


def _enter(
    report: CycleReport,
    decision: TradeDecision,
    ticker: str,
    balance: int,
    exchange: Exchange,
    notifier: Notifier,
    ledger: LedgerStore,
    config: Config,
    clock: Callable[[], str],
) -> None:
    if not decision.is_actionable():
        _skip(report, notifier, ticker, decision.reasoning)
        return
    blocked = _entry_order(decision, balance, config)
    if blocked:
        _skip(report, notifier, ticker, blocked)
        return

    shares = decision.shares
    if shares > config.max_shares:
        logger.info("Capping %d shares to %d", shares, config.max_shares)
        shares = config.max_shares

    report.enter(CycleState.ACT)
    order = exchange.place_order(ticker, decision.side, shares, decision.max_price_cents, action="buy")
    report.order = order

    report.enter(CycleState.RECORD_OUTCOME)
    if order.status.startswith("rejected") or order.status == "canceled":
        report.reason = f"order {order.status}"
        logger.warning("Order on %s not recorded: %s", ticker, order.status)
    else:
        ledger.append(
            LedgerRow(
                timestamp=clock(),
                ticker=ticker,
                side=decision.side,
                shares=shares,
                price_cents=decision.max_price_cents,
            )
        )

    report.enter(CycleState.NOTIFY)
    notify(
        notifier,
        f"✅ BUY {decision.side.value} x{shares} @ {decision.max_price_cents}¢ on {ticker} "
        f"({order.status})\n{decision.reasoning}",
    )


def _exit(
    report: CycleReport,
    decision: TradeDecision,
    position: LedgerRow,
    exchange: Exchange,
    notifier: Notifier,
    ledger: LedgerStore,
) -> None:
    ticker = position.ticker
    # only SELL closes a position; anything else means hold
    if decision.action is not Action.SELL or decision.max_price_cents is None:
        _skip(report, notifier, ticker, f"holding {position.side.value}: {decision.reasoning}")
        return
    if not 1 <= decision.max_price_cents <= 99:
        _skip(report, notifier, ticker, f"sell price {decision.max_price_cents}¢ outside 1-99¢")
        return

    price = decision.max_price_cents
    report.enter(CycleState.ACT)
    order = exchange.place_order(ticker, position.side, position.shares, price, action="sell")
    report.order = order

    report.enter(CycleState.RECORD_OUTCOME)
    pnl = (price - position.price_cents) * position.shares
    if order.status.startswith("rejected") or order.status == "canceled":
        report.reason = f"order {order.status}"
        logger.warning("Exit on %s not recorded: %s", ticker, order.status)
    else:
        ledger.settle(position.id, LedgerResult.WIN if pnl > 0 else LedgerResult.LOSS, pnl)

    report.enter(CycleState.NOTIFY)
    notify(
        notifier,
        f"💰 SELL {position.side.value} x{position.shares} @ {price}¢ on {ticker} "
        f"({order.status}, {pnl:+d}¢)\n{decision.reasoning}",
    )
