from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from kalshi_oracle.data.sqlite_store import SQLiteLedger
from kalshi_oracle.models.schemas import MarketState, OrderBook, OrderResult, Side
from kalshi_oracle.ports import Exchange

logger = logging.getLogger(__name__)

PAYOUT_CENTS = 100


@dataclass
class Position:
    ticker: str
    side: Side
    entry_price_cents: int
    shares: int
    opened_at: datetime

    def cost(self) -> int:
        return self.entry_price_cents * self.shares


def _parse_ts(timestamp: str) -> datetime:
    return datetime.fromisoformat(timestamp.replace("Z", "+00:00"))


class PaperExchange(Exchange):
    """Dry-run exchange: market data from a real exchange, fills simulated.

    Buys fill at the limit price if the bankroll covers them; sells close the
    held position at the limit price. Positions in markets that have resolved
    pay out 100¢ per winning contract the next time the balance is read.

    The bankroll lives in the ledger database and open positions are rebuilt
    from its pending rows, so a restarted process picks up where the last one
    stopped.
    """

    def __init__(self, data_source: Exchange, store: SQLiteLedger, starting_bankroll_cents: int) -> None:
        if starting_bankroll_cents <= 0:
            raise ValueError("starting_bankroll_cents must be positive")
        self.data_source = data_source
        self.store = store
        self.store.ensure_bankroll_initialized(starting_bankroll_cents)
        self.positions: Dict[str, Position] = {}
        self.order_log: List[Tuple[OrderResult, str]] = []
        self._load_positions()

    @property
    def bankroll_cents(self) -> int:
        return self.store.get_latest_bankroll()

    @bankroll_cents.setter
    def bankroll_cents(self, value: int) -> None:
        self.store.record_bankroll(value)

    def _load_positions(self) -> None:
        for row in self.store.fetch_pending():
            self.positions[row.ticker] = Position(
                ticker=row.ticker,
                side=row.side,
                entry_price_cents=row.price_cents,
                shares=row.shares,
                opened_at=_parse_ts(row.timestamp),
            )
        if self.positions:
            logger.info("Restored %d open paper position(s)", len(self.positions))

    def find_open_market(self, series_ticker: str) -> Optional[str]:
        return self.data_source.find_open_market(series_ticker)

    def get_market(self, ticker: str) -> MarketState:
        return self.data_source.get_market(ticker)

    def get_order_book(self, ticker: str) -> OrderBook:
        return self.data_source.get_order_book(ticker)

    def get_balance(self) -> int:
        self._settle_resolved()
        return self.bankroll_cents

    def _settle_resolved(self) -> None:
        for ticker in list(self.positions):
            market = self.data_source.get_market(ticker)
            if not market.result:
                continue
            position = self.positions.pop(ticker)
            won = market.result.upper() == position.side.value
            payout = PAYOUT_CENTS * position.shares if won else 0
            self.bankroll_cents += payout
            logger.info(
                "Paper position %s %s settled %s: payout %d¢",
                ticker, position.side.value, market.result, payout,
            )

    def can_execute(self, ticker: str, side: Side, shares: int, price_cents: int, action: str) -> Tuple[bool, str]:
        if shares <= 0:
            return False, "non-positive size"
        if action == "buy":
            if ticker in self.positions:
                return False, "position already open"
            if price_cents * shares > self.bankroll_cents:
                return False, "insufficient balance"
            return True, ""
        position = self.positions.get(ticker)
        if position is None or position.side is not side:
            return False, "no matching position"
        if shares > position.shares:
            return False, "selling more than held"
        return True, ""

    def place_order(
        self,
        ticker: str,
        side: Side,
        shares: int,
        max_price_cents: int,
        action: str = "buy",
    ) -> OrderResult:
        side = Side(side)
        ok, reason = self.can_execute(ticker, side, shares, max_price_cents, action)
        result = OrderResult(
            order_id=f"paper-{uuid.uuid4().hex[:12]}",
            ticker=ticker,
            side=side,
            action=action,
            shares=shares,
            price_cents=max_price_cents,
            status="executed" if ok else f"rejected:{reason}",
        )
        self.order_log.append((result, result.status))
        if not ok:
            logger.info("Paper order rejected: %s", reason)
            return result

        if action == "buy":
            self.bankroll_cents -= max_price_cents * shares
            self.positions[ticker] = Position(
                ticker=ticker,
                side=side,
                entry_price_cents=max_price_cents,
                shares=shares,
                opened_at=datetime.now(timezone.utc),
            )
        else:
            position = self.positions[ticker]
            self.bankroll_cents += max_price_cents * shares
            position.shares -= shares
            if position.shares == 0:
                self.positions.pop(ticker)
        logger.info("Paper %s %s x%d @ %d¢ on %s", action, side.value, shares, max_price_cents, ticker)
        return result
