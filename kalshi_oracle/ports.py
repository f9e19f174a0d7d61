from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from kalshi_oracle.models.schemas import (
    Candle,
    DecisionContext,
    LedgerResult,
    LedgerRow,
    MarketState,
    OrderBook,
    OrderResult,
    Side,
)


class Exchange(ABC):
    @abstractmethod
    def find_open_market(self, series_ticker: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def get_market(self, ticker: str) -> MarketState:
        raise NotImplementedError

    @abstractmethod
    def get_order_book(self, ticker: str) -> OrderBook:
        raise NotImplementedError

    @abstractmethod
    def get_balance(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def place_order(
        self,
        ticker: str,
        side: Side,
        shares: int,
        max_price_cents: int,
        action: str = "buy",
    ) -> OrderResult:
        raise NotImplementedError


class Oracle(ABC):
    @abstractmethod
    def decide(self, context: DecisionContext) -> str:
        raise NotImplementedError

    @abstractmethod
    def decide_exit(self, context: DecisionContext, entry_side: Side, entry_price: int, shares: int) -> str:
        raise NotImplementedError


class PriceFeed(ABC):
    @abstractmethod
    def candles(self, symbol: str, interval: str, limit: int) -> Optional[List[Candle]]:
        raise NotImplementedError

    @abstractmethod
    def spot_price(self, symbol: str) -> Optional[float]:
        raise NotImplementedError


class Notifier(ABC):
    @abstractmethod
    def alert(self, message: str) -> bool:
        """Deliver a message. Returns False on failure, never raises."""
        raise NotImplementedError


class LedgerStore(ABC):
    @abstractmethod
    def append(self, row: LedgerRow) -> int:
        raise NotImplementedError

    @abstractmethod
    def settle(self, row_id: int, result: LedgerResult, pnl_cents: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def fetch_all(self) -> List[LedgerRow]:
        raise NotImplementedError

    @abstractmethod
    def fetch_last(self, n: int) -> List[LedgerRow]:
        raise NotImplementedError

    @abstractmethod
    def fetch_pending(self) -> List[LedgerRow]:
        raise NotImplementedError
