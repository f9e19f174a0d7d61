from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

FAILED_PARSE_REASONING = "Failed to parse AI response"


class Side(str, Enum):
    YES = "YES"
    NO = "NO"


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    PASS = "PASS"


class LedgerResult(str, Enum):
    PENDING = "pending"
    WIN = "win"
    LOSS = "loss"


class MomentumDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


def _upper(v):
    if isinstance(v, str):
        return v.strip().upper()
    return v


class Candle(BaseModel):
    model_config = ConfigDict(frozen=True)

    ts: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    @field_validator("ts", mode="before")
    @classmethod
    def _parse_ts(cls, v: int | float | datetime):
        if isinstance(v, (int, float)):
            return datetime.fromtimestamp(v / 1000, tz=timezone.utc)
        return v


class PriceIndicators(BaseModel):
    model_config = ConfigDict(frozen=True)

    spot_price: float
    pct_change_15m: float
    pct_change_1h: float
    momentum: MomentumDirection
    sma_15m: float
    price_vs_sma: str
    sma_diff_pct: float
    volatility_1m: float
    last_3_candles: Tuple[Candle, ...] = Field(default=(), max_length=3)


class PriceSnapshot(BaseModel):
    """Reference-asset indicators (BTC spot) attached to a decision context."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    indicators: PriceIndicators


class MarketState(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticker: str
    title: str = ""
    yes_bid: Optional[int] = None
    yes_ask: Optional[int] = None
    no_bid: Optional[int] = None
    no_ask: Optional[int] = None
    last_price: Optional[int] = None
    volume: int = 0
    volume_24h: int = 0
    open_interest: int = 0
    expiration_time: Optional[datetime] = None
    minutes_to_expiry: float = 0.0
    status: Optional[str] = None
    result: Optional[str] = None


OrderBookLevel = Tuple[int, int]


class OrderBook(BaseModel):
    """Resting bids per side as (price_cents, quantity), best price first."""

    model_config = ConfigDict(frozen=True)

    yes: Tuple[OrderBookLevel, ...] = ()
    no: Tuple[OrderBookLevel, ...] = ()


class LedgerRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    timestamp: str
    ticker: str
    side: Side
    shares: int = Field(ge=0)
    price_cents: int = Field(ge=0)
    result: LedgerResult = LedgerResult.PENDING
    pnl_cents: int = 0

    @field_validator("side", mode="before")
    @classmethod
    def _side_upper(cls, v):
        return _upper(v)

    @property
    def is_settled(self) -> bool:
        return self.result in (LedgerResult.WIN, LedgerResult.LOSS)


class Stats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    total_pnl_cents: int = 0
    today_pnl_cents: int = 0
    current_streak: int = 0
    max_drawdown_cents: int = 0
    avg_win_cents: float = 0.0
    avg_loss_cents: float = 0.0


class DecisionContext(BaseModel):
    """Everything the oracle sees for one cycle. Built once, never mutated."""

    model_config = ConfigDict(frozen=True)

    prompt_md: str
    stats: Stats
    last_n_trades: Tuple[LedgerRow, ...] = ()
    market: MarketState
    orderbook: OrderBook
    btc_price: Optional[PriceSnapshot] = None


class ExitContext(DecisionContext):
    entry_side: Side
    entry_price_cents: int
    shares: int


class TradeDecision(BaseModel):
    action: Action
    side: Optional[Side] = None
    shares: Optional[int] = Field(default=None, ge=0, strict=True)
    max_price_cents: Optional[int] = Field(default=None, ge=0, strict=True)
    reasoning: str

    @field_validator("action", "side", mode="before")
    @classmethod
    def _token_upper(cls, v):
        return _upper(v)

    @classmethod
    def failed(cls) -> "TradeDecision":
        return cls(action=Action.PASS, reasoning=FAILED_PARSE_REASONING)

    def is_actionable(self) -> bool:
        """True when a non-PASS action carries side, shares and price."""
        if self.action is Action.PASS:
            return False
        return (
            self.side is not None
            and self.shares is not None
            and self.shares > 0
            and self.max_price_cents is not None
        )


class OrderResult(BaseModel):
    order_id: str
    ticker: str
    side: Side
    action: str
    shares: int
    price_cents: int
    status: str = "submitted"
