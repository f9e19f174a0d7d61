from __future__ import annotations

from math import sqrt
from typing import Sequence

from kalshi_oracle.models.schemas import Candle, MomentumDirection, PriceIndicators

MOMENTUM_DEADBAND_PCT = 0.05
AT_SMA_BAND_PCT = 0.01


def pct_change(spot: float, candles: Sequence[Candle]) -> float:
    """Percent move from the oldest candle's open to spot; 0 with no candles or a zero open."""
    if not candles:
        return 0.0
    first_open = candles[0].open
    if not first_open:
        return 0.0
    return (spot - first_open) / first_open * 100.0


def momentum_from(pct: float) -> MomentumDirection:
    if pct > MOMENTUM_DEADBAND_PCT:
        return MomentumDirection.UP
    if pct < -MOMENTUM_DEADBAND_PCT:
        return MomentumDirection.DOWN
    return MomentumDirection.FLAT


def describe_vs_sma(diff_pct: float) -> str:
    if abs(diff_pct) < AT_SMA_BAND_PCT:
        return "at SMA"
    if diff_pct > 0:
        return f"above +{diff_pct:.3f}%"
    return f"below {diff_pct:.3f}%"


def volatility(candles: Sequence[Candle]) -> float:
    """Population std-dev of close-to-close percent returns."""
    returns = [
        (cur.close - prev.close) / prev.close * 100.0 if prev.close else 0.0
        for prev, cur in zip(candles, candles[1:])
    ]
    if len(returns) < 2:
        return 0.0
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    return sqrt(variance)


def compute_indicators(
    candles_1m: Sequence[Candle],
    candles_5m: Sequence[Candle],
    spot: float,
) -> PriceIndicators:
    pct_15m = pct_change(spot, candles_1m)
    pct_1h = pct_change(spot, candles_5m)

    if candles_1m:
        sma = sum(c.close for c in candles_1m) / len(candles_1m)
    else:
        sma = spot
    sma_diff = (spot - sma) / sma * 100.0 if sma else 0.0

    return PriceIndicators(
        spot_price=spot,
        pct_change_15m=pct_15m,
        pct_change_1h=pct_1h,
        momentum=momentum_from(pct_15m),
        sma_15m=sma,
        price_vs_sma=describe_vs_sma(sma_diff),
        sma_diff_pct=sma_diff,
        volatility_1m=volatility(candles_1m),
        last_3_candles=tuple(candles_1m[-3:]),
    )
