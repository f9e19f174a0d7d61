from __future__ import annotations

import logging
from typing import Any, List, Optional

import requests

from kalshi_oracle.config import BINANCE_BASE_URL
from kalshi_oracle.errors import PriceFeedError
from kalshi_oracle.models.schemas import Candle
from kalshi_oracle.ports import PriceFeed

logger = logging.getLogger(__name__)

PAYLOAD_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


class BinanceClient(PriceFeed):
    """Public Binance market data: klines and spot ticker."""

    # Binance answers 451/403 from restricted regions.
    UNAVAILABLE_STATUS = {403, 451}

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url or BINANCE_BASE_URL
        self.timeout = timeout
        self.session = requests.Session()

    def _get(self, path: str, **params: Any) -> Optional[Any]:
        url = f"{self.base_url.rstrip('/')}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PriceFeedError(f"GET {url} failed: {exc}") from exc

        if response.status_code in self.UNAVAILABLE_STATUS:
            logger.warning("Price feed unavailable (%s) for %s", response.status_code, path)
            return None
        if response.status_code >= 400:
            raise PriceFeedError(f"GET {url} failed: {response.status_code} {response.text[:200]}")

        try:
            return response.json()
        except ValueError as exc:  # pragma: no cover - unexpected payloads
            raise PriceFeedError("Price feed response was not valid JSON") from exc

    def candles(self, symbol: str, interval: str, limit: int) -> Optional[List[Candle]]:
        rows = self._get("/klines", symbol=symbol, interval=interval, limit=limit)
        if not rows:
            return None
        # kline row: [open_time, open, high, low, close, volume, ...]
        try:
            return [
                Candle(
                    ts=row[0],
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=float(row[5]),
                )
                for row in rows
            ]
        except PAYLOAD_ERRORS as exc:
            raise PriceFeedError(f"Unexpected kline payload for {symbol}: {exc!r}") from exc

    def spot_price(self, symbol: str) -> Optional[float]:
        payload = self._get("/ticker/price", symbol=symbol)
        if not payload:
            return None
        try:
            if "price" not in payload:
                return None
            return float(payload["price"])
        except PAYLOAD_ERRORS as exc:
            raise PriceFeedError(f"Unexpected ticker payload for {symbol}: {exc!r}") from exc
