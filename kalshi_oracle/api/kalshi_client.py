from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import requests

from kalshi_oracle.api.auth import KalshiAuth
from kalshi_oracle.config import KALSHI_BASE_URL
from kalshi_oracle.errors import KalshiHTTPError
from kalshi_oracle.models.schemas import MarketState, OrderBook, OrderResult, Side
from kalshi_oracle.ports import Exchange

logger = logging.getLogger(__name__)

# Raised while mapping a response body that lacks the expected shape.
PAYLOAD_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _quote(value: Any) -> Optional[int]:
    """Kalshi reports 0 (or 100 for asks) when a side has no resting orders."""
    if value is None:
        return None
    cents = int(value)
    if cents <= 0 or cents >= 100:
        return None
    return cents


def _levels(raw: Optional[List[List[int]]]) -> tuple:
    if not raw:
        return ()
    levels = [(int(price), int(qty)) for price, qty in raw]
    return tuple(sorted(levels, key=lambda level: level[0], reverse=True))


class KalshiClient(Exchange):
    """Kalshi trade API client with signed requests and simple retry/backoff."""

    RETRY_STATUS = {429, 500, 502, 503, 504}

    def __init__(
        self,
        auth: Optional[KalshiAuth] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        retries: int = 3,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.auth = auth
        self.base_url = base_url or KALSHI_BASE_URL
        self.timeout = timeout
        self.retries = retries
        self.clock = clock
        self.session = requests.Session()

    def _headers(self, method: str, url: str) -> Dict[str, str]:
        if self.auth is None:
            return {"Accept": "application/json"}
        return self.auth.headers(method, urlparse(url).path)

    def _request(self, method: str, path: str, retries: Optional[int] = None, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url.rstrip('/')}{path}"
        attempts = retries or self.retries
        backoff = 1.0

        for attempt in range(1, attempts + 1):
            # Signatures embed a timestamp, so each attempt is signed afresh.
            headers = self._headers(method, url)
            try:
                response = self.session.request(method, url, timeout=self.timeout, headers=headers, **kwargs)
            except requests.RequestException as exc:  # pragma: no cover - network instability
                if attempt == attempts:
                    raise KalshiHTTPError(f"Request failed after {attempts} attempts: {exc}") from exc
                time.sleep(backoff)
                backoff *= 2
                continue

            if response.status_code in self.RETRY_STATUS:
                if attempt == attempts:
                    raise KalshiHTTPError(
                        f"Kalshi request failed after retries ({response.status_code}): {response.text}"
                    )
                logger.info("Kalshi %s %s returned %s; retrying", method, path, response.status_code)
                time.sleep(backoff)
                backoff *= 2
                continue

            if 400 <= response.status_code:
                raise KalshiHTTPError(
                    f"Kalshi request failed with status {response.status_code}: {response.text}"
                )

            try:
                return response.json()
            except ValueError as exc:  # pragma: no cover - unexpected payloads
                raise KalshiHTTPError("Kalshi response was not valid JSON") from exc

        raise KalshiHTTPError("Kalshi request unexpectedly exhausted retries")

    def get_markets_paginated(self, limit: int = 100, **filters: Any) -> List[Dict[str, Any]]:
        """Fetch all markets matching ``filters`` following the cursor."""
        markets: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"limit": limit, **filters}
            if cursor:
                params["cursor"] = cursor

            payload = self._request("GET", "/markets", params=params)
            markets.extend(payload.get("markets", []))
            cursor = payload.get("cursor")

            if not cursor:
                break

        return markets

    def find_open_market(self, series_ticker: str) -> Optional[str]:
        """Ticker of the open market in ``series_ticker`` that closes soonest."""
        now = self.clock()
        candidates = []
        try:
            for entry in self.get_markets_paginated(series_ticker=series_ticker, status="open"):
                close_time = _parse_time(entry.get("close_time"))
                if close_time is None or close_time <= now:
                    continue
                candidates.append((close_time, entry["ticker"]))
        except PAYLOAD_ERRORS as exc:
            raise KalshiHTTPError(f"Unexpected markets payload: {exc!r}") from exc
        if not candidates:
            return None
        return min(candidates)[1]

    def to_market_state(self, entry: Dict[str, Any]) -> MarketState:
        expiry = _parse_time(entry.get("close_time") or entry.get("expiration_time"))
        minutes = (expiry - self.clock()).total_seconds() / 60.0 if expiry else 0.0
        last_price = entry.get("last_price")
        return MarketState(
            ticker=entry["ticker"],
            title=entry.get("title", ""),
            yes_bid=_quote(entry.get("yes_bid")),
            yes_ask=_quote(entry.get("yes_ask")),
            no_bid=_quote(entry.get("no_bid")),
            no_ask=_quote(entry.get("no_ask")),
            last_price=int(last_price) if last_price else None,
            volume=int(entry.get("volume") or 0),
            volume_24h=int(entry.get("volume_24h") or 0),
            open_interest=int(entry.get("open_interest") or 0),
            expiration_time=expiry,
            minutes_to_expiry=minutes,
            status=entry.get("status"),
            result=entry.get("result") or None,
        )

    def get_market(self, ticker: str) -> MarketState:
        payload = self._request("GET", f"/markets/{ticker}")
        try:
            return self.to_market_state(payload["market"])
        except PAYLOAD_ERRORS as exc:
            raise KalshiHTTPError(f"Unexpected market payload for {ticker}: {exc!r}") from exc

    def get_order_book(self, ticker: str) -> OrderBook:
        payload = self._request("GET", f"/markets/{ticker}/orderbook")
        try:
            book = payload.get("orderbook") or {}
            return OrderBook(yes=_levels(book.get("yes")), no=_levels(book.get("no")))
        except PAYLOAD_ERRORS as exc:
            raise KalshiHTTPError(f"Unexpected orderbook payload for {ticker}: {exc!r}") from exc

    def get_balance(self) -> int:
        payload = self._request("GET", "/portfolio/balance")
        try:
            return int(payload["balance"])
        except PAYLOAD_ERRORS as exc:
            raise KalshiHTTPError(f"Unexpected balance payload: {exc!r}") from exc

    def place_order(
        self,
        ticker: str,
        side: Side,
        shares: int,
        max_price_cents: int,
        action: str = "buy",
    ) -> OrderResult:
        side = Side(side)
        price_field = "yes_price" if side is Side.YES else "no_price"
        body = {
            "ticker": ticker,
            "action": action,
            "side": side.value.lower(),
            "count": shares,
            "type": "limit",
            price_field: max_price_cents,
            "client_order_id": str(uuid.uuid4()),
        }
        # single attempt for order placement
        payload = self._request("POST", "/portfolio/orders", retries=1, json=body)
        try:
            order = payload.get("order") or {}
            result = OrderResult(
                order_id=order.get("order_id") or "",
                ticker=ticker,
                side=side,
                action=action,
                shares=shares,
                price_cents=max_price_cents,
                status=order.get("status") or "submitted",
            )
        except PAYLOAD_ERRORS as exc:
            raise KalshiHTTPError(f"Unexpected order payload for {ticker}: {exc!r}") from exc
        logger.info(
            "Order %s: %s %s x%d @ %d¢ on %s",
            result.status, action, side.value, shares, max_price_cents, ticker,
        )
        return result
