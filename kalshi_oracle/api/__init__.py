"""Exchange, oracle, price-feed and notification adapters."""

from .auth import KalshiAuth
from .binance_client import BinanceClient
from .kalshi_client import KalshiClient
from .openrouter_client import OpenRouterClient
from .telegram_notifier import LogNotifier, TelegramNotifier

__all__ = [
    "BinanceClient",
    "KalshiAuth",
    "KalshiClient",
    "LogNotifier",
    "OpenRouterClient",
    "TelegramNotifier",
]
