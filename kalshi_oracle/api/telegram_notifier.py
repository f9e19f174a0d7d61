from __future__ import annotations

import logging

import requests

from kalshi_oracle.ports import Notifier

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier(Notifier):
    def __init__(self, token: str, chat_id: str, timeout: float = 10.0):
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.session = requests.Session()

    def alert(self, message: str) -> bool:
        url = f"{TELEGRAM_API}/bot{self.token}/sendMessage"
        try:
            response = self.session.post(
                url,
                json={"chat_id": self.chat_id, "text": message},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Telegram alert failed: %s", exc)
            return False

        if response.status_code >= 400:
            logger.warning("Telegram alert rejected (%s): %s", response.status_code, response.text[:200])
            return False
        return True


class LogNotifier(Notifier):
    """Notifier used when no chat transport is configured."""

    def alert(self, message: str) -> bool:
        logger.info("ALERT: %s", message)
        return True
