from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from kalshi_oracle.config import OPENROUTER_URL
from kalshi_oracle.errors import OracleError
from kalshi_oracle.models.schemas import DecisionContext, Side
from kalshi_oracle.ports import Oracle
from kalshi_oracle.strategy.context import build_exit_context
from kalshi_oracle.strategy.prompts import render_entry_prompt, render_exit_prompt

logger = logging.getLogger(__name__)

ENTRY_MAX_TOKENS = 1200
EXIT_MAX_TOKENS = 800


class OpenRouterClient(Oracle):
    """Chat-completion oracle. Returns the model's raw text, unparsed."""

    def __init__(
        self,
        api_key: str,
        model: str = "anthropic/claude-opus-4-6",
        url: Optional[str] = None,
        timeout: float = 120.0,
        temperature: float = 0.2,
    ):
        self.api_key = api_key
        self.model = model
        self.url = url or OPENROUTER_URL
        self.timeout = timeout
        self.temperature = temperature
        self.session = requests.Session()

    def decide(self, context: DecisionContext) -> str:
        return self.call_model(render_entry_prompt(context), ENTRY_MAX_TOKENS)

    def decide_exit(self, context: DecisionContext, entry_side: Side, entry_price: int, shares: int) -> str:
        exit_ctx = build_exit_context(context, Side(entry_side), entry_price, shares)
        return self.call_model(render_exit_prompt(exit_ctx), EXIT_MAX_TOKENS)

    def call_model(self, prompt: str, max_tokens: int) -> str:
        body = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": "Kalshi BTC Bot",
        }
        try:
            response = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise OracleError(f"OpenRouter request failed: {exc}") from exc

        if response.status_code >= 400:
            raise OracleError(f"OpenRouter returned {response.status_code}: {response.text[:200]}")

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise OracleError("OpenRouter response was not valid JSON") from exc

        return self.extract_content(payload)

    @staticmethod
    def extract_content(payload: Dict[str, Any]) -> str:
        """Message content, falling back to the reasoning field when content is empty."""
        try:
            message = payload["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise OracleError(f"No message in OpenRouter response: {payload}") from exc

        content = message.get("content") or message.get("reasoning")
        if not content:
            raise OracleError(f"No content in OpenRouter response: {payload}")
        logger.debug("Oracle replied with %d chars", len(content))
        return content
