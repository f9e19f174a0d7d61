from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from kalshi_oracle.errors import ConfigError

KALSHI_BASE_URL = "https://api.elections.kalshi.com/trade-api/v2"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
BINANCE_BASE_URL = "https://api.binance.us/api/v3"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config(BaseModel):
    """Process-lifetime settings. Read once at startup, never mutated."""

    # risk thresholds
    min_balance_cents: int = Field(default=500, ge=0)
    stop_loss_pct: float = Field(default=0.20, gt=0, le=1)
    max_daily_loss_cents: int = Field(default=1000, gt=0)
    max_consecutive_losses: int = Field(default=5, gt=0)
    max_shares: int = Field(default=10, gt=0)

    # exchange
    kalshi_key_id: str = ""
    kalshi_private_key_path: str = ""
    kalshi_base_url: str = KALSHI_BASE_URL
    series_ticker: str = "KXBTC15M"

    # oracle
    openrouter_api_key: str = ""
    openrouter_model: str = "anthropic/claude-opus-4-6"
    openrouter_url: str = OPENROUTER_URL

    # notifications
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # price feed
    binance_base_url: str = BINANCE_BASE_URL
    btc_symbol: str = "BTCUSDT"

    # runtime
    ledger_db_path: str = "data/ledger.db"
    prompt_path: str = "prompt.md"
    lockfile_path: str = "data/bot.lock"
    kill_switch_path: str = "data/stop.trading"
    last_n_trades: int = Field(default=20, ge=0)
    dry_run: bool = True
    paper_bankroll_cents: int = Field(default=10_000, gt=0)
    cycle_minutes: int = Field(default=5, gt=0)

    @classmethod
    def from_env(cls) -> "Config":
        values = {
            "min_balance_cents": os.getenv("MIN_BALANCE_CENTS", "500"),
            "stop_loss_pct": os.getenv("STOP_LOSS_PCT", "0.20"),
            "max_daily_loss_cents": os.getenv("MAX_DAILY_LOSS_CENTS", "1000"),
            "max_consecutive_losses": os.getenv("MAX_CONSECUTIVE_LOSSES", "5"),
            "max_shares": os.getenv("MAX_SHARES", "10"),
            "kalshi_key_id": os.getenv("KALSHI_API_KEY_ID", ""),
            "kalshi_private_key_path": os.getenv("KALSHI_PRIVATE_KEY_PATH", ""),
            "kalshi_base_url": os.getenv("KALSHI_BASE_URL", KALSHI_BASE_URL),
            "series_ticker": os.getenv("KALSHI_SERIES_TICKER", "KXBTC15M"),
            "openrouter_api_key": os.getenv("OPENROUTER_API_KEY", ""),
            "openrouter_model": os.getenv("OPENROUTER_MODEL", "anthropic/claude-opus-4-6"),
            "telegram_bot_token": os.getenv("TELEGRAM_BOT_TOKEN", ""),
            "telegram_chat_id": os.getenv("TELEGRAM_CHAT_ID", ""),
            "binance_base_url": os.getenv("BINANCE_BASE_URL", BINANCE_BASE_URL),
            "ledger_db_path": os.getenv("LEDGER_DB_PATH", "data/ledger.db"),
            "prompt_path": os.getenv("PROMPT_PATH", "prompt.md"),
            "lockfile_path": os.getenv("LOCKFILE_PATH", "data/bot.lock"),
            "kill_switch_path": os.getenv("KILL_SWITCH_PATH", "data/stop.trading"),
            "last_n_trades": os.getenv("LEDGER_CONTEXT_ROWS", "20"),
            "dry_run": _env_flag("DRY_RUN", "1"),
            "paper_bankroll_cents": os.getenv("STARTING_BANKROLL_CENTS", "10000"),
            "cycle_minutes": os.getenv("CYCLE_MINUTES", "5"),
        }
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc


def validate_startup(config: Config) -> None:
    """Fail fast on missing credentials. Never retried."""
    missing = []
    if not config.openrouter_api_key:
        missing.append("OPENROUTER_API_KEY")
    if not config.dry_run:
        if not config.kalshi_key_id:
            missing.append("KALSHI_API_KEY_ID")
        if not config.kalshi_private_key_path:
            missing.append("KALSHI_PRIVATE_KEY_PATH")
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    if config.kalshi_private_key_path:
        key_path = Path(config.kalshi_private_key_path)
        if not key_path.is_file():
            raise ConfigError(f"Kalshi private key not found at {key_path}")

    prompt_path = Path(config.prompt_path)
    if not prompt_path.is_file():
        raise ConfigError(f"Prompt file not found at {prompt_path}")


def load_prompt(config: Config) -> str:
    return Path(config.prompt_path).read_text(encoding="utf-8")


def telegram_configured(config: Config) -> bool:
    return bool(config.telegram_bot_token and config.telegram_chat_id)
