from __future__ import annotations

import logging
import os
import sys
import time

import schedule

from kalshi_oracle.api.auth import KalshiAuth
from kalshi_oracle.api.binance_client import BinanceClient
from kalshi_oracle.api.kalshi_client import KalshiClient
from kalshi_oracle.api.openrouter_client import OpenRouterClient
from kalshi_oracle.api.telegram_notifier import LogNotifier, TelegramNotifier
from kalshi_oracle.config import Config, load_prompt, telegram_configured, validate_startup
from kalshi_oracle.data.sqlite_store import SQLiteLedger
from kalshi_oracle.errors import ConfigError, KalshiAuthError
from kalshi_oracle.execution.cycle import CycleReport, run_cycle
from kalshi_oracle.execution.paper_exchange import PaperExchange
from kalshi_oracle.ports import Exchange, LedgerStore, Notifier, Oracle, PriceFeed
from kalshi_oracle.safety import Lockfile, LockHeldError, kill_switch_engaged

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_exchange(config: Config, ledger: SQLiteLedger) -> Exchange:
    auth = None
    if config.kalshi_key_id and config.kalshi_private_key_path:
        auth = KalshiAuth.from_file(config.kalshi_key_id, config.kalshi_private_key_path)
    client = KalshiClient(auth=auth, base_url=config.kalshi_base_url)
    if config.dry_run:
        logger.info("DRY_RUN enabled; orders are simulated against the stored paper bankroll")
        return PaperExchange(client, ledger, config.paper_bankroll_cents)
    return client


def build_notifier(config: Config) -> Notifier:
    if telegram_configured(config):
        return TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
    return LogNotifier()


def run_one_cycle(
    exchange: Exchange,
    oracle: Oracle,
    notifier: Notifier,
    price_feed: PriceFeed,
    ledger: LedgerStore,
    config: Config,
) -> CycleReport | None:
    if kill_switch_engaged(config.kill_switch_path):
        logger.warning("Kill switch engaged; stopping run")
        return None

    report = run_cycle(exchange, oracle, notifier, price_feed, ledger, config, load_prompt(config))
    logger.info(
        "Cycle finished: %s (%s)",
        report.outcome,
        report.reason or (report.decision.action.value if report.decision else "no decision"),
    )
    return report


def main() -> None:
    try:
        config = Config.from_env()
        validate_startup(config)
    except ConfigError as exc:
        raise SystemExit(f"Startup failed: {exc}")

    try:
        lock = Lockfile(config.lockfile_path).acquire()
    except LockHeldError as exc:
        raise SystemExit(str(exc))

    ledger = SQLiteLedger(config.ledger_db_path)
    try:
        exchange = build_exchange(config, ledger)
    except KalshiAuthError as exc:
        ledger.close()
        lock.release()
        raise SystemExit(f"Startup failed: {exc}")

    oracle = OpenRouterClient(config.openrouter_api_key, model=config.openrouter_model)
    notifier = build_notifier(config)
    price_feed = BinanceClient(base_url=config.binance_base_url)
    run_loop = os.getenv("RUN_LOOP", "0") == "1"

    try:
        args = (exchange, oracle, notifier, price_feed, ledger, config)
        if run_loop:
            logger.info("Starting scheduled run (every %d minutes)", config.cycle_minutes)
            schedule.every(config.cycle_minutes).minutes.do(run_one_cycle, *args)
            run_one_cycle(*args)
            while True:  # pragma: no cover - runtime path
                schedule.run_pending()
                time.sleep(1)
        else:
            run_one_cycle(*args)
    except KalshiAuthError as exc:
        logger.critical("Request signing failed; stopping: %s", exc)
        sys.exit(1)
    finally:
        ledger.close()
        lock.release()


if __name__ == "__main__":
    main()
