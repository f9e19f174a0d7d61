from __future__ import annotations

from typing import Optional

from kalshi_oracle.config import Config
from kalshi_oracle.models.schemas import Stats


def check_risk(stats: Stats, balance_cents: int, config: Config) -> Optional[str]:
    """Return a halt reason, or None when trading may proceed.

    Checks run in priority order and the first breach wins: minimum
    balance, stop loss, daily loss, consecutive losses.

    The stop loss is measured against ``balance - total_pnl``. When that
    implied starting balance is not positive the check is skipped.
    """
    if balance_cents < config.min_balance_cents:
        return f"Balance {balance_cents}¢ < {config.min_balance_cents}¢ minimum"

    starting_balance = balance_cents - stats.total_pnl_cents
    if starting_balance > 0:
        max_loss = int(starting_balance * config.stop_loss_pct)
        if stats.total_pnl_cents <= -max_loss:
            return (
                f"Stop loss: P&L {stats.total_pnl_cents}¢ exceeds "
                f"{config.stop_loss_pct * 100:.0f}% of starting balance ({starting_balance}¢)"
            )

    if stats.today_pnl_cents <= -config.max_daily_loss_cents:
        return f"Daily loss: {stats.today_pnl_cents}¢"

    if stats.current_streak <= -config.max_consecutive_losses:
        return f"{abs(stats.current_streak)}× consecutive losses"

    return None
