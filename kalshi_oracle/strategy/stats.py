from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from kalshi_oracle.models.schemas import LedgerResult, LedgerRow, Stats


def _mean(values: List[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def current_streak(settled: Sequence[LedgerRow]) -> int:
    """Signed run length ending at the most recent settled row."""
    streak = 0
    for row in reversed(settled):
        is_win = row.result is LedgerResult.WIN
        if streak == 0:
            streak = 1 if is_win else -1
        elif (streak > 0) == is_win:
            streak += 1 if is_win else -1
        else:
            break
    return streak


def max_drawdown(pnls: Iterable[int]) -> int:
    """Largest peak-to-trough drop of the cumulative P&L curve."""
    peak = 0
    running = 0
    worst = 0
    for pnl in pnls:
        running += pnl
        peak = max(peak, running)
        worst = max(worst, peak - running)
    return worst


def compute_stats(ledger: Iterable[LedgerRow], today: Optional[str] = None) -> Stats:
    """Aggregate settled ledger rows (oldest first). Pending rows are ignored.

    ``today`` is a ``YYYY-MM-DD`` prefix matched against row timestamps; it
    defaults to the current UTC date.
    """
    if today is None:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

    done = [row for row in ledger if row.is_settled]
    win_pnl = [row.pnl_cents for row in done if row.result is LedgerResult.WIN]
    loss_pnl = [row.pnl_cents for row in done if row.result is LedgerResult.LOSS]
    total = len(win_pnl) + len(loss_pnl)

    return Stats(
        total_trades=total,
        wins=len(win_pnl),
        losses=len(loss_pnl),
        win_rate=len(win_pnl) / total if total else 0.0,
        total_pnl_cents=sum(row.pnl_cents for row in done),
        today_pnl_cents=sum(row.pnl_cents for row in done if row.timestamp.startswith(today)),
        current_streak=current_streak(done),
        max_drawdown_cents=max_drawdown(row.pnl_cents for row in done),
        avg_win_cents=_mean(win_pnl),
        avg_loss_cents=_mean(loss_pnl),
    )
