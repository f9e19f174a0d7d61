from kalshi_oracle.config import Config
from kalshi_oracle.models.schemas import Stats
from kalshi_oracle.strategy.risk import check_risk


def _config(**overrides) -> Config:
    values = dict(
        min_balance_cents=500,
        stop_loss_pct=0.20,
        max_daily_loss_cents=1000,
        max_consecutive_losses=3,
    )
    values.update(overrides)
    return Config(**values)


def test_healthy_account_proceeds():
    stats = Stats(total_pnl_cents=200, today_pnl_cents=50, current_streak=1)
    assert check_risk(stats, 10_000, _config()) is None


def test_balance_check_wins_over_daily_loss():
    stats = Stats(total_pnl_cents=-100, today_pnl_cents=-5000)
    reason = check_risk(stats, 100, _config())
    assert reason == "Balance 100¢ < 500¢ minimum"


def test_stop_loss_uses_implied_starting_balance():
    # started with 10_000, now 8_000 -> lost exactly 20%
    stats = Stats(total_pnl_cents=-2000)
    reason = check_risk(stats, 8000, _config(max_daily_loss_cents=100_000))
    assert reason == "Stop loss: P&L -2000¢ exceeds 20% of starting balance (10000¢)"

    stats = Stats(total_pnl_cents=-1999)
    assert check_risk(stats, 8001, _config(max_daily_loss_cents=100_000)) is None


def test_stop_loss_skipped_when_starting_balance_not_positive():
    stats = Stats(total_pnl_cents=5000, today_pnl_cents=0)
    assert check_risk(stats, 5000, _config(min_balance_cents=0)) is None


def test_daily_loss():
    stats = Stats(total_pnl_cents=-1000, today_pnl_cents=-1000)
    assert check_risk(stats, 20_000, _config()) == "Daily loss: -1000¢"


def test_consecutive_losses():
    stats = Stats(total_pnl_cents=-30, today_pnl_cents=-30, current_streak=-3)
    assert check_risk(stats, 20_000, _config()) == "3× consecutive losses"

    stats = Stats(total_pnl_cents=-20, today_pnl_cents=-20, current_streak=-2)
    assert check_risk(stats, 20_000, _config()) is None
