import os

import pytest

from kalshi_oracle.config import Config, validate_startup
from kalshi_oracle.errors import ConfigError
from kalshi_oracle.safety import Lockfile, LockHeldError, kill_switch_engaged


def test_from_env_reads_thresholds(monkeypatch):
    monkeypatch.setenv("MIN_BALANCE_CENTS", "250")
    monkeypatch.setenv("STOP_LOSS_PCT", "0.1")
    monkeypatch.setenv("MAX_CONSECUTIVE_LOSSES", "4")
    monkeypatch.setenv("DRY_RUN", "false")

    config = Config.from_env()
    assert config.min_balance_cents == 250
    assert config.stop_loss_pct == pytest.approx(0.1)
    assert config.max_consecutive_losses == 4
    assert config.dry_run is False


def test_from_env_rejects_bad_values(monkeypatch):
    monkeypatch.setenv("STOP_LOSS_PCT", "1.5")
    with pytest.raises(ConfigError):
        Config.from_env()

    monkeypatch.setenv("STOP_LOSS_PCT", "0.2")
    monkeypatch.setenv("MAX_DAILY_LOSS_CENTS", "lots")
    with pytest.raises(ConfigError):
        Config.from_env()


def test_validate_startup_requires_credentials(tmp_path):
    prompt = tmp_path / "prompt.md"
    prompt.write_text("trade carefully")

    with pytest.raises(ConfigError, match="OPENROUTER_API_KEY"):
        validate_startup(Config(prompt_path=str(prompt)))

    dry = Config(openrouter_api_key="sk", prompt_path=str(prompt), dry_run=True)
    validate_startup(dry)

    live = Config(openrouter_api_key="sk", prompt_path=str(prompt), dry_run=False)
    with pytest.raises(ConfigError, match="KALSHI_API_KEY_ID"):
        validate_startup(live)

    missing_key = live.model_copy(
        update={"kalshi_key_id": "id", "kalshi_private_key_path": str(tmp_path / "nope.pem")}
    )
    with pytest.raises(ConfigError, match="private key not found"):
        validate_startup(missing_key)

    with pytest.raises(ConfigError, match="Prompt file"):
        validate_startup(dry.model_copy(update={"prompt_path": str(tmp_path / "missing.md")}))


def test_lockfile_is_exclusive(tmp_path):
    path = tmp_path / "run" / "bot.lock"
    with Lockfile(str(path)):
        assert path.read_text() == str(os.getpid())
        with pytest.raises(LockHeldError):
            Lockfile(str(path)).acquire()
    assert not path.exists()

    # released lock can be taken again
    Lockfile(str(path)).acquire().release()


def test_kill_switch(tmp_path):
    switch = tmp_path / "stop.trading"
    assert not kill_switch_engaged(str(switch))
    switch.touch()
    assert kill_switch_engaged(str(switch))
