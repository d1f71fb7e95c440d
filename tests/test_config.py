import pytest
from pydantic import ValidationError

from scalpcore.config import Settings, split_names


def test_settings_defaults_are_valid() -> None:
    settings = Settings()
    assert settings.initial_balance > 0
    assert settings.maker_fee_rate == 0.0002
    assert settings.taker_fee_rate == 0.0006
    assert settings.position_size_percent == 5.0
    assert settings.min_strategy_score == 0.5
    assert settings.auto_select_best_strategy is True
    assert settings.api_key is None
    assert settings.admin_api_key is None
    assert settings.database_url is None
    assert settings.market_data_rate_quota == 7
    assert settings.balance_rate_window_seconds == 90.0
    assert settings.cycle_interval_seconds == 30.0
    assert settings.trading_enabled_on_start is False


def test_blank_secrets_become_none(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCALPC_API_KEY", "   ")
    monkeypatch.setenv("SCALPC_DATABASE_URL", "")
    settings = Settings()
    assert settings.api_key is None
    assert settings.database_url is None


def test_env_prefix_overrides_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCALPC_POSITION_SIZE_PERCENT", "2.5")
    monkeypatch.setenv("SCALPC_SELECTED_STRATEGIES", "RSI Scalping,Volume Spike")
    settings = Settings()
    assert settings.position_size_percent == 2.5
    assert split_names(settings.selected_strategies) == ["RSI Scalping", "Volume Spike"]


def test_slow_ema_must_exceed_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCALPC_EMA_FAST_PERIOD", "30")
    monkeypatch.setenv("SCALPC_EMA_SLOW_PERIOD", "20")
    with pytest.raises(ValidationError):
        Settings()


def test_split_names_drops_blanks_and_duplicates() -> None:
    assert split_names(" BTC-USD, ,ETH-USD,BTC-USD ") == ["BTC-USD", "ETH-USD"]
    assert split_names("") == []
