from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed runtime settings."""

    app_name: str = "scalpcore"
    env: str = "dev"
    log_level: str = "INFO"
    data_dir: Path = Path("data")
    database_url: str | None = None
    api_key: str | None = None
    admin_api_key: str | None = None

    initial_balance: float = Field(default=10_000, ge=0)
    maker_fee_rate: float = Field(default=0.0002, ge=0)
    taker_fee_rate: float = Field(default=0.0006, ge=0)
    position_size_percent: float = Field(default=5.0, gt=0, le=100)
    min_strategy_score: float = Field(default=0.5, ge=0, le=1)
    auto_select_best_strategy: bool = True
    selected_strategies: str = ""
    selected_symbols: str = ""
    default_symbols: str = "BTC-USD,ETH-USD,SOL-USD,XRP-USD,DOGE-USD"
    min_volume_24h: float = Field(default=1_000, ge=0)

    rsi_period: int = Field(default=14, gt=0)
    bollinger_period: int = Field(default=20, gt=0)
    bollinger_std_dev: float = Field(default=2.0, gt=0)
    ema_fast_period: int = Field(default=12, gt=0)
    ema_slow_period: int = Field(default=26, gt=0)
    support_resistance_period: int = Field(default=50, gt=0)

    history_interval: str = "1m"
    history_limit: int = Field(default=100, gt=0)
    entry_history_limit: int = Field(default=50, gt=0)
    cycle_interval_seconds: float = Field(default=30.0, gt=0)
    trading_enabled_on_start: bool = False

    market_data_rate_quota: int = Field(default=7, gt=0)
    market_data_rate_window_seconds: float = Field(default=1.0, gt=0)
    balance_rate_quota: int = Field(default=1, gt=0)
    balance_rate_window_seconds: float = Field(default=90.0, gt=0)
    api_rate_quota: int = Field(default=120, gt=0)
    api_rate_window_seconds: float = Field(default=60.0, gt=0)
    fetch_wait_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator(
        "api_key",
        "admin_api_key",
        "database_url",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("ema_slow_period")
    @classmethod
    def _slow_after_fast(cls, value: int, info: ValidationInfo) -> int:
        fast = info.data.get("ema_fast_period")
        if fast is not None and value <= fast:
            raise ValueError("ema_slow_period must be greater than ema_fast_period")
        return value

    model_config = SettingsConfigDict(
        env_prefix="SCALPC_",
        env_file=".env",
        env_file_encoding="utf-8-sig",
        extra="ignore",
    )


def split_names(raw: str) -> list[str]:
    """Split a comma separated settings value, dropping blanks and duplicates."""
    seen: list[str] = []
    for part in raw.split(","):
        name = part.strip()
        if name and name not in seen:
            seen.append(name)
    return seen
