"""Technical indicators over price sequences ordered oldest first.

Every function returns ``None`` when the sequence is too short for the
requested look-back instead of raising.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

import pandas as pd

from scalpcore.domain.models import PriceHistory, SymbolSnapshot, closes

if TYPE_CHECKING:
    from scalpcore.config import Settings


class BollingerBands(NamedTuple):
    upper: float
    middle: float
    lower: float


class SupportResistance(NamedTuple):
    support: float
    resistance: float


@dataclass(slots=True, frozen=True)
class IndicatorSettings:
    rsi_period: int = 14
    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0
    ema_fast_period: int = 12
    ema_slow_period: int = 26
    support_resistance_period: int = 50

    @classmethod
    def from_settings(cls, settings: Settings) -> IndicatorSettings:
        return cls(
            rsi_period=settings.rsi_period,
            bollinger_period=settings.bollinger_period,
            bollinger_std_dev=settings.bollinger_std_dev,
            ema_fast_period=settings.ema_fast_period,
            ema_slow_period=settings.ema_slow_period,
            support_resistance_period=settings.support_resistance_period,
        )


def _series(prices: Sequence[float]) -> pd.Series:
    return pd.Series(list(prices), dtype="float64")


def rsi(prices: Sequence[float], period: int = 14) -> float | None:
    if period <= 0:
        raise ValueError("period must be greater than zero")
    if len(prices) < period + 1:
        return None

    deltas = _series(prices).diff().iloc[1:]
    avg_gain = float(deltas.clip(lower=0.0).iloc[-period:].mean())
    avg_loss = float((-deltas.clip(upper=0.0)).iloc[-period:].mean())
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def bollinger_bands(
    prices: Sequence[float],
    period: int = 20,
    std_multiplier: float = 2.0,
) -> BollingerBands | None:
    if period <= 0:
        raise ValueError("period must be greater than zero")
    if len(prices) < period:
        return None

    window = _series(prices).iloc[-period:]
    middle = float(window.mean())
    # population standard deviation
    std = float(window.std(ddof=0))
    return BollingerBands(
        upper=middle + std_multiplier * std,
        middle=middle,
        lower=middle - std_multiplier * std,
    )


def ema(prices: Sequence[float], period: int) -> float | None:
    """EMA seeded with the first price and run across the whole sequence."""
    if period <= 0:
        raise ValueError("period must be greater than zero")
    if len(prices) < period:
        return None
    smoothed = _series(prices).ewm(span=period, adjust=False).mean()
    return float(smoothed.iloc[-1])


def support_resistance(prices: Sequence[float], lookback: int = 50) -> SupportResistance | None:
    if lookback <= 0:
        raise ValueError("lookback must be greater than zero")
    if len(prices) < lookback:
        return None
    window = _series(prices).iloc[-lookback:]
    return SupportResistance(support=float(window.min()), resistance=float(window.max()))


def mean_and_stddev(prices: Sequence[float], periods: int) -> tuple[float, float] | None:
    if len(prices) < periods or periods <= 0:
        return None
    window = _series(prices).iloc[-periods:]
    return float(window.mean()), float(window.std(ddof=0))


def average_volume(history: PriceHistory, periods: int) -> float | None:
    """Mean ``volume_24h`` of the last ``periods`` points, skipping gaps."""
    if periods <= 0 or len(history) < periods:
        return None
    volumes = [p.volume_24h for p in history[-periods:] if p.volume_24h is not None]
    if not volumes:
        return None
    return math.fsum(volumes) / len(volumes)


def refresh_indicators(
    snapshot: SymbolSnapshot,
    history: PriceHistory,
    settings: IndicatorSettings | None = None,
) -> int:
    """Write indicators derived from ``history`` onto ``snapshot``.

    Indicators whose look-back is not covered keep their previous value.
    Returns how many indicator groups were updated.
    """
    cfg = settings or IndicatorSettings()
    prices = closes(history)
    updated = 0

    value = rsi(prices, cfg.rsi_period)
    if value is not None:
        snapshot.rsi = value
        updated += 1

    bands = bollinger_bands(prices, cfg.bollinger_period, cfg.bollinger_std_dev)
    if bands is not None:
        snapshot.bollinger_upper = bands.upper
        snapshot.bollinger_lower = bands.lower
        updated += 1

    fast = ema(prices, cfg.ema_fast_period)
    slow = ema(prices, cfg.ema_slow_period)
    if fast is not None:
        snapshot.ema_fast = fast
        updated += 1
    if slow is not None:
        snapshot.ema_slow = slow
        updated += 1

    levels = support_resistance(prices, cfg.support_resistance_period)
    if levels is not None:
        snapshot.support = levels.support
        snapshot.resistance = levels.resistance
        updated += 1

    return updated
