from __future__ import annotations

from collections.abc import Iterable, Sequence

from scalpcore.strategies import (
    BollingerBounceStrategy,
    EmaCrossoverStrategy,
    MeanReversionStrategy,
    MomentumBreakoutStrategy,
    RsiScalpingStrategy,
    SupportResistanceStrategy,
    TradingStrategy,
    VolumeSpikeStrategy,
)


def default_strategies(ema_fast_period: int = 12, ema_slow_period: int = 26) -> list[TradingStrategy]:
    return [
        RsiScalpingStrategy(),
        BollingerBounceStrategy(),
        EmaCrossoverStrategy(fast_period=ema_fast_period, slow_period=ema_slow_period),
        MeanReversionStrategy(),
        MomentumBreakoutStrategy(),
        SupportResistanceStrategy(),
        VolumeSpikeStrategy(),
    ]


def select_strategies(
    strategies: Sequence[TradingStrategy],
    names: Iterable[str],
) -> list[TradingStrategy]:
    """Active strategies whose name is selected; no selection means all of them."""
    wanted = {name.strip() for name in names if name.strip()}
    return [s for s in strategies if s.is_active() and (not wanted or s.name in wanted)]


def strategy_by_name(strategies: Iterable[TradingStrategy], name: str) -> TradingStrategy | None:
    for strategy in strategies:
        if strategy.name == name:
            return strategy
    return None
