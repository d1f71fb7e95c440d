from __future__ import annotations

from datetime import datetime

import pytest

from scalpcore.domain.models import SymbolSnapshot
from scalpcore.execution.models import Side, Trade
from scalpcore.indicators import refresh_indicators
from scalpcore.strategies import (
    BollingerBounceStrategy,
    EmaCrossoverStrategy,
    MeanReversionStrategy,
    MomentumBreakoutStrategy,
    RsiScalpingStrategy,
    SupportResistanceStrategy,
    VolumeSpikeStrategy,
)
from scalpcore.strategy import default_strategies


def _history(prices: list[float], volume: float = 1_000.0) -> list[SymbolSnapshot]:
    return [SymbolSnapshot(symbol="ETH-USD", price=p, volume_24h=volume) for p in prices]


def _trade(side: Side, strategy: str = "test") -> Trade:
    return Trade(
        symbol="ETH-USD",
        side=side,
        entry_price=100.0,
        quantity=1.0,
        strategy=strategy,
        entry_time=datetime(2026, 1, 1),
    )


def _loaded_snapshot() -> SymbolSnapshot:
    return SymbolSnapshot(
        symbol="ETH-USD",
        price=100.0,
        volume_24h=1_000_000.0,
        price_change_24h=2.0,
        rsi=10.0,
        bollinger_upper=100.0,
        bollinger_lower=100.0,
        ema_fast=110.0,
        ema_slow=100.0,
        support=100.0,
        resistance=100.0,
    )


@pytest.mark.parametrize("strategy", default_strategies(), ids=lambda s: s.name)
def test_short_history_never_enters_or_exits(strategy) -> None:
    snapshot = _loaded_snapshot()
    for length in (0, strategy.min_history - 1):
        history = _history([90.0 + i for i in range(length)])
        assert strategy.should_enter(snapshot, history) is False
        for side in Side:
            assert strategy.should_exit(_trade(side), snapshot, history) is False


@pytest.mark.parametrize("strategy", default_strategies(), ids=lambda s: s.name)
def test_missing_market_data_is_not_an_entry(strategy) -> None:
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=None)
    history = _history([100.0] * 60)
    assert strategy.should_enter(snapshot, history) is False
    assert strategy.should_exit(_trade(Side.BUY), snapshot, history) is False


def test_default_registry_has_seven_distinct_strategies() -> None:
    strategies = default_strategies()
    names = [s.name for s in strategies]
    assert len(names) == 7
    assert len(set(names)) == 7
    assert sorted(s.priority for s in strategies) == [1, 2, 3, 4, 5, 6, 7]


def test_rsi_scalping_enters_oversold_not_neutral() -> None:
    strategy = RsiScalpingStrategy()
    history = _history([100.0] * 20)
    oversold = SymbolSnapshot(symbol="ETH-USD", price=100.0, rsi=25.0)
    neutral = SymbolSnapshot(symbol="ETH-USD", price=100.0, rsi=55.0)
    assert strategy.should_enter(oversold, history) is True
    assert strategy.should_enter(neutral, history) is False
    assert strategy.trade_side(oversold, history) == Side.BUY


def test_rsi_scalping_overbought_sells_and_exits_at_neutral() -> None:
    strategy = RsiScalpingStrategy()
    history = _history([100.0] * 20)
    overbought = SymbolSnapshot(symbol="ETH-USD", price=100.0, rsi=80.0)
    assert strategy.should_enter(overbought, history) is True
    assert strategy.trade_side(overbought, history) == Side.SELL

    recovered = SymbolSnapshot(symbol="ETH-USD", price=100.0, rsi=55.0)
    assert strategy.should_exit(_trade(Side.BUY), recovered, history) is True
    assert strategy.should_exit(_trade(Side.SELL), recovered, history) is False


def test_rsi_scalping_signal_strength_grows_with_extremity() -> None:
    strategy = RsiScalpingStrategy()
    mild = strategy.signal_strength(SymbolSnapshot(symbol="X", price=1.0, rsi=27.0))
    deep = strategy.signal_strength(SymbolSnapshot(symbol="X", price=1.0, rsi=6.0))
    assert 0.0 < mild < deep <= 1.0


def test_bollinger_bounce_buys_lower_band_and_sells_upper_band() -> None:
    strategy = BollingerBounceStrategy()
    history = _history([100.0] * 20)
    below = SymbolSnapshot(
        symbol="ETH-USD", price=95.0, bollinger_lower=96.0, bollinger_upper=104.0
    )
    above = SymbolSnapshot(
        symbol="ETH-USD", price=105.0, bollinger_lower=96.0, bollinger_upper=104.0
    )
    inside = SymbolSnapshot(
        symbol="ETH-USD", price=99.0, bollinger_lower=96.0, bollinger_upper=104.0
    )
    assert strategy.should_enter(below, history) is True
    assert strategy.trade_side(below, history) == Side.BUY
    assert strategy.should_enter(above, history) is True
    assert strategy.trade_side(above, history) == Side.SELL
    assert strategy.should_enter(inside, history) is False


def test_bollinger_bounce_exits_at_middle_band() -> None:
    strategy = BollingerBounceStrategy()
    history = _history([100.0] * 20)
    at_middle = SymbolSnapshot(
        symbol="ETH-USD", price=100.0, bollinger_lower=96.0, bollinger_upper=104.0
    )
    assert strategy.should_exit(_trade(Side.BUY), at_middle, history) is True
    assert strategy.should_exit(_trade(Side.SELL), at_middle, history) is True
    low = SymbolSnapshot(
        symbol="ETH-USD", price=97.0, bollinger_lower=96.0, bollinger_upper=104.0
    )
    assert strategy.should_exit(_trade(Side.BUY), low, history) is False


def test_ema_crossover_detects_golden_cross_from_annotated_history() -> None:
    strategy = EmaCrossoverStrategy()
    history = _history([100.0] * 26)
    history[-2].ema_fast = 99.0
    history[-2].ema_slow = 100.0
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=101.0, ema_fast=100.5, ema_slow=100.0)
    assert strategy.should_enter(snapshot, history) is True
    assert strategy.trade_side(snapshot, history) == Side.BUY


def test_ema_crossover_detects_death_cross() -> None:
    strategy = EmaCrossoverStrategy()
    history = _history([100.0] * 26)
    history[-2].ema_fast = 101.0
    history[-2].ema_slow = 100.0
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=99.0, ema_fast=99.5, ema_slow=100.0)
    assert strategy.should_enter(snapshot, history) is True
    assert strategy.trade_side(snapshot, history) == Side.SELL


def test_ema_crossover_recomputes_both_steps_when_not_annotated() -> None:
    strategy = EmaCrossoverStrategy()
    # a steady decline keeps the fast EMA under the slow one until the last jump
    history = _history([130.0 - i for i in range(29)] + [300.0])
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=300.0)
    assert strategy.should_enter(snapshot, history) is True
    assert strategy.trade_side(snapshot, history) == Side.BUY


def test_ema_crossover_ignores_snapshot_emas_from_a_longer_series() -> None:
    strategy = EmaCrossoverStrategy()
    # refresh sees 100 bars including the jump, entry evaluation only the last 50
    prices = [90.0] * 50 + [100.0 - 0.001 * i for i in range(50)]
    refresh_history = _history(prices)
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=prices[-1])
    refresh_indicators(snapshot, refresh_history)
    assert snapshot.ema_fast > snapshot.ema_slow

    entry_history = _history(prices[-50:])
    assert strategy.should_enter(snapshot, entry_history) is False


def test_ema_crossover_ignores_an_established_trend() -> None:
    strategy = EmaCrossoverStrategy()
    history = _history([100.0] * 26)
    history[-2].ema_fast = 102.0
    history[-2].ema_slow = 100.0
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=103.0, ema_fast=102.5, ema_slow=100.0)
    assert strategy.should_enter(snapshot, history) is False
    assert strategy.should_exit(_trade(Side.SELL), snapshot, history) is True
    assert strategy.should_exit(_trade(Side.BUY), snapshot, history) is False


def test_ema_crossover_rejects_inverted_periods() -> None:
    with pytest.raises(ValueError, match="fast_period"):
        EmaCrossoverStrategy(fast_period=26, slow_period=12)


def test_mean_reversion_trades_against_large_deviation() -> None:
    strategy = MeanReversionStrategy()
    history = _history([99.0, 101.0] * 10)
    stretched_up = SymbolSnapshot(symbol="ETH-USD", price=103.0)
    stretched_down = SymbolSnapshot(symbol="ETH-USD", price=97.0)
    calm = SymbolSnapshot(symbol="ETH-USD", price=101.5)

    assert strategy.z_score(stretched_up, history) == pytest.approx(3.0)
    assert strategy.should_enter(stretched_up, history) is True
    assert strategy.trade_side(stretched_up, history) == Side.SELL
    assert strategy.should_enter(stretched_down, history) is True
    assert strategy.trade_side(stretched_down, history) == Side.BUY
    assert strategy.should_enter(calm, history) is False


def test_mean_reversion_exits_when_back_at_mean() -> None:
    strategy = MeanReversionStrategy()
    history = _history([99.0, 101.0] * 10)
    back = SymbolSnapshot(symbol="ETH-USD", price=100.5)
    assert strategy.should_exit(_trade(Side.BUY), back, history) is True
    assert strategy.should_exit(_trade(Side.SELL), back, history) is False


def test_mean_reversion_flat_history_has_no_score() -> None:
    strategy = MeanReversionStrategy()
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=150.0)
    assert strategy.z_score(snapshot, _history([100.0] * 20)) is None
    assert strategy.should_enter(snapshot, _history([100.0] * 20)) is False


def test_momentum_breakout_needs_volume_and_direction() -> None:
    strategy = MomentumBreakoutStrategy()
    history = _history([100.0 + i for i in range(20)])
    breakout = SymbolSnapshot(symbol="ETH-USD", price=120.0, volume_24h=2_000.0)
    quiet = SymbolSnapshot(symbol="ETH-USD", price=120.0, volume_24h=1_200.0)
    assert strategy.should_enter(breakout, history) is True
    assert strategy.trade_side(breakout, history) == Side.BUY
    assert strategy.should_enter(quiet, history) is False

    falling = _history([200.0 - i for i in range(20)])
    dump = SymbolSnapshot(symbol="ETH-USD", price=180.0, volume_24h=2_000.0)
    assert strategy.should_enter(dump, falling) is True
    assert strategy.trade_side(dump, falling) == Side.SELL


def test_momentum_breakout_exits_when_volume_fades() -> None:
    strategy = MomentumBreakoutStrategy()
    history = _history([100.0 + i for i in range(20)])
    fading = SymbolSnapshot(symbol="ETH-USD", price=119.0, volume_24h=700.0)
    steady = SymbolSnapshot(symbol="ETH-USD", price=119.0, volume_24h=900.0)
    assert strategy.should_exit(_trade(Side.BUY), fading, history) is True
    assert strategy.should_exit(_trade(Side.BUY), steady, history) is False


def test_support_resistance_enters_near_levels() -> None:
    strategy = SupportResistanceStrategy()
    history = _history([105.0] * 50)
    at_support = SymbolSnapshot(
        symbol="ETH-USD", price=100.05, support=100.0, resistance=110.0
    )
    at_resistance = SymbolSnapshot(
        symbol="ETH-USD", price=109.95, support=100.0, resistance=110.0
    )
    middle = SymbolSnapshot(symbol="ETH-USD", price=105.0, support=100.0, resistance=110.0)
    assert strategy.should_enter(at_support, history) is True
    assert strategy.trade_side(at_support, history) == Side.BUY
    assert strategy.should_enter(at_resistance, history) is True
    assert strategy.trade_side(at_resistance, history) == Side.SELL
    assert strategy.should_enter(middle, history) is False
    assert strategy.should_exit(_trade(Side.BUY), at_resistance, history) is True
    assert strategy.should_exit(_trade(Side.SELL), at_support, history) is True


def test_volume_spike_follows_the_last_move() -> None:
    strategy = VolumeSpikeStrategy()
    history = _history([100.0] * 20)
    spike_up = SymbolSnapshot(symbol="ETH-USD", price=101.0, volume_24h=2_500.0)
    spike_flat = SymbolSnapshot(symbol="ETH-USD", price=100.0, volume_24h=2_500.0)
    assert strategy.should_enter(spike_up, history) is True
    assert strategy.trade_side(spike_up, history) == Side.BUY
    assert strategy.should_enter(spike_flat, history) is False

    drained = SymbolSnapshot(symbol="ETH-USD", price=100.0, volume_24h=400.0)
    assert strategy.should_exit(_trade(Side.BUY), drained, history) is True


def test_position_size_uses_risk_fraction() -> None:
    snapshot = SymbolSnapshot(symbol="ETH-USD", price=100.0)
    assert RsiScalpingStrategy().position_size(snapshot, 10_000.0) == pytest.approx(200.0)
    assert MomentumBreakoutStrategy().position_size(snapshot, 10_000.0) == pytest.approx(300.0)


def test_entry_price_requires_market_price() -> None:
    with pytest.raises(ValueError, match="No market price"):
        RsiScalpingStrategy().entry_price(SymbolSnapshot(symbol="ETH-USD", price=None))
