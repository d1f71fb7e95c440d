from __future__ import annotations

from scalpcore.domain.models import PriceHistory, SymbolSnapshot, closes
from scalpcore.execution.models import Side, Trade
from scalpcore.indicators import ema
from scalpcore.strategies.base import DEFAULT_SIGNAL_STRENGTH, TradingStrategy, previous_point


class EmaCrossoverStrategy(TradingStrategy):
    """Golden/death cross of the fast and slow EMA between two consecutive steps.

    When the data source annotated the previous history point, its EMAs are
    compared with the snapshot's. Otherwise both steps are recomputed from
    ``history``, with and without its latest point, so the two pairs always
    come from the same series.
    """

    name = "EMA Crossover"
    priority = 3
    min_history = 26
    risk_fraction = 0.025

    def __init__(self, active: bool = True, fast_period: int = 12, slow_period: int = 26) -> None:
        super().__init__(active=active)
        if fast_period >= slow_period:
            raise ValueError("fast_period must be < slow_period")
        self.fast_period = fast_period
        self.slow_period = slow_period

    def _ema_pair(self, prices: list[float]) -> tuple[float, float] | None:
        fast = ema(prices, self.fast_period)
        slow = ema(prices, self.slow_period)
        if fast is None or slow is None:
            return None
        return fast, slow

    def _ema_steps(
        self, snapshot: SymbolSnapshot, history: PriceHistory
    ) -> tuple[tuple[float, float], tuple[float, float]] | None:
        prior = previous_point(history)
        if prior is None:
            return None
        if (
            prior.ema_fast is not None
            and prior.ema_slow is not None
            and snapshot.ema_fast is not None
            and snapshot.ema_slow is not None
        ):
            return (snapshot.ema_fast, snapshot.ema_slow), (prior.ema_fast, prior.ema_slow)
        prices = closes(history)
        current = self._ema_pair(prices)
        previous = self._ema_pair(prices[:-1])
        if current is None or previous is None:
            return None
        return current, previous

    def _cross(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side | None:
        if not self.has_history(history):
            return None
        steps = self._ema_steps(snapshot, history)
        if steps is None:
            return None
        (fast, slow), (prev_fast, prev_slow) = steps
        if fast > slow and prev_fast <= prev_slow:
            return Side.BUY
        if fast < slow and prev_fast >= prev_slow:
            return Side.SELL
        return None

    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if snapshot.price is None:
            return False
        return self._cross(snapshot, history) is not None

    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if snapshot.ema_fast is None or snapshot.ema_slow is None:
            return False
        if not self.has_history(history):
            return False
        if trade.side == Side.BUY:
            return snapshot.ema_fast < snapshot.ema_slow
        return snapshot.ema_fast > snapshot.ema_slow

    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        return self._cross(snapshot, history) or Side.BUY

    def signal_strength(self, snapshot: SymbolSnapshot) -> float:
        if snapshot.ema_fast is None or snapshot.ema_slow is None or snapshot.ema_slow <= 0:
            return DEFAULT_SIGNAL_STRENGTH
        separation = abs(snapshot.ema_fast - snapshot.ema_slow) / snapshot.ema_slow
        return min(separation * 10, 1.0)
