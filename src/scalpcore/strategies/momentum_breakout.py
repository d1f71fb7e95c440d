from __future__ import annotations

from scalpcore.domain.models import PriceHistory, SymbolSnapshot
from scalpcore.execution.models import Side, Trade
from scalpcore.indicators import average_volume
from scalpcore.strategies.base import TradingStrategy, previous_point, volume_ratio


class MomentumBreakoutStrategy(TradingStrategy):
    name = "Momentum Breakout"
    priority = 6
    min_history = 20
    risk_fraction = 0.03

    volume_threshold = 1.5
    exit_volume_ratio = 0.8
    entry_volume_periods = 20
    exit_volume_periods = 10

    def _direction(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side | None:
        prev1 = previous_point(history, 1)
        prev2 = previous_point(history, 2)
        if snapshot.price is None or prev1 is None or prev2 is None:
            return None
        if prev1.price is None or prev2.price is None:
            return None
        if snapshot.price > prev1.price > prev2.price:
            return Side.BUY
        if snapshot.price < prev1.price < prev2.price:
            return Side.SELL
        return None

    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if not self.has_history(history):
            return False
        ratio = volume_ratio(snapshot, average_volume(history, self.entry_volume_periods))
        if ratio is None or ratio < self.volume_threshold:
            return False
        return self._direction(snapshot, history) is not None

    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if not self.has_history(history):
            return False
        ratio = volume_ratio(snapshot, average_volume(history, self.exit_volume_periods))
        return ratio is not None and ratio < self.exit_volume_ratio

    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        return self._direction(snapshot, history) or Side.BUY
