from __future__ import annotations

from scalpcore.domain.models import PriceHistory, SymbolSnapshot
from scalpcore.execution.models import Side, Trade
from scalpcore.strategies.base import TradingStrategy


def is_near_level(price: float | None, level: float | None, tolerance: float) -> bool:
    if price is None or level is None or level == 0:
        return False
    return abs(price - level) <= abs(level) * tolerance


class SupportResistanceStrategy(TradingStrategy):
    name = "Support/Resistance"
    priority = 2
    min_history = 50
    risk_fraction = 0.01

    touch_tolerance = 0.001

    def _near(self, price: float | None, level: float | None) -> bool:
        return is_near_level(price, level, self.touch_tolerance)

    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if snapshot.support is None or snapshot.resistance is None:
            return False
        if not self.has_history(history):
            return False
        return self._near(snapshot.price, snapshot.support) or self._near(
            snapshot.price, snapshot.resistance
        )

    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if snapshot.support is None or snapshot.resistance is None:
            return False
        if not self.has_history(history):
            return False
        if trade.side == Side.BUY:
            return self._near(snapshot.price, snapshot.resistance)
        return self._near(snapshot.price, snapshot.support)

    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        if self._near(snapshot.price, snapshot.support):
            return Side.BUY
        if self._near(snapshot.price, snapshot.resistance):
            return Side.SELL
        return Side.BUY
