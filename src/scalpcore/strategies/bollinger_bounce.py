from __future__ import annotations

from scalpcore.domain.models import PriceHistory, SymbolSnapshot
from scalpcore.execution.models import Side, Trade
from scalpcore.strategies.base import DEFAULT_SIGNAL_STRENGTH, TradingStrategy


class BollingerBounceStrategy(TradingStrategy):
    name = "Bollinger Bounce"
    priority = 4
    min_history = 20
    risk_fraction = 0.015

    @staticmethod
    def _bands(snapshot: SymbolSnapshot) -> tuple[float, float, float] | None:
        if (
            snapshot.price is None
            or snapshot.bollinger_upper is None
            or snapshot.bollinger_lower is None
        ):
            return None
        return snapshot.price, snapshot.bollinger_lower, snapshot.bollinger_upper

    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        bands = self._bands(snapshot)
        if bands is None or not self.has_history(history):
            return False
        price, lower, upper = bands
        return price <= lower or price >= upper

    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        bands = self._bands(snapshot)
        if bands is None or not self.has_history(history):
            return False
        price, lower, upper = bands
        middle = (lower + upper) / 2
        if trade.side == Side.BUY:
            return price >= middle
        return price <= middle

    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        bands = self._bands(snapshot)
        if bands is None:
            return Side.BUY
        price, lower, upper = bands
        if price <= lower:
            return Side.BUY
        if price >= upper:
            return Side.SELL
        return Side.BUY

    def signal_strength(self, snapshot: SymbolSnapshot) -> float:
        bands = self._bands(snapshot)
        if bands is None:
            return DEFAULT_SIGNAL_STRENGTH
        price, lower, upper = bands
        width = upper - lower
        if width <= 0:
            return DEFAULT_SIGNAL_STRENGTH
        return max((price - lower) / width, (upper - price) / width)
