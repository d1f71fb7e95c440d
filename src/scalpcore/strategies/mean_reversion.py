from __future__ import annotations

from scalpcore.domain.models import PriceHistory, SymbolSnapshot, closes
from scalpcore.execution.models import Side, Trade
from scalpcore.indicators import mean_and_stddev
from scalpcore.strategies.base import TradingStrategy


class MeanReversionStrategy(TradingStrategy):
    name = "Mean Reversion"
    priority = 1
    min_history = 20
    risk_fraction = 0.015

    lookback = 20
    deviation_threshold = 2.0

    def z_score(self, snapshot: SymbolSnapshot, history: PriceHistory) -> float | None:
        if snapshot.price is None or not self.has_history(history):
            return None
        stats = mean_and_stddev(closes(history), self.lookback)
        if stats is None:
            return None
        mean, std = stats
        if std == 0:
            return None
        return (snapshot.price - mean) / std

    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        z = self.z_score(snapshot, history)
        if z is None:
            return False
        return abs(z) > self.deviation_threshold

    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        z = self.z_score(snapshot, history)
        if z is None:
            return False
        if trade.side == Side.BUY:
            return z >= 0
        return z <= 0

    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        z = self.z_score(snapshot, history)
        if z is not None and z > self.deviation_threshold:
            return Side.SELL
        return Side.BUY
