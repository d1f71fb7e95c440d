from __future__ import annotations

from scalpcore.domain.models import PriceHistory, SymbolSnapshot
from scalpcore.execution.models import Side, Trade
from scalpcore.indicators import average_volume
from scalpcore.strategies.base import TradingStrategy, previous_point, volume_ratio


class VolumeSpikeStrategy(TradingStrategy):
    name = "Volume Spike"
    priority = 7
    min_history = 20
    risk_fraction = 0.025

    spike_threshold = 2.0
    exit_volume_ratio = 0.5
    entry_volume_periods = 20
    exit_volume_periods = 5

    def _move(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side | None:
        prior = previous_point(history)
        if snapshot.price is None or prior is None or prior.price is None:
            return None
        if snapshot.price > prior.price:
            return Side.BUY
        if snapshot.price < prior.price:
            return Side.SELL
        return None

    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if not self.has_history(history):
            return False
        ratio = volume_ratio(snapshot, average_volume(history, self.entry_volume_periods))
        if ratio is None or ratio < self.spike_threshold:
            return False
        return self._move(snapshot, history) is not None

    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if not self.has_history(history):
            return False
        ratio = volume_ratio(snapshot, average_volume(history, self.exit_volume_periods))
        return ratio is not None and ratio < self.exit_volume_ratio

    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        return self._move(snapshot, history) or Side.BUY
