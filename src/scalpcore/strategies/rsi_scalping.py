from __future__ import annotations

from scalpcore.domain.models import PriceHistory, SymbolSnapshot
from scalpcore.execution.models import Side, Trade
from scalpcore.strategies.base import DEFAULT_SIGNAL_STRENGTH, TradingStrategy


class RsiScalpingStrategy(TradingStrategy):
    name = "RSI Scalping"
    priority = 5
    min_history = 14
    risk_fraction = 0.02

    oversold = 30.0
    overbought = 70.0
    neutral = 50.0

    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if snapshot.rsi is None or snapshot.price is None or not self.has_history(history):
            return False
        return snapshot.rsi < self.oversold or snapshot.rsi > self.overbought

    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        if snapshot.rsi is None or not self.has_history(history):
            return False
        if trade.side == Side.BUY:
            return snapshot.rsi > self.neutral
        return snapshot.rsi < self.neutral

    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        if snapshot.rsi is not None and snapshot.rsi > self.overbought:
            return Side.SELL
        return Side.BUY

    def signal_strength(self, snapshot: SymbolSnapshot) -> float:
        if snapshot.rsi is None:
            return DEFAULT_SIGNAL_STRENGTH
        if snapshot.rsi < self.oversold:
            return 1.0 - (snapshot.rsi / self.oversold)
        if snapshot.rsi > self.overbought:
            return 1.0 - ((100.0 - snapshot.rsi) / (100.0 - self.overbought))
        return DEFAULT_SIGNAL_STRENGTH
