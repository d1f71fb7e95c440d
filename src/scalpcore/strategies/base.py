from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from scalpcore.domain.models import PriceHistory, SymbolSnapshot
from scalpcore.execution.models import Side, Trade

DEFAULT_SIGNAL_STRENGTH = 0.5


class TradingStrategy(ABC):
    """Stateless entry/exit policy evaluated against one symbol snapshot.

    Subclasses set the class attributes and implement the three decision
    methods. A strategy never raises on missing data: absent indicators or a
    short history simply mean "no decision".
    """

    name: ClassVar[str]
    priority: ClassVar[int]
    min_history: ClassVar[int]
    risk_fraction: ClassVar[float]

    def __init__(self, active: bool = True) -> None:
        self._active = active

    @abstractmethod
    def should_enter(self, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        """Return True when the snapshot shows this strategy's entry setup."""

    @abstractmethod
    def should_exit(self, trade: Trade, snapshot: SymbolSnapshot, history: PriceHistory) -> bool:
        """Return True when an open trade owned by this strategy should close."""

    @abstractmethod
    def trade_side(self, snapshot: SymbolSnapshot, history: PriceHistory) -> Side:
        """Direction of the entry signalled by ``should_enter``."""

    def entry_price(self, snapshot: SymbolSnapshot) -> float:
        return _market_price(snapshot)

    def exit_price(self, trade: Trade, snapshot: SymbolSnapshot) -> float:
        return _market_price(snapshot)

    def position_size(self, snapshot: SymbolSnapshot, available_balance: float) -> float:
        return available_balance * self.risk_fraction

    def signal_strength(self, snapshot: SymbolSnapshot) -> float:
        return DEFAULT_SIGNAL_STRENGTH

    def is_active(self) -> bool:
        return self._active

    def has_history(self, history: PriceHistory | None) -> bool:
        return history is not None and len(history) >= self.min_history

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


def _market_price(snapshot: SymbolSnapshot) -> float:
    if snapshot.price is None:
        raise ValueError(f"No market price for symbol={snapshot.symbol}")
    return float(snapshot.price)


def previous_point(history: PriceHistory, steps_back: int = 1) -> SymbolSnapshot | None:
    """Point ``steps_back`` before the latest one, if the history reaches that far."""
    index = len(history) - 1 - steps_back
    if index < 0:
        return None
    return history[index]


def volume_ratio(snapshot: SymbolSnapshot, average: float | None) -> float | None:
    if snapshot.volume_24h is None or average is None or average == 0:
        return None
    return snapshot.volume_24h / average
