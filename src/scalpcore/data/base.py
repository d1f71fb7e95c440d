from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from scalpcore.domain.models import SymbolSnapshot


class MarketDataSource(ABC):
    @abstractmethod
    def fetch_active_symbols(self, selected: Iterable[str]) -> list[SymbolSnapshot]:
        """Return snapshots for ``selected`` symbols, or the whole universe when empty."""

    @abstractmethod
    def fetch_history(self, symbol: str, interval: str, limit: int) -> list[SymbolSnapshot]:
        """Return up to ``limit`` price points for ``symbol``, oldest first."""


class BalanceSource(ABC):
    @abstractmethod
    def current_balance(self) -> float:
        """Return the balance available for new positions."""


class StaticBalanceSource(BalanceSource):
    def __init__(self, balance: float) -> None:
        if balance < 0:
            raise ValueError("balance must be non-negative")
        self.balance = balance

    def current_balance(self) -> float:
        return self.balance
