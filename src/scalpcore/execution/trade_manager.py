from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from scalpcore.domain.models import PriceHistory, SymbolSnapshot, utc_now
from scalpcore.execution.models import Trade, TradeStatus

if TYPE_CHECKING:
    from scalpcore.strategies.base import TradingStrategy

logger = logging.getLogger(__name__)


class TradeManager:
    """Opens and closes single trades on behalf of a strategy.

    OPEN is the only non-terminal status; CLOSED and CANCELLED trades are
    returned untouched by every operation.
    """

    def __init__(
        self,
        maker_fee_rate: float,
        taker_fee_rate: float,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if maker_fee_rate < 0:
            raise ValueError("maker_fee_rate must be non-negative")
        if taker_fee_rate < 0:
            raise ValueError("taker_fee_rate must be non-negative")
        self.maker_fee_rate = maker_fee_rate
        self.taker_fee_rate = taker_fee_rate
        self._clock = clock

    def open_trade(
        self,
        snapshot: SymbolSnapshot,
        strategy: TradingStrategy,
        history: PriceHistory,
        available_balance: float,
        position_size_percent: float,
    ) -> Trade | None:
        if not strategy.is_active():
            return None
        if not strategy.should_enter(snapshot, history):
            return None

        entry_price = strategy.entry_price(snapshot)
        if entry_price <= 0:
            logger.warning("Refusing to open %s at non-positive price %s", snapshot.symbol, entry_price)
            return None

        configured_size = available_balance * position_size_percent / 100.0
        size = min(configured_size, strategy.position_size(snapshot, available_balance))
        if size <= 0:
            logger.warning("Position size for %s is %.8f, nothing to open", snapshot.symbol, size)
            return None

        maker_fee = size * self.maker_fee_rate
        taker_fee = size * self.taker_fee_rate
        return Trade(
            symbol=snapshot.symbol,
            side=strategy.trade_side(snapshot, history),
            entry_price=entry_price,
            quantity=size / entry_price,
            strategy=strategy.name,
            entry_time=self._clock(),
            status=TradeStatus.OPEN,
            maker_fee=maker_fee,
            taker_fee=taker_fee,
            total_fees=maker_fee + taker_fee,
        )

    def close_trade(
        self,
        trade: Trade,
        snapshot: SymbolSnapshot,
        strategy: TradingStrategy,
        history: PriceHistory,
    ) -> Trade:
        if trade.status != TradeStatus.OPEN:
            return trade
        if not strategy.should_exit(trade, snapshot, history):
            return trade
        return self.settle(trade, strategy.exit_price(trade, snapshot))

    def settle(self, trade: Trade, exit_price: float) -> Trade:
        """Close ``trade`` at ``exit_price`` and book its net result."""
        if trade.status != TradeStatus.OPEN:
            return trade
        gross = trade.quantity * (exit_price - trade.entry_price)
        net = gross - trade.total_fees
        entry_value = trade.entry_value

        trade.exit_price = exit_price
        trade.exit_time = self._clock()
        trade.profit = net
        trade.profit_percent = (net / entry_value) * 100.0 if entry_value else 0.0
        trade.status = TradeStatus.CLOSED
        return trade

    def cancel_trade(self, trade: Trade, reason: str = "") -> Trade:
        if trade.status != TradeStatus.OPEN:
            return trade
        trade.status = TradeStatus.CANCELLED
        trade.exit_time = self._clock()
        if reason:
            trade.notes = reason
        return trade
