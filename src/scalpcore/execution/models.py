from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class Side(StrEnum):
    BUY = "buy"
    SELL = "sell"


class TradeStatus(StrEnum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class Trade:
    symbol: str
    side: Side
    entry_price: float
    quantity: float
    strategy: str
    entry_time: datetime
    status: TradeStatus = TradeStatus.OPEN
    maker_fee: float = 0.0
    taker_fee: float = 0.0
    total_fees: float = 0.0
    exit_price: float | None = None
    exit_time: datetime | None = None
    profit: float | None = None
    profit_percent: float | None = None
    notes: str = ""
    trade_id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    @property
    def entry_value(self) -> float:
        return self.entry_price * self.quantity


def trade_to_dict(trade: Trade) -> dict[str, object]:
    return {
        "trade_id": trade.trade_id,
        "symbol": trade.symbol,
        "side": str(trade.side),
        "status": str(trade.status),
        "strategy": trade.strategy,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "quantity": trade.quantity,
        "entry_time": trade.entry_time.isoformat(),
        "exit_time": trade.exit_time.isoformat() if trade.exit_time else None,
        "total_fees": trade.total_fees,
        "profit": trade.profit,
        "profit_percent": trade.profit_percent,
    }
