from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class SymbolSnapshot:
    """Latest market view of one symbol plus the indicators derived for it."""

    symbol: str
    price: float | None
    volume_24h: float | None = None
    price_change_24h: float | None = None
    is_active: bool = True
    last_updated: datetime = field(default_factory=utc_now)

    rsi: float | None = None
    bollinger_upper: float | None = None
    bollinger_lower: float | None = None
    ema_fast: float | None = None
    ema_slow: float | None = None
    support: float | None = None
    resistance: float | None = None


PriceHistory = Sequence[SymbolSnapshot]


def closes(history: PriceHistory) -> list[float]:
    return [point.price for point in history if point.price is not None]


class SignalType(StrEnum):
    BUY = "buy"
    SELL = "sell"


@dataclass(slots=True)
class Signal:
    symbol: str
    strategy: str
    signal_type: SignalType
    price: float | None
    score: float
    reason: str
    timestamp: datetime = field(default_factory=utc_now)
    executed: bool = False
    executed_at: datetime | None = None


def signal_to_dict(signal: Signal) -> dict[str, object]:
    return {
        "symbol": signal.symbol,
        "strategy": signal.strategy,
        "signal_type": str(signal.signal_type),
        "price": signal.price,
        "score": round(signal.score, 6),
        "reason": signal.reason,
        "timestamp": signal.timestamp.isoformat(),
        "executed": signal.executed,
    }
