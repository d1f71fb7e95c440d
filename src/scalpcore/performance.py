from __future__ import annotations

import math
from collections.abc import Iterable

from scalpcore.execution.models import Trade, TradeStatus


def _closed(trades: Iterable[Trade]) -> list[Trade]:
    return [t for t in trades if t.status == TradeStatus.CLOSED]


def total_profit(trades: Iterable[Trade]) -> float:
    return math.fsum(t.profit or 0.0 for t in _closed(trades))


def success_rate(trades: Iterable[Trade]) -> float:
    """Percentage of closed trades that booked a positive net profit."""
    closed = _closed(trades)
    if not closed:
        return 0.0
    winners = sum(1 for t in closed if (t.profit or 0.0) > 0)
    return winners / len(closed) * 100.0


def strategy_breakdown(trades: Iterable[Trade]) -> dict[str, dict[str, float | int]]:
    breakdown: dict[str, dict[str, float | int]] = {}
    for trade in _closed(trades):
        row = breakdown.setdefault(trade.strategy, {"trades": 0, "wins": 0, "profit": 0.0})
        row["trades"] += 1
        row["profit"] += trade.profit or 0.0
        if (trade.profit or 0.0) > 0:
            row["wins"] += 1
    return breakdown
