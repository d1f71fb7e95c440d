"""Weighted scoring of (symbol, strategy) pairs and best-candidate selection.

A score is the sum of four independently capped factors:

- signal strength (weight 0.4), counted only while the strategy wants to enter
- indicator alignment (weight 0.3)
- 24h volume / liquidity (weight 0.2)
- strategy priority (weight 0.1)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from scalpcore.domain.models import PriceHistory, SymbolSnapshot
from scalpcore.strategies.base import TradingStrategy

SIGNAL_WEIGHT = 0.4
ALIGNMENT_WEIGHT = 0.3
VOLUME_WEIGHT = 0.2
PRIORITY_WEIGHT = 0.1


@dataclass(slots=True, frozen=True)
class ScoredCandidate:
    snapshot: SymbolSnapshot
    strategy: TradingStrategy
    score: float
    history: PriceHistory


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(value, high))


def indicator_alignment(snapshot: SymbolSnapshot) -> float:
    score = 0.5
    if snapshot.rsi is not None and 20.0 <= snapshot.rsi <= 80.0:
        score += 0.2
    if snapshot.volume_24h is not None and snapshot.volume_24h > 10_000:
        score += 0.2
    if snapshot.price_change_24h is not None and 0.5 < abs(snapshot.price_change_24h) < 5.0:
        score += 0.1
    return min(score, 1.0)


def volume_score(snapshot: SymbolSnapshot) -> float:
    volume = snapshot.volume_24h
    if volume is None:
        return 0.0
    if volume >= 1_000_000:
        return 1.0
    if volume >= 100_000:
        return 0.8
    if volume >= 10_000:
        return 0.5
    return 0.2


def score_strategy(
    snapshot: SymbolSnapshot,
    strategy: TradingStrategy,
    history: PriceHistory,
) -> float:
    score = 0.0
    if strategy.should_enter(snapshot, history):
        score += _clamp(strategy.signal_strength(snapshot)) * SIGNAL_WEIGHT
    score += indicator_alignment(snapshot) * ALIGNMENT_WEIGHT
    score += volume_score(snapshot) * VOLUME_WEIGHT
    score += min(strategy.priority / 10.0, 1.0) * PRIORITY_WEIGHT
    return min(score, 1.0)


def find_best_strategy(
    snapshot: SymbolSnapshot,
    strategies: Iterable[TradingStrategy],
    history: PriceHistory,
    min_score: float,
) -> TradingStrategy | None:
    """Highest scoring active strategy at or above ``min_score``; ties go to priority."""
    scored = [
        (score_strategy(snapshot, strategy, history), strategy)
        for strategy in strategies
        if strategy.is_active()
    ]
    admissible = [(score, strategy) for score, strategy in scored if score >= min_score]
    if not admissible:
        return None
    best = max(admissible, key=lambda item: (item[0], item[1].priority))
    return best[1]


def find_best_candidate(
    candidates: Iterable[tuple[SymbolSnapshot, PriceHistory]],
    strategies: Sequence[TradingStrategy],
    min_score: float,
) -> ScoredCandidate | None:
    """Scan every (symbol, strategy) pair and keep the strictly best entry.

    Only pairs whose strategy wants to enter are scored. Pairs scoring below
    ``min_score`` are ignored, and an equal score never replaces the current
    best, so the first pair seen wins ties.
    """
    best: ScoredCandidate | None = None
    best_score = 0.0
    for snapshot, history in candidates:
        if not history:
            continue
        for strategy in strategies:
            if not strategy.should_enter(snapshot, history):
                continue
            score = score_strategy(snapshot, strategy, history)
            if score >= min_score and score > best_score:
                best = ScoredCandidate(snapshot, strategy, score, history)
                best_score = score
    return best


def find_first_candidate(
    candidates: Iterable[tuple[SymbolSnapshot, PriceHistory]],
    strategies: Sequence[TradingStrategy],
    min_score: float,
) -> ScoredCandidate | None:
    """Stop at the first symbol that has any qualifying strategy."""
    for snapshot, history in candidates:
        if not history:
            continue
        entering = [s for s in strategies if s.should_enter(snapshot, history)]
        strategy = find_best_strategy(snapshot, entering, history, min_score)
        if strategy is not None:
            score = score_strategy(snapshot, strategy, history)
            return ScoredCandidate(snapshot, strategy, score, history)
    return None
