"""Periodic trading cycle: refresh data, manage the open trade, pick new entries."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from threading import Event, Lock, Thread
from time import monotonic
from typing import Protocol

from scalpcore.config import Settings, split_names
from scalpcore.data.base import BalanceSource, MarketDataSource, StaticBalanceSource
from scalpcore.domain.models import (
    PriceHistory,
    Signal,
    SignalType,
    SymbolSnapshot,
    signal_to_dict,
    utc_now,
)
from scalpcore.execution.models import Trade, TradeStatus, trade_to_dict
from scalpcore.execution.trade_manager import TradeManager
from scalpcore.indicators import IndicatorSettings, refresh_indicators
from scalpcore.rate_limit import AdmissionController, RateWindowConfig
from scalpcore.scoring import ScoredCandidate, find_best_candidate, find_first_candidate
from scalpcore.storage import SignalSink, TradeSink
from scalpcore.strategies.base import TradingStrategy
from scalpcore.strategy import default_strategies, select_strategies, strategy_by_name

logger = logging.getLogger(__name__)

MARKET_DATA_RESOURCE = "market_data"
BALANCE_RESOURCE = "balance"


@dataclass(slots=True, frozen=True)
class RiskParameters:
    position_size_percent: float = 5.0
    min_strategy_score: float = 0.5
    auto_select_best_strategy: bool = True


class ConfigProvider(Protocol):
    def selected_strategy_names(self) -> list[str]: ...

    def selected_symbols(self) -> list[str]: ...

    def risk_parameters(self) -> RiskParameters: ...


class SettingsConfigProvider:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def selected_strategy_names(self) -> list[str]:
        return split_names(self.settings.selected_strategies)

    def selected_symbols(self) -> list[str]:
        return split_names(self.settings.selected_symbols)

    def risk_parameters(self) -> RiskParameters:
        return RiskParameters(
            position_size_percent=self.settings.position_size_percent,
            min_strategy_score=self.settings.min_strategy_score,
            auto_select_best_strategy=self.settings.auto_select_best_strategy,
        )


class TradingContext:
    """Shared trading state: the enabled flag, the balance and the active-trade slot.

    The lock only guards in-memory updates; callers never hold it across
    network calls. Readers always receive copies.
    """

    def __init__(self, available_balance: float, trading_enabled: bool = False) -> None:
        self._lock = Lock()
        self._trading_enabled = trading_enabled
        self._available_balance = available_balance
        self._active_trades: dict[str, Trade] = {}

    @property
    def trading_enabled(self) -> bool:
        return self._trading_enabled

    @trading_enabled.setter
    def trading_enabled(self, value: bool) -> None:
        with self._lock:
            self._trading_enabled = value

    @property
    def available_balance(self) -> float:
        return self._available_balance

    @available_balance.setter
    def available_balance(self, value: float) -> None:
        with self._lock:
            self._available_balance = value

    def active_trades(self) -> dict[str, Trade]:
        with self._lock:
            return dict(self._active_trades)

    def has_open_trade(self) -> bool:
        with self._lock:
            return bool(self._active_trades)

    def add_trade(self, trade: Trade) -> bool:
        """Claim the single trade slot; False if any trade already holds it."""
        with self._lock:
            if self._active_trades:
                return False
            self._active_trades[trade.symbol] = trade
            return True

    def remove_trade(self, symbol: str) -> Trade | None:
        with self._lock:
            return self._active_trades.pop(symbol, None)


@dataclass(slots=True)
class CycleReport:
    started_at: datetime = field(default_factory=utc_now)
    skipped: bool = False
    symbols_scanned: int = 0
    indicators_refreshed: int = 0
    closed: list[Trade] = field(default_factory=list)
    opened: Trade | None = None
    signal: Signal | None = None
    error: str | None = None


def report_to_dict(report: CycleReport) -> dict[str, object]:
    return {
        "started_at": report.started_at.isoformat(),
        "skipped": report.skipped,
        "symbols_scanned": report.symbols_scanned,
        "indicators_refreshed": report.indicators_refreshed,
        "closed": [trade_to_dict(trade) for trade in report.closed],
        "opened": trade_to_dict(report.opened) if report.opened else None,
        "signal": signal_to_dict(report.signal) if report.signal else None,
        "error": report.error,
    }


class CycleScheduler:
    def __init__(
        self,
        *,
        market_data: MarketDataSource,
        config: ConfigProvider,
        trade_manager: TradeManager,
        limiter: AdmissionController,
        strategies: Sequence[TradingStrategy] | None = None,
        balance_source: BalanceSource | None = None,
        signal_sink: SignalSink | None = None,
        trade_sink: TradeSink | None = None,
        indicator_settings: IndicatorSettings | None = None,
        context: TradingContext | None = None,
        min_volume_24h: float = 1_000,
        history_interval: str = "1m",
        history_limit: int = 100,
        entry_history_limit: int = 50,
        fetch_wait_timeout: float = 5.0,
    ) -> None:
        self.market_data = market_data
        self.config = config
        self.trade_manager = trade_manager
        self.limiter = limiter
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.balance_source = balance_source
        self.signal_sink = signal_sink
        self.trade_sink = trade_sink
        self.indicator_settings = indicator_settings or IndicatorSettings()
        self.context = context or TradingContext(available_balance=0.0)
        self.min_volume_24h = min_volume_24h
        self.history_interval = history_interval
        self.history_limit = history_limit
        self.entry_history_limit = entry_history_limit
        self.fetch_wait_timeout = fetch_wait_timeout
        self._cycle_lock = Lock()
        self.last_report: CycleReport | None = None

    def start_trading(self) -> None:
        self.context.trading_enabled = True
        logger.info("Trading started")

    def stop_trading(self) -> None:
        self.context.trading_enabled = False
        logger.info("Trading stopped")

    def is_trading_enabled(self) -> bool:
        return self.context.trading_enabled

    def active_trades(self) -> dict[str, Trade]:
        return self.context.active_trades()

    def available_balance(self) -> float:
        return self.context.available_balance

    def run_cycle(self) -> CycleReport:
        """Run one full trading cycle; never raises."""
        report = CycleReport()
        if not self.is_trading_enabled():
            report.skipped = True
            return report

        with self._cycle_lock:
            try:
                self._execute_cycle(report)
            except Exception as exc:
                logger.exception("Error in trading cycle")
                report.error = str(exc)
            self.last_report = report
        return report

    def _execute_cycle(self, report: CycleReport) -> None:
        self._refresh_balance()

        snapshots = self._fetch_universe()
        active = [
            snapshot
            for snapshot in snapshots
            if snapshot.is_active
            and snapshot.volume_24h is not None
            and snapshot.volume_24h > self.min_volume_24h
        ]
        report.symbols_scanned = len(active)

        histories: dict[str, PriceHistory] = {}
        for snapshot in active:
            history = self._fetch_history(snapshot.symbol, self.history_limit)
            if not history:
                continue
            histories[snapshot.symbol] = history
            if refresh_indicators(snapshot, history, self.indicator_settings):
                report.indicators_refreshed += 1

        report.closed = self._check_exits(active, histories)

        if self.context.has_open_trade():
            return
        report.opened, report.signal = self._check_entries(active)

    def _refresh_balance(self) -> None:
        if self.balance_source is None:
            return
        if not self.limiter.admit(BALANCE_RESOURCE):
            logger.debug("Balance refresh skipped: rate window still closed")
            return
        try:
            self.context.available_balance = float(self.balance_source.current_balance())
        except Exception:
            logger.warning(
                "Balance refresh failed, keeping %.2f",
                self.context.available_balance,
                exc_info=True,
            )

    def _fetch_universe(self) -> list[SymbolSnapshot]:
        if not self.limiter.wait_until_admitted(
            MARKET_DATA_RESOURCE, timeout=self.fetch_wait_timeout
        ):
            logger.warning("Market data quota exhausted, no symbols this cycle")
            return []
        try:
            return list(self.market_data.fetch_active_symbols(self.config.selected_symbols()))
        except Exception:
            logger.warning("Symbol fetch failed", exc_info=True)
            return []

    def _fetch_history(self, symbol: str, limit: int) -> list[SymbolSnapshot]:
        if not self.limiter.wait_until_admitted(
            MARKET_DATA_RESOURCE, timeout=self.fetch_wait_timeout
        ):
            logger.warning("Market data quota exhausted, skipping history for %s", symbol)
            return []
        try:
            return list(self.market_data.fetch_history(symbol, self.history_interval, limit))
        except Exception:
            logger.warning("History fetch failed for %s", symbol, exc_info=True)
            return []

    def _check_exits(
        self,
        active: Sequence[SymbolSnapshot],
        histories: dict[str, PriceHistory],
    ) -> list[Trade]:
        by_symbol = {snapshot.symbol: snapshot for snapshot in active}
        closed: list[Trade] = []
        for symbol, trade in self.context.active_trades().items():
            if trade.status != TradeStatus.OPEN:
                # cancelled from outside; free the slot
                self.context.remove_trade(symbol)
                continue
            snapshot = by_symbol.get(symbol)
            strategy = strategy_by_name(self.strategies, trade.strategy)
            if snapshot is None or strategy is None:
                continue

            self.trade_manager.close_trade(trade, snapshot, strategy, histories.get(symbol, ()))
            if trade.status != TradeStatus.CLOSED:
                continue
            self.context.remove_trade(symbol)
            self._record_trade(trade)
            closed.append(trade)
            logger.info(
                "Trade closed: %s %s exit=%.8f profit=%.8f (%.2f%%)",
                trade.symbol,
                trade.side,
                trade.exit_price or 0.0,
                trade.profit or 0.0,
                trade.profit_percent or 0.0,
            )
        return closed

    def _entry_candidates(
        self,
        active: Sequence[SymbolSnapshot],
    ) -> Iterator[tuple[SymbolSnapshot, PriceHistory]]:
        for snapshot in active:
            history = self._fetch_history(snapshot.symbol, self.entry_history_limit)
            if history:
                yield snapshot, history

    def _check_entries(
        self,
        active: Sequence[SymbolSnapshot],
    ) -> tuple[Trade | None, Signal | None]:
        strategies = select_strategies(self.strategies, self.config.selected_strategy_names())
        if not strategies or not active:
            return None, None

        risk = self.config.risk_parameters()
        finder = find_best_candidate if risk.auto_select_best_strategy else find_first_candidate
        best = finder(self._entry_candidates(active), strategies, risk.min_strategy_score)
        if best is None:
            return None, None
        return self._execute_entry(best, risk)

    def _execute_entry(
        self,
        best: ScoredCandidate,
        risk: RiskParameters,
    ) -> tuple[Trade | None, Signal]:
        snapshot, strategy = best.snapshot, best.strategy
        side = strategy.trade_side(snapshot, best.history)
        reason = (
            f"Best signal selected: {strategy.name} for {snapshot.symbol} "
            f"with score: {best.score:.2f}"
        )
        signal = Signal(
            symbol=snapshot.symbol,
            strategy=strategy.name,
            signal_type=SignalType(side.value),
            price=snapshot.price,
            score=best.score,
            reason=reason,
        )

        trade = self.trade_manager.open_trade(
            snapshot,
            strategy,
            best.history,
            self.context.available_balance,
            risk.position_size_percent,
        )
        if trade is not None and self.context.add_trade(trade):
            signal.executed = True
            signal.executed_at = utc_now()
            self._record_trade(trade)
            logger.info(
                "New trade opened: %s %s strategy=%s entry=%.8f qty=%.8f score=%.2f",
                trade.symbol,
                trade.side,
                trade.strategy,
                trade.entry_price,
                trade.quantity,
                best.score,
            )
        else:
            trade = None
            signal.reason = f"{reason} (trade not executed)"
            logger.warning("Signal for %s not executed", snapshot.symbol)

        self._record_signal(signal)
        return trade, signal

    def _record_trade(self, trade: Trade) -> None:
        if self.trade_sink is None:
            return
        try:
            self.trade_sink.record_trade(trade)
        except Exception:
            logger.exception("Failed to persist trade for %s", trade.symbol)

    def _record_signal(self, signal: Signal) -> None:
        if self.signal_sink is None:
            return
        try:
            self.signal_sink.record_signal(signal)
        except Exception:
            logger.exception("Failed to persist signal for %s", signal.symbol)


class CycleRunner:
    """Drives ``CycleScheduler.run_cycle`` at a fixed rate on a background thread."""

    def __init__(self, scheduler: CycleScheduler, interval_seconds: float = 30.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds
        self._stop = Event()
        self._thread: Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self.run_forever, name="scalpcore-cycle", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_forever(self) -> None:
        while not self._stop.is_set():
            started = monotonic()
            self.scheduler.run_cycle()
            elapsed = monotonic() - started
            self._stop.wait(max(0.0, self.interval_seconds - elapsed))


def build_limiter(settings: Settings) -> AdmissionController:
    market = RateWindowConfig(
        quota=settings.market_data_rate_quota,
        window_seconds=settings.market_data_rate_window_seconds,
    )
    balance = RateWindowConfig(
        quota=settings.balance_rate_quota,
        window_seconds=settings.balance_rate_window_seconds,
    )
    return AdmissionController(
        default=market,
        overrides={MARKET_DATA_RESOURCE: market, BALANCE_RESOURCE: balance},
    )


def build_scheduler(
    settings: Settings,
    market_data: MarketDataSource,
    *,
    balance_source: BalanceSource | None = None,
    signal_sink: SignalSink | None = None,
    trade_sink: TradeSink | None = None,
    limiter: AdmissionController | None = None,
) -> CycleScheduler:
    context = TradingContext(
        available_balance=settings.initial_balance,
        trading_enabled=settings.trading_enabled_on_start,
    )
    return CycleScheduler(
        market_data=market_data,
        config=SettingsConfigProvider(settings),
        trade_manager=TradeManager(
            maker_fee_rate=settings.maker_fee_rate,
            taker_fee_rate=settings.taker_fee_rate,
        ),
        limiter=limiter or build_limiter(settings),
        strategies=default_strategies(settings.ema_fast_period, settings.ema_slow_period),
        balance_source=balance_source or StaticBalanceSource(settings.initial_balance),
        signal_sink=signal_sink,
        trade_sink=trade_sink,
        indicator_settings=IndicatorSettings.from_settings(settings),
        context=context,
        min_volume_24h=settings.min_volume_24h,
        history_interval=settings.history_interval,
        history_limit=settings.history_limit,
        entry_history_limit=settings.entry_history_limit,
        fetch_wait_timeout=settings.fetch_wait_timeout_seconds,
    )
