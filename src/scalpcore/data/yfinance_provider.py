from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any, cast

import pandas as pd
import yfinance as yf  # type: ignore[import-untyped]

from scalpcore.data.base import MarketDataSource
from scalpcore.domain.models import SymbolSnapshot

logger = logging.getLogger(__name__)

# yfinance only serves intraday bars for a limited look-back
_INTRADAY_PERIODS = {"1m": "5d", "2m": "5d", "5m": "5d", "15m": "5d", "30m": "5d", "1h": "5d"}


class YFinanceMarketData(MarketDataSource):
    def __init__(self, universe: Sequence[str]) -> None:
        self.universe = [s.strip().upper() for s in universe if s.strip()]

    def _download(self, symbol: str, period: str, interval: str) -> pd.DataFrame:
        frame = cast(
            pd.DataFrame,
            yf.download(
                symbol,
                period=period,
                interval=interval,
                progress=False,
                auto_adjust=True,
                threads=False,
            ),
        )
        if not frame.empty:
            return frame

        ticker = yf.Ticker(symbol)
        return cast(
            pd.DataFrame,
            ticker.history(
                period=period,
                interval=interval,
                auto_adjust=True,
            ),
        )

    def fetch_ohlcv(
        self,
        symbol: str,
        period: str = "5d",
        interval: str = "1m",
    ) -> pd.DataFrame:
        normalized_symbol = symbol.strip().upper()
        frame = self._download(normalized_symbol, period=period, interval=interval)
        if frame.empty:
            raise ValueError(
                "No data returned for "
                f"symbol={normalized_symbol} period={period} interval={interval}"
            )

        if isinstance(frame.columns, pd.MultiIndex):
            frame.columns = frame.columns.get_level_values(0)

        normalized = frame.rename(columns=str.lower)
        ordered_columns = ["open", "high", "low", "close", "volume"]
        missing = set(ordered_columns).difference(normalized.columns)
        if missing:
            raise ValueError(f"Missing expected columns: {sorted(missing)}")

        result: Any = normalized[ordered_columns].sort_index()
        return cast(pd.DataFrame, result)

    def fetch_active_symbols(self, selected: Iterable[str]) -> list[SymbolSnapshot]:
        symbols = [s.strip().upper() for s in selected if s.strip()] or self.universe
        snapshots: list[SymbolSnapshot] = []
        for symbol in symbols:
            try:
                frame = self.fetch_ohlcv(symbol, period="5d", interval="1h")
            except ValueError:
                logger.warning("Skipping %s: no hourly data", symbol)
                continue
            snapshots.append(_snapshot_from_hourly(symbol, frame))
        return snapshots

    def fetch_history(self, symbol: str, interval: str, limit: int) -> list[SymbolSnapshot]:
        """Latest ``limit`` bars, oldest first.

        ``volume_24h`` on each point is the trailing 24 h volume up to that bar,
        the same unit ``fetch_active_symbols`` reports.
        """
        if limit <= 0:
            raise ValueError("limit must be greater than zero")
        period = _INTRADAY_PERIODS.get(interval, "1mo")
        frame = self.fetch_ohlcv(symbol, period=period, interval=interval)
        frame = frame.assign(volume_24h=_trailing_day_volume(frame)).tail(limit)
        normalized_symbol = symbol.strip().upper()
        return [
            SymbolSnapshot(
                symbol=normalized_symbol,
                price=float(row.close),
                volume_24h=float(row.volume_24h),
                last_updated=_to_datetime(index),
            )
            for index, row in zip(frame.index, frame.itertuples(index=False), strict=True)
        ]


def _trailing_day_volume(frame: pd.DataFrame) -> pd.Series:
    # time-based window over the sorted DatetimeIndex from fetch_ohlcv
    return frame["volume"].rolling("24h").sum()


def _snapshot_from_hourly(symbol: str, frame: pd.DataFrame) -> SymbolSnapshot:
    last_day = frame.tail(24)
    close = frame["close"]
    reference = float(close.iloc[-25]) if len(close) > 24 else float(close.iloc[0])
    price = float(close.iloc[-1])
    change = ((price / reference) - 1.0) * 100.0 if reference else 0.0
    return SymbolSnapshot(
        symbol=symbol,
        price=price,
        volume_24h=float(last_day["volume"].sum()),
        price_change_24h=change,
        is_active=True,
        last_updated=_to_datetime(frame.index[-1]),
    )


def _to_datetime(value: object) -> datetime:
    if isinstance(value, pd.Timestamp):
        stamp = value.to_pydatetime()
    elif isinstance(value, datetime):
        stamp = value
    else:
        return datetime.now(UTC)
    if stamp.tzinfo is None:
        return stamp.replace(tzinfo=UTC)
    return stamp
