from __future__ import annotations

import pandas as pd
import pytest

import scalpcore.data.yfinance_provider as yfp
from scalpcore.strategies import VolumeSpikeStrategy


def _hourly_frame(rows: int = 30) -> pd.DataFrame:
    index = pd.date_range("2026-01-01", periods=rows, freq="h", tz="UTC")
    close = [100.0 + i for i in range(rows)]
    return pd.DataFrame(
        {
            "Open": close,
            "High": [v + 1 for v in close],
            "Low": [v - 1 for v in close],
            "Close": close,
            "Volume": [10.0] * rows,
        },
        index=index,
    )


def test_fetch_ohlcv_rejects_empty_download(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(yfp.yf, "download", lambda *args, **kwargs: pd.DataFrame())

    class _Ticker:
        def history(self, *args, **kwargs) -> pd.DataFrame:
            return pd.DataFrame()

    monkeypatch.setattr(yfp.yf, "Ticker", lambda *args, **kwargs: _Ticker())
    provider = yfp.YFinanceMarketData(["BTC-USD"])

    with pytest.raises(ValueError, match="No data returned"):
        provider.fetch_ohlcv("BTC-USD")


def test_fetch_ohlcv_flattens_multiindex_and_orders_columns(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    index = pd.date_range("2026-01-01", periods=2, freq="min")
    frame = pd.DataFrame(
        {
            ("Open", "BTC-USD"): [100.0, 101.0],
            ("High", "BTC-USD"): [101.0, 102.0],
            ("Low", "BTC-USD"): [99.0, 100.0],
            ("Close", "BTC-USD"): [100.5, 101.5],
            ("Volume", "BTC-USD"): [1_000.0, 1_200.0],
        },
        index=index,
    )
    monkeypatch.setattr(yfp.yf, "download", lambda *args, **kwargs: frame)

    result = yfp.YFinanceMarketData([]).fetch_ohlcv("btc-usd")

    assert list(result.columns) == ["open", "high", "low", "close", "volume"]
    assert len(result) == 2


def test_fetch_ohlcv_rejects_missing_columns(monkeypatch: pytest.MonkeyPatch) -> None:
    index = pd.date_range("2026-01-01", periods=2, freq="min")
    frame = pd.DataFrame({"Open": [100.0, 101.0], "Close": [101.0, 102.0]}, index=index)
    monkeypatch.setattr(yfp.yf, "download", lambda *args, **kwargs: frame)

    with pytest.raises(ValueError, match="Missing expected columns"):
        yfp.YFinanceMarketData([]).fetch_ohlcv("BTC-USD")


def test_fetch_history_keeps_latest_points_oldest_first(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, object]] = []

    def _download(*args, **kwargs) -> pd.DataFrame:
        calls.append(kwargs)
        return _hourly_frame()

    monkeypatch.setattr(yfp.yf, "download", _download)

    history = yfp.YFinanceMarketData([]).fetch_history("eth-usd", "1m", 5)

    assert calls[0]["period"] == "5d"
    assert calls[0]["interval"] == "1m"
    assert [p.price for p in history] == [125.0, 126.0, 127.0, 128.0, 129.0]
    assert all(p.symbol == "ETH-USD" for p in history)
    assert history[-1].last_updated.tzinfo is not None
    # each point carries the trailing 24 hourly bars of volume
    assert history[-1].volume_24h == pytest.approx(240.0)


def test_fetch_active_symbols_builds_daily_snapshot(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(yfp.yf, "download", lambda *args, **kwargs: _hourly_frame())

    snapshots = yfp.YFinanceMarketData(["BTC-USD"]).fetch_active_symbols([])

    assert len(snapshots) == 1
    snapshot = snapshots[0]
    assert snapshot.symbol == "BTC-USD"
    assert snapshot.price == 129.0
    assert snapshot.volume_24h == pytest.approx(240.0)
    # 24 hourly bars back is the close at row 5
    assert snapshot.price_change_24h == pytest.approx((129.0 / 105.0 - 1.0) * 100.0)


def test_fetch_active_symbols_skips_symbols_without_data(monkeypatch: pytest.MonkeyPatch) -> None:
    def _download(symbol, *args, **kwargs) -> pd.DataFrame:
        return _hourly_frame() if symbol == "BTC-USD" else pd.DataFrame()

    class _Ticker:
        def history(self, *args, **kwargs) -> pd.DataFrame:
            return pd.DataFrame()

    monkeypatch.setattr(yfp.yf, "download", _download)
    monkeypatch.setattr(yfp.yf, "Ticker", lambda *args, **kwargs: _Ticker())

    snapshots = yfp.YFinanceMarketData([]).fetch_active_symbols(["BTC-USD", "NOPE-USD"])

    assert [s.symbol for s in snapshots] == ["BTC-USD"]


def test_uniform_volume_history_matches_snapshot_units(monkeypatch: pytest.MonkeyPatch) -> None:
    minutes = 2 * 24 * 60
    minute_index = pd.date_range("2026-01-01", periods=minutes, freq="min", tz="UTC")
    minute_close = [100.0 + 0.001 * i for i in range(minutes)]
    minute_frame = pd.DataFrame(
        {
            "Open": minute_close,
            "High": minute_close,
            "Low": minute_close,
            "Close": minute_close,
            "Volume": [1_000.0] * minutes,
        },
        index=minute_index,
    )
    # the same flow aggregated into hourly bars
    hourly_frame = _hourly_frame().assign(Volume=60_000.0)

    def _download(symbol, *args, **kwargs) -> pd.DataFrame:
        return hourly_frame if kwargs["interval"] == "1h" else minute_frame

    monkeypatch.setattr(yfp.yf, "download", _download)
    provider = yfp.YFinanceMarketData(["BTC-USD"])

    snapshot = provider.fetch_active_symbols([])[0]
    history = provider.fetch_history("BTC-USD", "1m", 50)

    assert snapshot.volume_24h == pytest.approx(1_440_000.0)
    assert all(p.volume_24h == pytest.approx(snapshot.volume_24h) for p in history)
    assert snapshot.price > history[-2].price
    assert VolumeSpikeStrategy().should_enter(snapshot, history) is False
