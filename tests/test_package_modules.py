from __future__ import annotations

import logging
import runpy
from datetime import datetime

import scalpcore
import scalpcore.data as data_mod
import scalpcore.domain as domain_mod
import scalpcore.execution as execution_mod
import scalpcore.strategies as strategies_mod
import scalpcore.web as web_mod
from scalpcore.domain.models import Signal, SignalType, SymbolSnapshot, closes, signal_to_dict
from scalpcore.logging_config import configure_logging


def test_top_level_package_exports() -> None:
    assert "Settings" in scalpcore.__all__
    assert isinstance(scalpcore.__version__, str)


def test_reexport_modules() -> None:
    assert "MarketDataSource" in data_mod.__all__
    assert "SymbolSnapshot" in domain_mod.__all__
    assert "TradeManager" in execution_mod.__all__
    assert "RsiScalpingStrategy" in strategies_mod.__all__
    assert "create_app" in web_mod.__all__


def test_domain_models_are_constructible() -> None:
    snapshot = SymbolSnapshot(symbol="BTC-USD", price=42_000.0, volume_24h=1_000.0)
    signal = Signal(
        symbol="BTC-USD",
        strategy="RSI Scalping",
        signal_type=SignalType.BUY,
        price=42_000.0,
        score=0.8123456789,
        reason="test",
        timestamp=datetime(2026, 1, 1),
    )
    assert snapshot.is_active is True
    assert snapshot.rsi is None
    payload = signal_to_dict(signal)
    assert payload["signal_type"] == "buy"
    assert payload["score"] == 0.812346


def test_closes_skips_missing_prices() -> None:
    history = [
        SymbolSnapshot(symbol="X", price=1.0),
        SymbolSnapshot(symbol="X", price=None),
        SymbolSnapshot(symbol="X", price=3.0),
    ]
    assert closes(history) == [1.0, 3.0]


def test_configure_logging_uses_uppercase_level(monkeypatch) -> None:
    captured: dict[str, object] = {}

    def _fake_basic_config(**kwargs) -> None:
        captured.update(kwargs)

    monkeypatch.setattr(logging, "basicConfig", _fake_basic_config)
    configure_logging("debug")
    assert captured["level"] == "DEBUG"


def test_main_module_invokes_cli_main(monkeypatch) -> None:
    called = {"count": 0}

    def _fake_main() -> None:
        called["count"] += 1

    monkeypatch.setattr("scalpcore.cli.main", _fake_main)
    runpy.run_module("scalpcore.__main__", run_name="__main__")
    assert called["count"] == 1
