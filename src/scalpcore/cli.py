from __future__ import annotations

import argparse
import json
import logging

import uvicorn

from scalpcore.config import Settings, split_names
from scalpcore.data.yfinance_provider import YFinanceMarketData
from scalpcore.execution.models import TradeStatus, trade_to_dict
from scalpcore.indicators import IndicatorSettings, refresh_indicators
from scalpcore.logging_config import configure_logging
from scalpcore.scheduler import CycleRunner, CycleScheduler, build_scheduler, report_to_dict
from scalpcore.storage import InMemorySink, TradeStorage
from scalpcore.strategy import default_strategies

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="scalpcore CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    cycle = subparsers.add_parser("cycle", help="Run a single trading cycle")
    cycle.add_argument("--symbols", default=None, help="Comma-separated symbols")
    cycle.add_argument("--database-url", default=None)

    run = subparsers.add_parser("run", help="Run trading cycles periodically")
    run.add_argument("--symbols", default=None, help="Comma-separated symbols")
    run.add_argument("--interval-seconds", type=float, default=None)
    run.add_argument("--max-cycles", type=int, default=None)
    run.add_argument("--database-url", default=None)

    indicators = subparsers.add_parser("indicators", help="Compute indicators for one symbol")
    indicators.add_argument("--symbol", required=True)
    indicators.add_argument("--interval", default=None)
    indicators.add_argument("--limit", type=int, default=None)

    subparsers.add_parser("strategies", help="List registered strategies")

    serve = subparsers.add_parser("serve", help="Start the control API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    db_init = subparsers.add_parser("db-init", help="Initialize persistence schema")
    db_init.add_argument("--database-url", default=None)

    db_trades = subparsers.add_parser("db-trades", help="List recent persisted trades")
    db_trades.add_argument("--database-url", default=None)
    db_trades.add_argument("--limit", type=int, default=20)
    db_trades.add_argument("--status", choices=[str(s) for s in TradeStatus], default=None)

    db_signals = subparsers.add_parser("db-signals", help="List recent persisted signals")
    db_signals.add_argument("--database-url", default=None)
    db_signals.add_argument("--limit", type=int, default=20)

    db_audit = subparsers.add_parser("db-audit", help="List recent API audit events")
    db_audit.add_argument("--database-url", default=None)
    db_audit.add_argument("--limit", type=int, default=100)

    return parser


def _universe(args: argparse.Namespace, settings: Settings) -> list[str]:
    symbols = split_names(getattr(args, "symbols", None) or "")
    if symbols:
        return symbols
    return split_names(settings.selected_symbols) or split_names(settings.default_symbols)


def _build_cli_scheduler(args: argparse.Namespace, settings: Settings) -> CycleScheduler:
    storage = _get_storage(settings, getattr(args, "database_url", None))
    sink = storage if storage is not None else InMemorySink()
    scheduler = build_scheduler(
        settings,
        YFinanceMarketData(_universe(args, settings)),
        signal_sink=sink,
        trade_sink=sink,
    )
    scheduler.start_trading()
    return scheduler


def _handle_cycle(args: argparse.Namespace, settings: Settings) -> int:
    scheduler = _build_cli_scheduler(args, settings)
    report = scheduler.run_cycle()
    print(json.dumps(report_to_dict(report)))
    return 1 if report.error else 0


def _handle_run(args: argparse.Namespace, settings: Settings) -> int:
    interval = (
        settings.cycle_interval_seconds if args.interval_seconds is None else args.interval_seconds
    )
    if interval <= 0:
        raise SystemExit("interval-seconds must be greater than zero")
    if args.max_cycles is not None and args.max_cycles <= 0:
        raise SystemExit("max-cycles must be greater than zero")

    scheduler = _build_cli_scheduler(args, settings)
    if args.max_cycles is None:
        runner = CycleRunner(scheduler, interval_seconds=interval)
        try:
            runner.run_forever()
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping")
        return 0

    for _ in range(args.max_cycles):
        report = scheduler.run_cycle()
        print(json.dumps(report_to_dict(report)))
    return 0


def _handle_indicators(args: argparse.Namespace, settings: Settings) -> int:
    interval = args.interval or settings.history_interval
    limit = settings.history_limit if args.limit is None else args.limit
    if limit <= 0:
        raise SystemExit("limit must be greater than zero")

    provider = YFinanceMarketData([args.symbol])
    history = provider.fetch_history(args.symbol, interval, limit)
    if not history:
        raise SystemExit(f"No history returned for {args.symbol}")
    snapshot = history[-1]
    refreshed = refresh_indicators(snapshot, history, IndicatorSettings.from_settings(settings))
    payload = {
        "symbol": args.symbol,
        "points": len(history),
        "price": snapshot.price,
        "refreshed": refreshed,
        "rsi": snapshot.rsi,
        "bollinger_upper": snapshot.bollinger_upper,
        "bollinger_lower": snapshot.bollinger_lower,
        "ema_fast": snapshot.ema_fast,
        "ema_slow": snapshot.ema_slow,
        "support": snapshot.support,
        "resistance": snapshot.resistance,
    }
    print(json.dumps(payload))
    return 0


def _handle_strategies(settings: Settings) -> int:
    selected = set(split_names(settings.selected_strategies))
    payload = {
        "strategies": [
            {
                "name": strategy.name,
                "priority": strategy.priority,
                "min_history": strategy.min_history,
                "active": strategy.is_active(),
                "selected": not selected or strategy.name in selected,
            }
            for strategy in default_strategies(settings.ema_fast_period, settings.ema_slow_period)
        ]
    }
    print(json.dumps(payload))
    return 0


def _handle_serve(args: argparse.Namespace) -> int:
    uvicorn.run("scalpcore.web.app:create_app", factory=True, host=args.host, port=args.port)
    return 0


def _handle_db_init(args: argparse.Namespace, settings: Settings) -> int:
    storage = _require_storage(settings, args.database_url)
    storage.init_schema()
    print(json.dumps({"status": "ok"}))
    return 0


def _handle_db_trades(args: argparse.Namespace, settings: Settings) -> int:
    if args.limit <= 0:
        raise SystemExit("limit must be greater than zero")
    storage = _require_storage(settings, args.database_url)
    status = TradeStatus(args.status) if args.status else None
    rows = storage.list_trades(limit=args.limit, status=status)
    print(json.dumps({"trades": [trade_to_dict(row) for row in rows]}))
    return 0


def _handle_db_signals(args: argparse.Namespace, settings: Settings) -> int:
    if args.limit <= 0:
        raise SystemExit("limit must be greater than zero")
    storage = _require_storage(settings, args.database_url)
    rows = storage.list_signals(limit=args.limit)
    payload = {
        "signals": [
            {
                "signal_id": row.signal_id,
                "created_at": row.created_at,
                "symbol": row.symbol,
                "strategy": row.strategy,
                "signal_type": row.signal_type,
                "score": row.score,
                "executed": row.executed,
                "reason": row.reason,
            }
            for row in rows
        ]
    }
    print(json.dumps(payload))
    return 0


def _handle_db_audit(args: argparse.Namespace, settings: Settings) -> int:
    if args.limit <= 0:
        raise SystemExit("limit must be greater than zero")
    storage = _require_storage(settings, args.database_url)
    events = storage.list_audit_events(limit=args.limit)
    payload = {
        "events": [
            {
                "event_id": row.event_id,
                "created_at": row.created_at,
                "method": row.method,
                "path": row.path,
                "status_code": row.status_code,
                "request_id": row.request_id,
                "actor_role": row.actor_role,
            }
            for row in events
        ]
    }
    print(json.dumps(payload))
    return 0


def _get_storage(settings: Settings, override_database_url: str | None) -> TradeStorage | None:
    database_url = override_database_url or settings.database_url
    if not database_url:
        return None
    storage = TradeStorage(database_url)
    storage.init_schema()
    return storage


def _require_storage(settings: Settings, override_database_url: str | None) -> TradeStorage:
    storage = _get_storage(settings, override_database_url)
    if storage is None:
        raise SystemExit("database-url is required (or set SCALPC_DATABASE_URL)")
    return storage


def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level)

    parser = _build_parser()
    args = parser.parse_args()

    try:
        if args.command == "cycle":
            raise SystemExit(_handle_cycle(args, settings))
        if args.command == "run":
            raise SystemExit(_handle_run(args, settings))
        if args.command == "indicators":
            raise SystemExit(_handle_indicators(args, settings))
        if args.command == "strategies":
            raise SystemExit(_handle_strategies(settings))
        if args.command == "serve":
            raise SystemExit(_handle_serve(args))
        if args.command == "db-init":
            raise SystemExit(_handle_db_init(args, settings))
        if args.command == "db-trades":
            raise SystemExit(_handle_db_trades(args, settings))
        if args.command == "db-signals":
            raise SystemExit(_handle_db_signals(args, settings))
        if args.command == "db-audit":
            raise SystemExit(_handle_db_audit(args, settings))
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    raise SystemExit("Unknown command")


if __name__ == "__main__":
    main()
