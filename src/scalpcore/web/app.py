from __future__ import annotations

import hmac
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, HTTPException, Request, Response

from scalpcore.config import Settings, split_names
from scalpcore.data.yfinance_provider import YFinanceMarketData
from scalpcore.domain.models import signal_to_dict
from scalpcore.execution.models import trade_to_dict
from scalpcore.performance import strategy_breakdown, success_rate, total_profit
from scalpcore.rate_limit import AdmissionController, RateWindowConfig
from scalpcore.scheduler import (
    BALANCE_RESOURCE,
    MARKET_DATA_RESOURCE,
    CycleRunner,
    CycleScheduler,
    build_scheduler,
    report_to_dict,
)
from scalpcore.storage import TradeStorage

logger = logging.getLogger(__name__)


def _request_role(request: Request, settings: Settings) -> str:
    if not settings.api_key and not settings.admin_api_key:
        return "anonymous"
    provided_key = request.headers.get("X-API-Key")
    if not provided_key:
        auth = request.headers.get("Authorization", "")
        if auth.lower().startswith("bearer "):
            provided_key = auth[7:].strip()
    if not provided_key:
        return ""
    if settings.admin_api_key and hmac.compare_digest(provided_key, settings.admin_api_key):
        return "admin"
    if settings.api_key and hmac.compare_digest(provided_key, settings.api_key):
        return "trader"
    return ""


def _require_role(request: Request, settings: Settings, allowed_roles: set[str]) -> str:
    role = _request_role(request, settings)
    if role == "anonymous":
        return role
    if not role:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if role not in allowed_roles:
        raise HTTPException(status_code=403, detail="Forbidden")
    return role


def _get_storage(settings: Settings) -> TradeStorage | None:
    if not settings.database_url:
        return None
    storage = TradeStorage(settings.database_url)
    storage.init_schema()
    return storage


def _default_scheduler(settings: Settings, storage: TradeStorage | None) -> CycleScheduler:
    universe = split_names(settings.selected_symbols) or split_names(settings.default_symbols)
    return build_scheduler(
        settings,
        YFinanceMarketData(universe),
        signal_sink=storage,
        trade_sink=storage,
    )


def create_app(scheduler: CycleScheduler | None = None) -> FastAPI:
    settings = Settings()
    storage = _get_storage(settings)
    engine = scheduler or _default_scheduler(settings, storage)
    runner = CycleRunner(engine, interval_seconds=settings.cycle_interval_seconds)
    limiter = AdmissionController(
        RateWindowConfig(
            quota=settings.api_rate_quota,
            window_seconds=settings.api_rate_window_seconds,
        )
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        runner.start()
        try:
            yield
        finally:
            runner.stop(timeout=5.0)

    app = FastAPI(title="scalpcore control API", version="0.1.0", lifespan=lifespan)
    app.state.scheduler = engine
    app.state.runner = runner

    @app.middleware("http")
    async def request_context_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        actor_role = _request_role(request, settings) or "unauthenticated"
        principal = request.headers.get("X-API-Key") or (
            request.client.host if request.client else "unknown"
        )
        request_id = request.headers.get("X-Request-ID", uuid4().hex)
        started = time.perf_counter()
        if request.url.path.startswith("/api/"):
            if not limiter.admit(principal):
                retry_after = limiter.time_until_reset(principal)
                response = Response(status_code=429, content='{"detail":"Rate limit exceeded"}')
                response.headers["Content-Type"] = "application/json"
                response.headers["Retry-After"] = str(max(1, int(retry_after)))
            else:
                response = await call_next(request)
        else:
            response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.2f}"
        logger.info(
            "%s %s status=%s request_id=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            request_id,
            elapsed_ms,
        )
        if storage is not None and request.url.path.startswith("/api/"):
            try:
                storage.record_audit_event(
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    request_id=request_id,
                    actor_role=actor_role,
                )
            except ValueError:
                logger.exception("Failed to persist audit event")
        return response

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok", "env": settings.env, "app": settings.app_name}

    @app.get("/readyz")
    def readyz() -> dict[str, str]:
        return {"status": "ready"}

    @app.get("/api/trading/status")
    def trading_status(request: Request) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        return {
            "trading_enabled": engine.is_trading_enabled(),
            "available_balance": engine.available_balance(),
            "active_trades": len(engine.active_trades()),
            "runner_alive": runner.running,
        }

    @app.post("/api/trading/start")
    def start_trading(request: Request) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        engine.start_trading()
        return {"trading_enabled": True}

    @app.post("/api/trading/stop")
    def stop_trading(request: Request) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        engine.stop_trading()
        return {"trading_enabled": False}

    @app.post("/api/trading/cycle")
    def run_cycle(request: Request) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        return report_to_dict(engine.run_cycle())

    @app.get("/api/trades/active")
    def active_trades(request: Request) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        return {
            "trades": {
                symbol: trade_to_dict(trade) for symbol, trade in engine.active_trades().items()
            }
        }

    @app.get("/api/trades/summary")
    def trades_summary(request: Request, limit: int = 500) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        if storage is None:
            raise HTTPException(status_code=400, detail="Persistence is not configured.")
        try:
            trades = storage.list_trades(limit=limit)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "trades": len(trades),
            "total_profit": round(total_profit(trades), 8),
            "success_rate": round(success_rate(trades), 4),
            "by_strategy": strategy_breakdown(trades),
        }

    @app.get("/api/signals")
    def signals(request: Request, limit: int = 50) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        if storage is None:
            raise HTTPException(status_code=400, detail="Persistence is not configured.")
        try:
            rows = storage.list_signals(limit=limit)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "signals": [
                {
                    "signal_id": row.signal_id,
                    "created_at": row.created_at,
                    "symbol": row.symbol,
                    "strategy": row.strategy,
                    "signal_type": row.signal_type,
                    "price": row.price,
                    "score": row.score,
                    "reason": row.reason,
                    "executed": row.executed,
                }
                for row in rows
            ]
        }

    @app.get("/api/signals/last")
    def last_signal(request: Request) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        report = engine.last_report
        if report is None or report.signal is None:
            return {"signal": None}
        return {"signal": signal_to_dict(report.signal)}

    @app.get("/api/rate-limiter/status")
    def rate_limiter_status(request: Request) -> dict[str, object]:
        _require_role(request, settings, allowed_roles={"trader", "admin"})
        return engine.limiter.status([MARKET_DATA_RESOURCE, BALANCE_RESOURCE])

    @app.post("/api/rate-limiter/reset/{resource}")
    def reset_rate_limiter(resource: str, request: Request) -> dict[str, str]:
        _require_role(request, settings, allowed_roles={"admin"})
        engine.limiter.reset(resource)
        return {"status": "success", "message": f"Counter reset for {resource}"}

    @app.post("/api/rate-limiter/reset-all")
    def reset_all_rate_limiters(request: Request) -> dict[str, str]:
        _require_role(request, settings, allowed_roles={"admin"})
        engine.limiter.reset_all()
        return {"status": "success", "message": "All counters reset"}

    return app


def run() -> None:
    uvicorn.run("scalpcore.web.app:create_app", factory=True, host="127.0.0.1", port=8000)
