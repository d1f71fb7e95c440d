from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

from scalpcore.domain.models import Signal, SignalType
from scalpcore.execution.models import Side, Trade, TradeStatus


class SignalSink(Protocol):
    def record_signal(self, signal: Signal) -> None: ...


class TradeSink(Protocol):
    def record_trade(self, trade: Trade) -> None: ...


class InMemorySink:
    """Keeps recorded signals and trades in process; used in tests and dry runs."""

    def __init__(self) -> None:
        self.signals: list[Signal] = []
        self.trades: list[Trade] = []
        self._lock = Lock()

    def record_signal(self, signal: Signal) -> None:
        with self._lock:
            self.signals.append(signal)

    def record_trade(self, trade: Trade) -> None:
        with self._lock:
            if not any(existing is trade for existing in self.trades):
                self.trades.append(trade)


@dataclass(slots=True, frozen=True)
class StoredSignal:
    signal_id: int
    created_at: str
    symbol: str
    strategy: str
    signal_type: str
    price: float | None
    score: float
    reason: str
    executed: bool


@dataclass(slots=True, frozen=True)
class AuditEvent:
    event_id: int
    created_at: str
    method: str
    path: str
    status_code: int
    request_id: str
    actor_role: str


_TRADE_COLUMNS = (
    "symbol",
    "side",
    "status",
    "entry_price",
    "exit_price",
    "quantity",
    "strategy",
    "entry_time",
    "exit_time",
    "maker_fee",
    "taker_fee",
    "total_fees",
    "profit",
    "profit_percent",
    "notes",
)


class TradeStorage:
    """SQL persistence for trades, signals and API audit events."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("database_url must be non-empty")
        self.database_url = database_url
        self._is_postgres = database_url.startswith(("postgresql://", "postgres://"))
        self._sqlite_path: str | None
        if database_url.startswith("sqlite:///"):
            self._sqlite_path = database_url.removeprefix("sqlite:///")
        elif self._is_postgres:
            self._sqlite_path = None
        else:
            raise ValueError("database_url must start with sqlite:/// or postgresql://")

    def init_schema(self) -> None:
        with self._connect() as conn:
            self._run_schema_migrations(conn)
            conn.commit()

    def record_trade(self, trade: Trade) -> None:
        values = (
            trade.symbol,
            str(trade.side),
            str(trade.status),
            float(trade.entry_price),
            self._to_float_or_none(trade.exit_price),
            float(trade.quantity),
            trade.strategy,
            trade.entry_time.isoformat(),
            trade.exit_time.isoformat() if trade.exit_time else None,
            float(trade.maker_fee),
            float(trade.taker_fee),
            float(trade.total_fees),
            self._to_float_or_none(trade.profit),
            self._to_float_or_none(trade.profit_percent),
            trade.notes,
        )
        with self._connect() as conn:
            self._run_schema_migrations(conn)
            cur = conn.cursor()
            if trade.trade_id is None:
                placeholders = ", ".join("?" for _ in _TRADE_COLUMNS)
                self._execute(
                    cur,
                    f"INSERT INTO trades ({', '.join(_TRADE_COLUMNS)}) VALUES ({placeholders})",
                    values,
                )
                trade.trade_id = self._inserted_id(cur, "trade")
            else:
                assignments = ", ".join(f"{column} = ?" for column in _TRADE_COLUMNS)
                self._execute(
                    cur,
                    f"UPDATE trades SET {assignments} WHERE id = ?",
                    (*values, trade.trade_id),
                )
            conn.commit()

    def list_trades(self, limit: int = 100, status: TradeStatus | None = None) -> list[Trade]:
        if limit <= 0:
            raise ValueError("limit must be greater than zero")
        query = f"SELECT id, {', '.join(_TRADE_COLUMNS)} FROM trades"
        params: tuple[Any, ...] = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (str(status),)
        query += " ORDER BY id DESC LIMIT ?"
        with self._connect() as conn:
            self._run_schema_migrations(conn)
            cur = conn.cursor()
            self._execute(cur, query, (*params, int(limit)))
            rows = cur.fetchall()
        return [self._trade_from_row(row) for row in rows]

    def record_signal(self, signal: Signal) -> None:
        with self._connect() as conn:
            self._run_schema_migrations(conn)
            cur = conn.cursor()
            self._execute(
                cur,
                """
                INSERT INTO signals
                    (
                        created_at,
                        symbol,
                        strategy,
                        signal_type,
                        price,
                        score,
                        reason,
                        executed,
                        executed_at
                    )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    signal.timestamp.isoformat(),
                    signal.symbol,
                    signal.strategy,
                    str(signal.signal_type),
                    self._to_float_or_none(signal.price),
                    float(signal.score),
                    signal.reason,
                    1 if signal.executed else 0,
                    signal.executed_at.isoformat() if signal.executed_at else None,
                ),
            )
            conn.commit()

    def list_signals(self, limit: int = 50) -> list[StoredSignal]:
        if limit <= 0:
            raise ValueError("limit must be greater than zero")
        with self._connect() as conn:
            self._run_schema_migrations(conn)
            cur = conn.cursor()
            self._execute(
                cur,
                """
                SELECT id, created_at, symbol, strategy, signal_type, price, score, reason, executed
                FROM signals
                ORDER BY id DESC
                LIMIT ?
                """,
                (int(limit),),
            )
            rows = cur.fetchall()
        return [
            StoredSignal(
                signal_id=int(row[0]),
                created_at=str(row[1]),
                symbol=str(row[2]),
                strategy=str(row[3]),
                signal_type=str(SignalType(row[4])),
                price=self._to_float_or_none(row[5]),
                score=float(row[6]),
                reason=str(row[7]),
                executed=bool(row[8]),
            )
            for row in rows
        ]

    def record_audit_event(
        self,
        method: str,
        path: str,
        status_code: int,
        request_id: str,
        actor_role: str,
    ) -> int:
        created_at = datetime.now(UTC).isoformat()
        with self._connect() as conn:
            self._run_schema_migrations(conn)
            cur = conn.cursor()
            self._execute(
                cur,
                """
                INSERT INTO api_audit_logs
                    (created_at, method, path, status_code, request_id, actor_role)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (created_at, method, path, int(status_code), request_id, actor_role),
            )
            event_id = self._inserted_id(cur, "audit event")
            conn.commit()
        return event_id

    def list_audit_events(self, limit: int = 100) -> list[AuditEvent]:
        if limit <= 0:
            raise ValueError("limit must be greater than zero")
        with self._connect() as conn:
            self._run_schema_migrations(conn)
            cur = conn.cursor()
            self._execute(
                cur,
                """
                SELECT id, created_at, method, path, status_code, request_id, actor_role
                FROM api_audit_logs
                ORDER BY id DESC
                LIMIT ?
                """,
                (int(limit),),
            )
            rows = cur.fetchall()
        return [
            AuditEvent(
                event_id=int(row[0]),
                created_at=str(row[1]),
                method=str(row[2]),
                path=str(row[3]),
                status_code=int(row[4]),
                request_id=str(row[5]),
                actor_role=str(row[6]),
            )
            for row in rows
        ]

    def _connect(self) -> Any:
        if self._is_postgres:
            try:
                import psycopg
            except ImportError as exc:  # pragma: no cover
                raise ValueError(
                    "PostgreSQL URL configured but psycopg is not installed."
                ) from exc
            return psycopg.connect(self.database_url)

        assert self._sqlite_path is not None
        path = Path(self._sqlite_path)
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(path))

    def _run_schema_migrations(self, conn: Any) -> None:
        cur = conn.cursor()
        id_column = "BIGSERIAL PRIMARY KEY" if self._is_postgres else "INTEGER PRIMARY KEY AUTOINCREMENT"
        real = "DOUBLE PRECISION" if self._is_postgres else "REAL"
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS trades (
                id {id_column},
                symbol TEXT NOT NULL,
                side TEXT NOT NULL,
                status TEXT NOT NULL,
                entry_price {real} NOT NULL,
                exit_price {real},
                quantity {real} NOT NULL,
                strategy TEXT NOT NULL,
                entry_time TEXT NOT NULL,
                exit_time TEXT,
                maker_fee {real} NOT NULL,
                taker_fee {real} NOT NULL,
                total_fees {real} NOT NULL,
                profit {real},
                profit_percent {real},
                notes TEXT NOT NULL DEFAULT ''
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS signals (
                id {id_column},
                created_at TEXT NOT NULL,
                symbol TEXT NOT NULL,
                strategy TEXT NOT NULL,
                signal_type TEXT NOT NULL,
                price {real},
                score {real} NOT NULL,
                reason TEXT NOT NULL,
                executed INTEGER NOT NULL,
                executed_at TEXT
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS api_audit_logs (
                id {id_column},
                created_at TEXT NOT NULL,
                method TEXT NOT NULL,
                path TEXT NOT NULL,
                status_code INTEGER NOT NULL,
                request_id TEXT NOT NULL,
                actor_role TEXT NOT NULL
            )
            """
        )

    def _execute(self, cur: Any, query: str, params: tuple[Any, ...]) -> None:
        if self._is_postgres:
            pg_query = query.replace("?", "%s")
            if query.lstrip().startswith("INSERT INTO"):
                pg_query += " RETURNING id"
            cur.execute(pg_query, params)
        else:
            cur.execute(query, params)

    def _inserted_id(self, cur: Any, label: str) -> int:
        if self._is_postgres:
            inserted = cur.fetchone()
            if inserted is None:
                raise ValueError(f"Failed to read inserted {label} id")
            return int(inserted[0])
        return int(cur.lastrowid)

    def _trade_from_row(self, row: Any) -> Trade:
        return Trade(
            trade_id=int(row[0]),
            symbol=str(row[1]),
            side=Side(row[2]),
            status=TradeStatus(row[3]),
            entry_price=float(row[4]),
            exit_price=self._to_float_or_none(row[5]),
            quantity=float(row[6]),
            strategy=str(row[7]),
            entry_time=datetime.fromisoformat(str(row[8])),
            exit_time=datetime.fromisoformat(str(row[9])) if row[9] else None,
            maker_fee=float(row[10]),
            taker_fee=float(row[11]),
            total_fees=float(row[12]),
            profit=self._to_float_or_none(row[13]),
            profit_percent=self._to_float_or_none(row[14]),
            notes=str(row[15] or ""),
        )

    @staticmethod
    def _to_float_or_none(value: Any) -> float | None:
        if value is None:
            return None
        return float(value)
