# pg_healthcheck/database.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
import time

from psycopg.types.string import TextLoader
from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine
from sqlalchemy.pool import NullPool

from pg_healthcheck.settings import ConnectionParameters

# ---------- Диагностика: лог «медленных» SQL ----------
SLOW_MS = 1000  # порог по умолчанию, переопределяется SLOW_SQL_MS


def build_url(params: ConnectionParameters) -> URL:
    """Собираем URL для SQLAlchemy с драйвером psycopg (psycopg3)."""
    return URL.create(
        drivername="postgresql+psycopg",
        username=params.user,
        password=params.password or None,
        host=params.host,
        port=params.port,
        database=params.dbname,
    )


def build_connect_args(params: ConnectionParameters) -> dict:
    connect_args: dict = {
        "connect_timeout": params.connect_timeout,
        "application_name": params.application_name,
    }
    sslmode = params.effective_sslmode
    if sslmode:
        connect_args["sslmode"] = sslmode
    return connect_args


def make_engine(params: ConnectionParameters, *, slow_ms: int = SLOW_MS) -> Engine:
    """
    Engine на одно соединение: без пула (NullPool) и в AUTOCOMMIT,
    чтобы упавшая секция не оставляла транзакцию в состоянии aborted.
    """
    engine = create_engine(
        build_url(params),
        poolclass=NullPool,
        isolation_level="AUTOCOMMIT",
        connect_args=build_connect_args(params),
    )
    event.listen(engine, "connect", _on_connect)
    install_slow_sql_log(engine, slow_ms)
    return engine


# ======================================================================
#  Типы, которые psql печатает текстом сервера (timestamptz, interval, ...)
#  грузим как str: иначе Python отрисует их по-своему
#  ("1 day, 2:00:00" вместо "1 day 02:00:00").
# ======================================================================
TEXT_TYPES = (
    "timestamptz", "timestamp", "date", "time", "timetz", "interval",
    "numeric", "float4", "float8", "bytea", "json", "jsonb",
    "inet", "cidr", "uuid",
)


def register_text_loaders(dbapi_connection) -> None:
    for name in TEXT_TYPES:
        dbapi_connection.adapters.register_loader(name, TextLoader)


def _on_connect(dbapi_connection, connection_record):
    register_text_loaders(dbapi_connection)


def install_slow_sql_log(engine: Engine, slow_ms: int) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.time()

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = getattr(context, "_query_start_time", None)
        if start is None:
            return
        total_ms = (time.time() - start) * 1000.0
        if total_ms >= slow_ms:
            # Упрощаем запрос в одну строку, чтобы лог был читаемым
            stmt_flat = " ".join(str(statement).split())
            logging.getLogger("sql.slow").warning("SQL %.1f ms | %s", total_ms, stmt_flat[:500])
