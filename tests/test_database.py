# tests/test_database.py
# -*- coding: utf-8 -*-
import logging

import psycopg
import pytest
from psycopg.adapt import AdaptersMap
from psycopg.pq import Format
from sqlalchemy import create_engine, event, text

from pg_healthcheck.database import _on_connect, install_slow_sql_log, make_engine, register_text_loaders
from pg_healthcheck.settings import ConnectionParameters


class DriverConnection:
    """Only the part of a psycopg connection the loaders touch."""

    def __init__(self):
        self.adapters = AdaptersMap(psycopg.adapters)


@pytest.mark.parametrize("type_name", ["timestamptz", "timestamp", "interval", "numeric", "float8", "bytea"])
def test_server_text_types_load_as_text(type_name):
    conn = DriverConnection()
    oid = psycopg.adapters.types[type_name].oid

    register_text_loaders(conn)

    assert conn.adapters.get_loader(oid, Format.TEXT).__name__ == "TextLoader"


def test_text_loaders_stay_on_the_connection():
    register_text_loaders(DriverConnection())
    oid = psycopg.adapters.types["interval"].oid
    assert psycopg.adapters.get_loader(oid, Format.TEXT).__name__ != "TextLoader"


def test_make_engine_registers_connect_hook():
    params = ConnectionParameters(host="localhost", port=5432, user="app", password="", dbname="appdb")
    engine = make_engine(params)
    try:
        assert event.contains(engine, "connect", _on_connect)
    finally:
        engine.dispose()


def test_slow_statement_logged(caplog):
    engine = create_engine("sqlite://")
    install_slow_sql_log(engine, 0)

    with caplog.at_level(logging.WARNING, logger="sql.slow"):
        with engine.connect() as conn:
            conn.execute(text("SELECT\n    1"))

    messages = [r.getMessage() for r in caplog.records if r.name == "sql.slow"]
    assert any(m.endswith("| SELECT 1") for m in messages)


def test_fast_statement_not_logged(caplog):
    engine = create_engine("sqlite://")
    install_slow_sql_log(engine, 60_000)

    with caplog.at_level(logging.WARNING, logger="sql.slow"):
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    assert not [r for r in caplog.records if r.name == "sql.slow"]
