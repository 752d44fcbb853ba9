# tests/conftest.py
# -*- coding: utf-8 -*-
"""Fake SQLAlchemy engine/connection so the runner can be tested without a server."""
from __future__ import annotations

import datetime

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError

from pg_healthcheck.settings import ConnectionParameters

ENV_KEYS = [
    "DB_HOST", "PGHOST", "DB_PORT", "PGPORT", "DB_USER", "PGUSER",
    "DB_PASSWORD", "PGPASSWORD", "DB_NAME", "PGDATABASE", "DB_SSLMODE", "PGSSLMODE",
    "DB_CONNECT_TIMEOUT", "PGCONNECT_TIMEOUT", "OUTPUT_FILE", "REPORT_DELIMITER",
    "FAIL_FAST", "SLOW_SQL_MS", "LOG_SQL", "LOG_LEVEL", "LOG_STYLE",
]


class PgError(Exception):
    """Stand-in for a psycopg error: message plus SQLSTATE."""

    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def sql_error(message, sqlstate=None):
    return ProgrammingError("SELECT ...", {}, PgError(message, sqlstate))


class FakeResult:
    def __init__(self, rows):
        self._rows = rows
        self.returns_rows = rows is not None

    def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, responses):
        # responses: [(substring of SQL, rows or exception)], first match wins
        self.responses = responses
        self.executed = []
        self.rollbacks = 0
        self.closed = False

    def execute(self, stmt):
        sql = stmt.text
        self.executed.append(sql)
        for needle, outcome in self.responses:
            if needle in sql:
                if isinstance(outcome, Exception):
                    raise outcome
                return FakeResult(outcome)
        return FakeResult([])

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeEngine:
    def __init__(self, responses=(), connect_error=None):
        self.connection = FakeConnection(list(responses))
        self.connect_error = connect_error
        self.disposed = False
        self.params = None

    def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        return self.connection

    def dispose(self):
        self.disposed = True

    def factory(self, params):
        self.params = params
        return self


def refused():
    return OperationalError("connect", None, PgError('connection to server at "localhost", port 1 failed: Connection refused'))


@pytest.fixture
def params():
    return ConnectionParameters(host="localhost", port=5432, user="app", password="secret", dbname="appdb")


@pytest.fixture
def fixed_clock():
    tz = datetime.timezone(datetime.timedelta(0), "UTC")
    return lambda: datetime.datetime(2026, 10, 19, 11, 49, 0, tzinfo=tz)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENV_FILE", str(tmp_path / "missing.env"))
    return monkeypatch
