# tests/test_settings.py
# -*- coding: utf-8 -*-
import pytest
from pydantic import ValidationError

from pg_healthcheck.database import build_connect_args, build_url
from pg_healthcheck.settings import ConnectionParameters, Settings, load_settings


def test_db_env_names(clean_env):
    clean_env.setenv("DB_HOST", " db.internal ")
    clean_env.setenv("DB_PORT", "6432")
    clean_env.setenv("DB_USER", "app")
    clean_env.setenv("DB_PASSWORD", "secret")
    clean_env.setenv("DB_NAME", "appdb")

    params = Settings(_env_file=None).connection_params()

    assert params == ConnectionParameters(
        host="db.internal", port=6432, user="app", password="secret", dbname="appdb"
    )


def test_libpq_env_names(clean_env):
    clean_env.setenv("PGHOST", "pg.internal")
    clean_env.setenv("PGUSER", "postgres")
    clean_env.setenv("PGPASSWORD", "pw")
    clean_env.setenv("PGDATABASE", "postgres")

    s = Settings(_env_file=None)

    assert (s.DB_HOST, s.DB_PORT, s.DB_USER, s.DB_PASSWORD, s.DB_NAME) == (
        "pg.internal", 5432, "postgres", "pw", "postgres"
    )


def test_defaults(clean_env):
    clean_env.setenv("DB_USER", "app")
    clean_env.setenv("DB_NAME", "appdb")
    s = Settings(_env_file=None)
    assert s.DB_HOST == "localhost"
    assert s.OUTPUT_FILE == "healthcheck_result.txt"
    assert s.REPORT_DELIMITER == "|"
    assert s.FAIL_FAST is False


def test_missing_required(clean_env):
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_overrides_win_over_env(clean_env):
    clean_env.setenv("DB_HOST", "from-env")
    clean_env.setenv("DB_USER", "app")
    clean_env.setenv("DB_NAME", "appdb")

    s = load_settings(DB_HOST="from-flag", DB_PORT=None, OUTPUT_FILE="out.txt", FAIL_FAST=True)

    assert s.DB_HOST == "from-flag"
    assert s.DB_PORT == 5432
    assert s.OUTPUT_FILE == "out.txt"
    assert s.FAIL_FAST is True


def test_env_file(clean_env, tmp_path):
    env_file = tmp_path / "hc.env"
    env_file.write_text("DB_USER=file_user\nDB_NAME=file_db\nSLOW_SQL_MS=250\n", encoding="utf-8")
    clean_env.setenv("ENV_FILE", str(env_file))

    s = load_settings()

    assert (s.DB_USER, s.DB_NAME) == ("file_user", "file_db")
    assert s.SLOW_SQL_MS == 250


def test_masked_url_hides_password():
    p = ConnectionParameters(host="h", port=5432, user="app", password="secret", dbname="d")
    assert p.masked_url() == "postgresql+psycopg://app:***@h:5432/d"


@pytest.mark.parametrize(
    "host, sslmode, expected",
    [
        ("localhost", None, "disable"),
        ("127.0.0.1", None, "disable"),
        ("db.internal", None, None),
        ("localhost", "require", "require"),
    ],
)
def test_sslmode(host, sslmode, expected):
    p = ConnectionParameters(host=host, port=5432, user="u", password="", dbname="d", sslmode=sslmode)
    args = build_connect_args(p)
    assert args.get("sslmode") == expected
    assert args["connect_timeout"] == 10
    assert args["application_name"] == "pg_healthcheck"


def test_build_url():
    p = ConnectionParameters(host="h", port=6432, user="app", password="", dbname="d")
    url = build_url(p)
    assert url.drivername == "postgresql+psycopg"
    assert (url.host, url.port, url.username, url.password, url.database) == ("h", 6432, "app", None, "d")
