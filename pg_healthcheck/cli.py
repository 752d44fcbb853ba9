# pg_healthcheck/cli.py
# -*- coding: utf-8 -*-
"""
Отчёт о состоянии PostgreSQL в текстовый файл.
Запуск:
  DB_USER=app DB_NAME=app python -m pg_healthcheck
  PGPASSWORD=secret python -m pg_healthcheck -H db.local -U app -d app -o report.txt
  python -m pg_healthcheck --section "Table Bloat" --section "Table Tuples"
  python -m pg_healthcheck --list-sections
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from pg_healthcheck.database import make_engine
from pg_healthcheck.errors import RunError, UnknownSectionError
from pg_healthcheck.logging_setup import setup_logging
from pg_healthcheck.runner import ReportRunner
from pg_healthcheck.sections import SECTIONS, select_sections
from pg_healthcheck.settings import load_settings

log = logging.getLogger("pg_healthcheck")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="pg-healthcheck",
        description="Run a fixed set of PostgreSQL diagnostic queries and save the output to a text report.",
        epilog="Password is read from DB_PASSWORD / PGPASSWORD (environment or .env).",
    )
    ap.add_argument("-H", "--host", help="сервер БД (DB_HOST / PGHOST)")
    ap.add_argument("-p", "--port", type=int, help="порт (DB_PORT / PGPORT)")
    ap.add_argument("-U", "--user", help="пользователь (DB_USER / PGUSER)")
    ap.add_argument("-d", "--dbname", help="база данных (DB_NAME / PGDATABASE)")
    ap.add_argument("-o", "--output", help="файл отчёта (OUTPUT_FILE), по умолчанию healthcheck_result.txt")
    ap.add_argument("--delimiter", help="разделитель полей в строках (REPORT_DELIMITER), по умолчанию '|'")
    ap.add_argument("--connect-timeout", type=int, help="таймаут подключения, сек (DB_CONNECT_TIMEOUT)")
    ap.add_argument("--fail-fast", action="store_true", default=None,
                    help="прервать отчёт на первой упавшей секции (FAIL_FAST)")
    ap.add_argument("--section", action="append", default=[], metavar="NAME",
                    help="выполнить только эту секцию; можно повторять")
    ap.add_argument("--list-sections", action="store_true", help="показать секции и выйти")
    ap.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                    help="уровень логов (LOG_LEVEL), по умолчанию INFO")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    if args.list_sections:
        for s in SECTIONS:
            print(s.name)
        return EXIT_OK

    setup_logging(args.log_level)

    try:
        sections = select_sections(args.section)
    except UnknownSectionError as exc:
        log.error("%s (known: %s)", exc, ", ".join(s.name for s in SECTIONS))
        return EXIT_USAGE

    try:
        settings = load_settings(
            DB_HOST=args.host,
            DB_PORT=args.port,
            DB_USER=args.user,
            DB_NAME=args.dbname,
            DB_CONNECT_TIMEOUT=args.connect_timeout,
            OUTPUT_FILE=args.output,
            REPORT_DELIMITER=args.delimiter,
            FAIL_FAST=args.fail_fast,
        )
    except ValidationError as exc:
        missing = ", ".join(str(e["loc"][0]) for e in exc.errors() if e.get("loc"))
        log.error("invalid configuration: %s", missing or exc)
        return EXIT_USAGE

    runner = ReportRunner(
        settings.connection_params(),
        sections,
        fail_fast=settings.FAIL_FAST,
        delimiter=settings.REPORT_DELIMITER,
        engine_factory=lambda p: make_engine(p, slow_ms=settings.SLOW_SQL_MS),
    )

    try:
        result = runner.run(settings.OUTPUT_FILE)
    except KeyboardInterrupt:
        log.warning("interrupted, report %s is incomplete", settings.OUTPUT_FILE)
        return EXIT_INTERRUPTED
    except RunError as exc:
        log.error("%s", exc)
        return EXIT_FAILED

    for name, message in result.sections_failed.items():
        log.warning("section '%s' recorded an error: %s", name, message)
    log.info("Health check completed. Results saved to %s", result.output_path)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
