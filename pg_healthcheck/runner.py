# pg_healthcheck/runner.py
# -*- coding: utf-8 -*-
"""
ReportRunner: одно соединение, секции строго по порядку, результат в файл.

Политика ошибок:
- не удалось подключиться            -> DatabaseConnectionError, отчёта на диске нет
                                         (файл прошлого запуска удаляется);
- не удалось создать/записать файл    -> OutputWriteError;
- упала секция                        -> маркер ERROR в отчёте и дальше,
                                         либо SectionQueryError при fail_fast.
"""
from __future__ import annotations

import datetime
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from pg_healthcheck.database import make_engine
from pg_healthcheck.errors import DatabaseConnectionError, SectionQueryError
from pg_healthcheck.logging_setup import SectionAdapter
from pg_healthcheck.report import ReportWriter
from pg_healthcheck.sections import SECTIONS, ReportSection
from pg_healthcheck.settings import ConnectionParameters

log = logging.getLogger(__name__)


@dataclass
class RunResult:
    output_path: str
    sections_run: List[str] = field(default_factory=list)
    sections_failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.sections_failed


def describe_db_error(exc: BaseException) -> Tuple[str, Optional[str]]:
    """Текст ошибки драйвера (первая строка) и SQLSTATE, если он известен."""
    orig = getattr(exc, "orig", None) if isinstance(exc, DBAPIError) else None
    source = orig if orig is not None else exc
    sqlstate = getattr(source, "sqlstate", None)
    lines = str(source).strip().splitlines()
    message = lines[0] if lines else type(source).__name__
    return message, sqlstate


def discard_stale_report(output_path: str) -> None:
    """Отчёт прошлого запуска не должен пережить неудачное подключение."""
    try:
        os.remove(output_path)
    except FileNotFoundError:
        return
    except OSError as exc:
        log.warning("cannot remove previous report %s: %s", output_path, exc)
        return
    log.info("Removed previous report %s", output_path)


def _local_now() -> datetime.datetime:
    return datetime.datetime.now().astimezone()


class ReportRunner:
    def __init__(
        self,
        params: ConnectionParameters,
        sections: Sequence[ReportSection] = SECTIONS,
        *,
        fail_fast: bool = False,
        delimiter: str = "|",
        null_display: str = "",
        engine_factory: Callable = make_engine,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ):
        self.params = params
        self.sections = tuple(sections)
        self.fail_fast = fail_fast
        self.delimiter = delimiter
        self.null_display = null_display
        self.engine_factory = engine_factory
        self.clock = clock or _local_now

    def run(self, output_path: str) -> RunResult:
        result = RunResult(output_path=output_path)
        log.info("Connecting to %s", self.params.masked_url())
        engine = self.engine_factory(self.params)
        try:
            try:
                conn = engine.connect()
            except SQLAlchemyError as exc:
                message, _ = describe_db_error(exc)
                discard_stale_report(output_path)
                raise DatabaseConnectionError(
                    f"cannot connect to {self.params.masked_url()}: {message}"
                ) from exc

            with conn, ReportWriter(output_path, self.delimiter, self.null_display) as report:
                report.write_banner(self.clock())
                for section in self.sections:
                    self._run_section(conn, section, report, result)
        finally:
            engine.dispose()

        log.info(
            "Report written to %s: %d section(s) ok, %d failed",
            output_path, len(result.sections_run), len(result.sections_failed),
        )
        return result

    def _run_section(self, conn, section: ReportSection, report: ReportWriter, result: RunResult) -> None:
        slog = SectionAdapter(log, {"section": section.name})
        t0 = time.time()
        rows: list = []
        try:
            for stmt in section.statements:
                cursor = conn.execute(text(stmt))
                if cursor.returns_rows:
                    rows.extend(cursor.fetchall())
        except SQLAlchemyError as exc:
            message, sqlstate = describe_db_error(exc)
            # AUTOCOMMIT: откат ничего не отменяет, но сбрасывает состояние Connection
            conn.rollback()
            report.write_section_error(section.header, message, sqlstate)
            result.sections_failed[section.name] = message
            slog.warning("section failed: %s", message)
            if self.fail_fast:
                raise SectionQueryError(section.name, message) from exc
            return

        report.write_section(section.header, rows)
        result.sections_run.append(section.name)
        slog.info("%d row(s) in %.3fs", len(rows), time.time() - t0)
