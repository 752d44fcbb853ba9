# pg_healthcheck/report.py
# -*- coding: utf-8 -*-
"""
Plain-text report file, laid out like `psql -At` output under section headers.

Dates, intervals, numerics and bytea arrive as the server's own text
(see database.register_text_loaders), so only NULL and booleans need work here.
"""
from __future__ import annotations

import datetime
from typing import Any, Iterable, Optional, Sequence

from pg_healthcheck.errors import OutputWriteError

TITLE = "PostgreSQL Health Check Report"
SEPARATOR = "-" * 40


def format_generated_on(dt: datetime.datetime) -> str:
    """Layout of date(1): day padded with a space, e.g. 'Mon Oct  5 09:03:00 UTC 2026'."""
    return f"{dt:%a %b} {dt.day:2d} {dt:%H:%M:%S %Z %Y}"


def format_value(value: Any, null_display: str = "") -> str:
    """Render one field the way psql prints it in unaligned mode."""
    if value is None:
        return null_display
    if isinstance(value, bool):
        return "t" if value else "f"
    return str(value)


def format_row(row: Sequence[Any], delimiter: str = "|", null_display: str = "") -> str:
    return delimiter.join(format_value(v, null_display) for v in row)


class ReportWriter:
    """
    Writes the report in one pass. Every block is flushed before the
    next section starts, so an interrupted run leaves whole sections.
    """

    def __init__(self, path: str, delimiter: str = "|", null_display: str = ""):
        self.path = path
        self.delimiter = delimiter
        self.null_display = null_display
        self._fh = None

    def open(self) -> "ReportWriter":
        try:
            self._fh = open(self.path, "w", encoding="utf-8")
        except OSError as exc:
            raise OutputWriteError(f"cannot create report file {self.path}: {exc}") from exc
        return self

    def close(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        try:
            fh.close()
        except OSError as exc:
            raise OutputWriteError(f"cannot close report file {self.path}: {exc}") from exc

    def __enter__(self) -> "ReportWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _write_lines(self, lines: Iterable[str]) -> None:
        if self._fh is None:
            raise OutputWriteError(f"report file {self.path} is not open")
        try:
            for line in lines:
                self._fh.write(line + "\n")
            self._fh.flush()
        except OSError as exc:
            raise OutputWriteError(f"cannot write report file {self.path}: {exc}") from exc

    def write_banner(self, generated_at: datetime.datetime) -> None:
        self._write_lines([TITLE, f"Generated on: {format_generated_on(generated_at)}", SEPARATOR])

    def write_section(self, header: str, rows: Iterable[Sequence[Any]]) -> None:
        lines = [header]
        lines.extend(format_row(r, self.delimiter, self.null_display) for r in rows)
        self._write_lines(lines)

    def write_section_error(self, header: str, message: str, sqlstate: Optional[str] = None) -> None:
        marker = f"ERROR [{sqlstate}]: {message}" if sqlstate else f"ERROR: {message}"
        self._write_lines([header, marker])
