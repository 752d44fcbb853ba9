# pg_healthcheck/logging_setup.py
# -*- coding: utf-8 -*-
import logging
import os
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

__all__ = ["setup_logging", "SectionAdapter"]

class SectionAdapter(logging.LoggerAdapter):
    """Adapter для добавления имени секции отчёта (section=...) в extra."""
    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {}) or {}
        extra.setdefault("section", self.extra.get("section", "-"))
        kwargs["extra"] = extra
        return msg, kwargs

class EnsureSectionFilter(logging.Filter):
    """Гарантирует наличие record.section для любых логов (sqlalchemy, psycopg, etc.)."""
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "section"):
            setattr(record, "section", "-")
        return True

class OneLineFormatter(logging.Formatter):
    """Однострочный форматтер: переводы строк (многострочный SQL) склеиваем через ' | '."""
    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "section"):
            setattr(record, "section", "-")
        out = super().format(record)
        return out.replace("\r", " ").replace("\n", " | ")

class _SQLFilter(logging.Filter):
    """Фильтруем лишнее от SQLAlchemy. sql_mode: 0/off | short | full."""
    def __init__(self, mode: str):
        super().__init__()
        self.mode = (mode or "").lower()
    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name or ""
        if not name.startswith("sqlalchemy."):
            return True
        if self.mode in ("0", "false", "off", ""):
            return False
        if self.mode in ("full", "1", "true", "yes"):
            return True
        msg = record.getMessage().strip()
        if not msg:
            return False
        if msg.startswith("{") or msg.startswith("[cached") or msg.startswith("[generated") or msg.startswith("[raw"):
            return False
        if msg.startswith("BEGIN") or msg.startswith("COMMIT") or msg.startswith("ROLLBACK"):
            return False
        return True

def _dedupe_handlers(names):
    """Снять хендлеры у перечисленных логгеров и включить propagate к root."""
    for name in names:
        lg = logging.getLogger(name)
        for h in list(lg.handlers):
            lg.removeHandler(h)
        lg.propagate = True

def _reset_root_handlers():
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

def _install(handler: logging.Handler, level: int, sql_mode: str) -> None:
    handler.addFilter(EnsureSectionFilter())
    handler.addFilter(_SQLFilter(sql_mode))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)

def _setup_pretty(level: int, sql_mode: str):
    # логи в stderr, stdout оставляем программам, читающим вывод команды
    console = Console(stderr=True, soft_wrap=True)
    h = RichHandler(
        console=console,
        markup=False,  # в текстах ошибок PostgreSQL встречаются [...]
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    h.setFormatter(logging.Formatter("%(section)s | %(message)s"))  # время и уровень рисует Rich
    _install(h, level, sql_mode)

def _setup_plain(level: int, sql_mode: str):
    fmt = "%(asctime)s | %(levelname).1s | %(name)s | %(section)s | %(message)s"
    h = logging.StreamHandler(sys.stderr)
    h.setFormatter(OneLineFormatter(fmt, "%H:%M:%S"))
    _install(h, level, sql_mode)

def setup_logging(level: str | None = None) -> None:
    """
    Читает LOG_STYLE/LOG_LEVEL/LOG_SQL из окружения ИЛИ .env.
    Убирает дубли хендлеров SQLAlchemy и красит логи (Rich) при LOG_STYLE=pretty.
    """
    load_dotenv(dotenv_path=os.getenv("ENV_FILE", ".env"), override=False)

    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    lvl = getattr(logging, level_name, logging.INFO)
    style = (os.getenv("LOG_STYLE") or "plain").lower()
    sql_mode = (os.getenv("LOG_SQL") or "0").lower()

    _reset_root_handlers()
    _dedupe_handlers([
        "sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool", "sqlalchemy.dialects",
        "psycopg",
    ])

    if style in ("pretty", "dev"):
        _setup_pretty(lvl, sql_mode)
    else:
        _setup_plain(lvl, sql_mode)

    # уровни (шум приглушён)
    logging.getLogger("sqlalchemy").setLevel(logging.INFO if sql_mode not in ("0", "false", "off", "") else logging.WARNING)
    logging.getLogger("psycopg").setLevel(logging.WARNING)
