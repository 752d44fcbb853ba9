# pg_healthcheck/settings.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_HOSTS = {"127.0.0.1", "localhost"}


@dataclass(frozen=True)
class ConnectionParameters:
    """Параметры подключения к одной базе. Создаются один раз на запуск."""

    host: str
    port: int
    user: str
    password: str
    dbname: str
    connect_timeout: int = 10
    sslmode: Optional[str] = None
    application_name: str = "pg_healthcheck"

    @property
    def effective_sslmode(self) -> Optional[str]:
        # Для локального хоста отключаем SSL-рукопожатие
        if self.sslmode:
            return self.sslmode
        if self.host in LOCAL_HOSTS:
            return "disable"
        return None

    def masked_url(self) -> str:
        """URL без пароля, только для логов."""
        return f"postgresql+psycopg://{quote_plus(self.user)}:***@{self.host}:{self.port}/{self.dbname}"


class Settings(BaseSettings):
    """
    Настройки отчёта.
    Источник: переменные окружения и/или .env. Для каждого поля подключения
    принимаются как DB_*, так и стандартные имена libpq (PGHOST, PGUSER, ...).
    """

    # --- База данных ---
    DB_HOST: str = Field("localhost", validation_alias=AliasChoices("DB_HOST", "PGHOST"))
    DB_PORT: int = Field(5432, validation_alias=AliasChoices("DB_PORT", "PGPORT"))
    DB_USER: str = Field(validation_alias=AliasChoices("DB_USER", "PGUSER"))
    DB_PASSWORD: str = Field("", validation_alias=AliasChoices("DB_PASSWORD", "PGPASSWORD"))
    DB_NAME: str = Field(validation_alias=AliasChoices("DB_NAME", "PGDATABASE"))
    DB_SSLMODE: Optional[str] = Field(None, validation_alias=AliasChoices("DB_SSLMODE", "PGSSLMODE"))
    DB_CONNECT_TIMEOUT: int = Field(
        10, validation_alias=AliasChoices("DB_CONNECT_TIMEOUT", "PGCONNECT_TIMEOUT")
    )

    # --- Отчёт ---
    OUTPUT_FILE: str = "healthcheck_result.txt"
    REPORT_DELIMITER: str = "|"
    FAIL_FAST: bool = False  # по умолчанию ошибка секции не прерывает отчёт

    # --- Логи/отладка ---
    # LOG_LEVEL/LOG_STYLE/LOG_SQL читает logging_setup напрямую из окружения
    SLOW_SQL_MS: int = 1000  # всё медленнее пишем в лог "sql.slow"

    def connection_params(self) -> ConnectionParameters:
        """Собрать неизменяемые параметры подключения, аккуратно обрезав пробелы."""
        return ConnectionParameters(
            host=(self.DB_HOST or "").strip(),
            port=int(self.DB_PORT),
            user=(self.DB_USER or "").strip(),
            password=(self.DB_PASSWORD or "").strip(),
            dbname=(self.DB_NAME or "").strip(),
            connect_timeout=int(self.DB_CONNECT_TIMEOUT),
            sslmode=(self.DB_SSLMODE or "").strip() or None,
        )

    # Pydantic Settings конфигурация: читаем .env и игнорируем лишние переменные
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


def load_settings(**overrides) -> Settings:
    """
    Прочитать настройки; явные значения (флаги CLI) важнее окружения.
    None в overrides означает "не задано" и пропускается.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    return Settings(_env_file=os.getenv("ENV_FILE", ".env"), **values)
