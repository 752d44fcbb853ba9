# pg_healthcheck/errors.py
# -*- coding: utf-8 -*-
"""Errors raised by a report run."""
from __future__ import annotations


class RunError(Exception):
    """Base class for failures that end a run."""


class DatabaseConnectionError(RunError):
    """The database could not be reached or refused the login."""


class OutputWriteError(RunError):
    """The report file could not be created or written."""


class SectionQueryError(RunError):
    """A section's SQL failed on the server."""

    def __init__(self, section: str, message: str):
        super().__init__(f"section '{section}' failed: {message}")
        self.section = section
        self.message = message


class UnknownSectionError(ValueError):
    def __init__(self, names):
        self.names = list(names)
        super().__init__("unknown section(s): " + ", ".join(self.names))


__all__ = [
    "RunError",
    "DatabaseConnectionError",
    "OutputWriteError",
    "SectionQueryError",
    "UnknownSectionError",
]
