# -*- coding: utf-8 -*-
"""PostgreSQL health check report."""

__version__ = "0.1.0"
