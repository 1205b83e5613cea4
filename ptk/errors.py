#!/usr/bin/env python3
"""
PTK exception types.

Only conditions that end a run are raised. Line misses, escape anomalies,
timestamp failures and classification ambiguity are recovered where they occur.
"""

from __future__ import annotations


class TraceError(Exception):
    """Base class for errors raised by ptk."""


class TraceReadError(TraceError):
    """The trace file is missing or unreadable."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read trace {path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigError(TraceError):
    """An analyzer configuration file is malformed."""


class ExportError(TraceError):
    """An export format is unavailable or the output cannot be written."""
