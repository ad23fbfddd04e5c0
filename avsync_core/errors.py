# avsync_core/errors.py
"""Exceptions raised at the media extraction boundary."""

from __future__ import annotations


class ExtractionError(RuntimeError):
    """An external tool failed or produced output that could not be used."""


class ExtractionTimeout(ExtractionError):
    """An external tool did not finish within its configured timeout."""
