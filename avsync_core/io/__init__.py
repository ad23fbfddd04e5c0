"""Process execution helpers."""

from .runner import CommandRunner

__all__ = ["CommandRunner"]
