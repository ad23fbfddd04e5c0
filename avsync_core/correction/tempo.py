# avsync_core/correction/tempo.py
"""Tempo factor helpers."""

from __future__ import annotations

# Native single-stage range of a tempo filter (ffmpeg atempo).
MIN_STAGE = 0.5
MAX_STAGE = 2.0


def split_tempo_chain(factor: float) -> list[float]:
    """
    Split a tempo factor into stages that each sit inside [0.5, 2.0].

    Whole halving/doubling stages are peeled off until the residual is in
    range; the product of the stages equals ``factor``.
    """
    if factor <= 0:
        raise ValueError(f"Tempo factor must be positive, got {factor}")

    stages: list[float] = []
    remaining = factor
    while remaining < MIN_STAGE:
        stages.append(MIN_STAGE)
        remaining /= MIN_STAGE
    while remaining > MAX_STAGE:
        stages.append(MAX_STAGE)
        remaining /= MAX_STAGE
    stages.append(remaining)
    return stages
