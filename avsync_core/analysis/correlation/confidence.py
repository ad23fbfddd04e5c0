# avsync_core/analysis/correlation/confidence.py
"""Confidence scoring for correlation peaks."""

from __future__ import annotations

import numpy as np


def peak_confidence(peak: float, coarse_values: np.ndarray) -> float:
    """
    Score a correlation peak by height and distinctiveness.

    Distinctiveness is (peak - second best coarse value) / peak, where the
    second best is the runner-up of the coarse graph. The final score is
    the mean of the peak height and its distinctiveness, clamped to [0, 1].
    A non-positive peak (or an empty graph) scores 0.
    """
    if coarse_values.size == 0 or not np.isfinite(peak) or peak <= 0:
        return 0.0

    if coarse_values.size > 1:
        second_best = float(np.partition(coarse_values, -2)[-2])
    else:
        second_best = 0.0

    distinctiveness = (peak - second_best) / peak
    score = (peak + distinctiveness) / 2.0
    return float(min(1.0, max(0.0, score)))
