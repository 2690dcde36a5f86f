from __future__ import annotations

import numpy as np
import pandas as pd

from .. import config
from ._check import DiagnosticCheck


def overlap_summary(result, bounds: tuple[float, float] | None = None) -> pd.Series:
    """
    Summarise the estimated propensities against the overlap bounds.

    Returns a Series with ``min``, ``max``, ``n_below``, ``n_above``,
    ``share_outside``, ``lower`` and ``upper``.
    """
    lower, upper = bounds if bounds is not None else config.OVERLAP_BOUNDS
    if not 0.0 <= lower < upper <= 1.0:
        raise ValueError(f"bounds must satisfy 0 <= lower < upper <= 1, got ({lower}, {upper}).")

    e = np.asarray(result.propensities, dtype=float)
    n_below = int(np.sum(e < lower))
    n_above = int(np.sum(e > upper))
    return pd.Series(
        {
            "min": float(e.min()),
            "max": float(e.max()),
            "n_below": n_below,
            "n_above": n_above,
            "share_outside": (n_below + n_above) / len(e),
            "lower": lower,
            "upper": upper,
        },
        name="overlap",
    )


def _check_overlap(summary: pd.Series) -> DiagnosticCheck:
    """
    Every estimated propensity should lie inside the overlap bounds.

    Units near 0 or 1 get extreme inverse-propensity weights and make the
    forest extrapolate from one arm.
    """
    n_out = int(summary["n_below"] + summary["n_above"])
    share = float(summary["share_outside"])
    rng = f"propensities in [{summary['min']:.4f}, {summary['max']:.4f}]"
    bounds = f"[{summary['lower']:.2f}, {summary['upper']:.2f}]"
    if n_out == 0:
        return DiagnosticCheck(
            name="Overlap",
            passed=True,
            detail=f"{rng}  (all within {bounds})",
            statistic=share,
            threshold=0.0,
        )
    return DiagnosticCheck(
        name="Overlap",
        passed=False,
        detail=(
            f"{rng}  {n_out} unit(s) ({share:.1%}) outside {bounds}. "
            f"Consider trimming, target='overlap', or revisiting the covariates."
        ),
        statistic=share,
        threshold=0.0,
    )
