from __future__ import annotations

import logging
from numbers import Real

import numpy as np
import pandas as pd
import scipy.stats as st

from .. import config
from ..estimators.ate import ATEEstimate
from ..estimators.rate import RATEResult
from ._check import DiagnosticCheck

logger = logging.getLogger(__name__)


class SubgroupContrast:
    """ATE in a subgroup, in its complement, and the difference between them."""

    def __init__(self, high: ATEEstimate, low: ATEEstimate) -> None:
        self.high = high
        self.low = low
        self.difference = high.contrast(low, label=f"{high.label} - {low.label}")

    def summary(self) -> str:
        lines = ["", "Subgroup contrast", "─" * 50]
        for est in (self.high, self.low, self.difference):
            lo, hi = est.conf_int
            lines.append(
                f"  {est.label:<20s}: {est.estimate:>8.4f}  (SE {est.std_err:.4f}, "
                f"95% CI [{lo:.4f}, {hi:.4f}])"
            )
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()


def subgroup_contrast(
    result,
    subset,
    label: str = "subgroup",
    complement_label: str | None = None,
    target: str = "all",
    overlap_bounds: tuple[float, float] | None = None,
) -> SubgroupContrast:
    """
    Doubly robust ATE inside ``subset``, outside it, and their difference.

    The two groups are disjoint, so the difference has standard error
    ``sqrt(se_in**2 + se_out**2)``.
    """
    mask = np.asarray(subset, dtype=bool)
    if len(mask) != result.n_units:
        raise ValueError(f"subset has length {len(mask)}, expected {result.n_units}.")
    if mask.all() or not mask.any():
        raise ValueError("subset must split the units into two non-empty groups.")

    inside = result.average_treatment_effect(
        target=target, subset=mask, overlap_bounds=overlap_bounds,
    )
    outside = result.average_treatment_effect(
        target=target, subset=~mask, overlap_bounds=overlap_bounds,
    )
    inside = ATEEstimate(
        inside.estimate, inside.std_err, inside.target, inside.n_units, label=label,
    )
    outside = ATEEstimate(
        outside.estimate, outside.std_err, outside.target, outside.n_units,
        label=complement_label or f"not {label}",
    )
    return SubgroupContrast(inside, outside)


def median_split(
    result,
    target: str = "all",
    overlap_bounds: tuple[float, float] | None = None,
) -> SubgroupContrast:
    """
    Compare the ATE for units above and below the median CATE estimate.

    Because the CATE estimates are out-of-fold, a positive difference is
    evidence that the forest found real heterogeneity and not just noise.
    """
    tau = result.cate
    high = tau > np.median(tau)
    if high.all() or not high.any():
        raise ValueError("CATE estimates are constant; the median split is empty.")
    return subgroup_contrast(
        result, high, label="high CATE", complement_label="low CATE",
        target=target, overlap_bounds=overlap_bounds,
    )


def _restricted(estimator, rows: np.ndarray):
    """``estimator`` for a subset of rows; a per-row propensity array is sliced to match."""
    p = estimator.propensity
    if isinstance(p, (str, Real)):
        return estimator
    return estimator.with_propensity(np.asarray(p, dtype=float)[rows])


def held_out_rate(
    estimator,
    data: pd.DataFrame,
    target: str = config.RATE_TARGET,
    split: float = config.RATE_SPLIT,
    random_state: int = config.RATE_SPLIT_SEED,
    **rate_kwargs,
) -> RATEResult:
    """
    RATE of the forest's CATE ranking, evaluated on data it was not trained on.

    1. Randomly split ``data`` into a training part (``split`` of the rows)
       and an evaluation part.
    2. Fit ``estimator`` on the training part; its CATE predictions for the
       evaluation rows are the priorities.
    3. Fit ``estimator`` again on the evaluation part and score the
       priorities with that forest's doubly robust scores.

    A propensity array on ``estimator`` is read in the row order of
    ``data`` and split along with it.
    """
    if not 0.0 < split < 1.0:
        raise ValueError(f"split must be in (0, 1), got {split}.")

    data = data.reset_index(drop=True)
    rng = np.random.default_rng(random_state)
    order = rng.permutation(len(data))
    n_train = int(round(split * len(data)))
    train_rows, eval_rows = order[:n_train], order[n_train:]
    train = data.iloc[train_rows].reset_index(drop=True)
    evaluation = data.iloc[eval_rows].reset_index(drop=True)
    logger.info("Held-out RATE: %d training rows, %d evaluation rows", len(train), len(evaluation))

    priorities = _restricted(estimator, train_rows).fit(train).predict(evaluation)
    eval_result = _restricted(estimator, eval_rows).fit(evaluation)
    return eval_result.rank_average_treatment_effect(priorities, target=target, **rate_kwargs)


def _check_median_split(contrast: SubgroupContrast, alpha: float | None = None) -> DiagnosticCheck:
    """The lower end of the difference's confidence interval should be above 0."""
    a = config.ALPHA if alpha is None else alpha
    d = contrast.difference
    lo, hi = d.interval(1.0 - a)
    level = f"{1.0 - a:.0%}"
    stats = (
        f"high CATE ATE = {contrast.high.estimate:.4f}, low CATE ATE = {contrast.low.estimate:.4f}, "
        f"difference = {d.estimate:.4f} [{lo:.4f}, {hi:.4f}]"
    )
    if lo > 0.0:
        return DiagnosticCheck(
            name="Median split", passed=True, detail=stats, statistic=lo, threshold=0.0,
        )
    return DiagnosticCheck(
        name="Median split",
        passed=False,
        detail=f"{stats}  The {level} CI includes 0: no heterogeneity detected along the CATE ranking.",
        statistic=lo,
        threshold=0.0,
    )


def _check_rate(rate: RATEResult, alpha: float | None = None) -> DiagnosticCheck:
    a = config.ALPHA if alpha is None else alpha
    z_crit = float(st.norm.ppf(1.0 - a / 2.0))
    z = rate.estimate / rate.std_err if rate.std_err > 0 else float("nan")
    stats = f"{rate.target} = {rate.estimate:.4f} (SE {rate.std_err:.4f}, z = {z:.2f})"
    if np.isfinite(z) and z > z_crit:
        return DiagnosticCheck(
            name="RATE (held out)", passed=True, detail=stats, statistic=z, threshold=z_crit,
        )
    return DiagnosticCheck(
        name="RATE (held out)",
        passed=False,
        detail=(
            f"{stats}  Prioritising by the forest's CATE does not beat random "
            f"targeting on held-out data (z ≤ {z_crit:.2f})."
        ),
        statistic=z,
        threshold=z_crit,
    )
