from __future__ import annotations

import numpy as np

from .. import config
from ._check import DiagnosticCheck


def bias_heuristic(result) -> np.ndarray:
    """
    Per-unit bias of a naive difference in means, in units of ``sd(Y)``.

    With ``p = mean(W)`` and the implied arm-specific outcome models
    ``Y.hat0 = Y.hat - W.hat * tau.hat`` and
    ``Y.hat1 = Y.hat + (1 - W.hat) * tau.hat``::

        bias = (W.hat - p) * (p * (Y.hat0 - mean(Y.hat0))
                              + (1 - p) * (Y.hat1 - mean(Y.hat1)))

    Values near zero mean the covariates barely confound the comparison;
    large values show how much work the adjustment is doing.
    """
    Y     = np.asarray(result.outcome_values, dtype=float)
    W     = np.asarray(result.treatment_values, dtype=float)
    Y_hat = np.asarray(result.outcome_predictions, dtype=float)
    W_hat = np.asarray(result.propensities, dtype=float)
    tau   = np.asarray(result.cate, dtype=float)

    sd_y = float(np.std(Y, ddof=1))
    if sd_y == 0.0:
        raise ValueError("Outcome has zero variance; the bias heuristic is undefined.")

    p = W.mean()
    y0 = Y_hat - W_hat * tau
    y1 = Y_hat + (1.0 - W_hat) * tau
    bias = (W_hat - p) * (p * (y0 - y0.mean()) + (1.0 - p) * (y1 - y1.mean()))
    return bias / sd_y


def _check_bias(bias: np.ndarray, tolerance: float | None = None) -> DiagnosticCheck:
    tol = config.BIAS_TOLERANCE if tolerance is None else tolerance
    worst = float(np.max(np.abs(bias)))
    mean_abs = float(np.mean(np.abs(bias)))
    stats = f"max |bias| = {worst:.4f} sd(Y), mean |bias| = {mean_abs:.4f} sd(Y)"
    if worst <= tol:
        return DiagnosticCheck(
            name="Bias heuristic",
            passed=True,
            detail=f"{stats}  (≤ {tol:.2f})",
            statistic=worst,
            threshold=tol,
        )
    return DiagnosticCheck(
        name="Bias heuristic",
        passed=False,
        detail=(
            f"{stats}  (> {tol:.2f})  Confounding is strong for some units; "
            f"the estimate leans heavily on the nuisance models there."
        ),
        statistic=worst,
        threshold=tol,
    )
