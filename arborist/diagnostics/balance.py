from __future__ import annotations

import numpy as np
import pandas as pd

from .. import config
from .._exceptions import OverlapError
from ._check import DiagnosticCheck


def standardized_mean_differences(
    covariates: pd.DataFrame,
    treatment,
    weights=None,
) -> pd.Series:
    """
    Standardised mean difference (treated minus control) for each covariate.

    Means are weighted by ``weights`` when given. The denominator is always
    the unweighted pooled standard deviation ``sqrt((s_t^2 + s_c^2) / 2)``,
    so raw and weighted SMDs share a scale. Constant covariates get 0.
    """
    W = np.asarray(treatment, dtype=float)
    if len(W) != len(covariates):
        raise ValueError(
            f"treatment has length {len(W)}, but covariates have {len(covariates)} rows."
        )
    w = np.ones(len(W)) if weights is None else np.asarray(weights, dtype=float)
    if len(w) != len(W):
        raise ValueError(f"weights have length {len(w)}, expected {len(W)}.")

    treated = W == 1
    control = ~treated
    if not treated.any() or not control.any():
        raise ValueError("Both treated and control units are required.")

    smd = {}
    for col in covariates.columns:
        x = covariates[col].to_numpy(dtype=float)
        pooled = np.sqrt((x[treated].var(ddof=1) + x[control].var(ddof=1)) / 2.0)
        if not np.isfinite(pooled) or pooled == 0.0:
            smd[col] = 0.0
            continue
        diff = np.average(x[treated], weights=w[treated]) - np.average(x[control], weights=w[control])
        smd[col] = float(diff / pooled)
    return pd.Series(smd, name="smd")


def inverse_propensity_weights(result) -> np.ndarray:
    """
    ATE weights ``W / W.hat + (1 - W) / (1 - W.hat)``.

    Raises
    ------
    ``OverlapError``
        A treated unit has ``W.hat = 0`` or a control unit has ``W.hat = 1``,
        so its weight is infinite.
    """
    W = np.asarray(result.treatment_values, dtype=float)
    e = np.asarray(result.propensities, dtype=float)
    treated = W == 1
    n_bad = int(np.sum(treated & (e <= 0.0)) + np.sum(~treated & (e >= 1.0)))
    if n_bad:
        raise OverlapError(
            f"{n_bad} unit(s) were observed in an arm their estimated propensity "
            f"rules out (treated with W.hat = 0 or control with W.hat = 1); "
            f"their inverse-propensity weights are infinite."
        )
    w = np.empty(len(W))
    w[treated] = 1.0 / e[treated]
    w[~treated] = 1.0 / (1.0 - e[~treated])
    return w


def covariate_balance(result) -> pd.DataFrame:
    """
    Raw and inverse-propensity-weighted SMD for every covariate.

    Weighting by the estimated propensities should pull the weighted SMDs
    towards zero. A covariate that stays imbalanced points to a propensity
    model that misses how it drives treatment.
    """
    X = result.covariate_frame
    W = result.treatment_values
    raw = standardized_mean_differences(X, W)
    weighted = standardized_mean_differences(X, W, inverse_propensity_weights(result))
    return pd.DataFrame({"raw_smd": raw, "weighted_smd": weighted})


def _check_balance(balance: pd.DataFrame, threshold: float | None = None) -> DiagnosticCheck:
    thr = config.BALANCE_THRESHOLD if threshold is None else threshold
    # Non-finite SMDs count as the worst possible imbalance.
    abs_w = balance["weighted_smd"].abs().where(np.isfinite(balance["weighted_smd"]), np.inf)
    worst = abs_w.idxmax()
    worst_value = float(abs_w.max())
    stats = (
        f"max |weighted SMD| = {worst_value:.4f} ({worst}), "
        f"max |raw SMD| = {balance['raw_smd'].abs().max():.4f}"
    )
    offenders = sorted(abs_w[abs_w >= thr].index)
    if not offenders:
        return DiagnosticCheck(
            name="Covariate balance",
            passed=True,
            detail=f"{stats}  (< {thr:.2f})",
            statistic=worst_value,
            threshold=thr,
        )
    return DiagnosticCheck(
        name="Covariate balance",
        passed=False,
        detail=(
            f"{stats}  Imbalanced after weighting (≥ {thr:.2f}): {', '.join(offenders)}."
        ),
        statistic=worst_value,
        threshold=thr,
    )
