"""
Best-linear-predictor calibration test for a causal forest.

Regress the centred outcome on two centred-treatment regressors, without an
intercept::

    Y - Y.hat ~ (W - W.hat) * mean(tau.hat)
              + (W - W.hat) * (tau.hat - mean(tau.hat))

A coefficient of 1 on the first term means the forest's average prediction
is correct. The coefficient on the second term measures how well the
forest's *variation* in tau.hat tracks real heterogeneity: significantly
above 0 means heterogeneity was detected, and about 1 means it is well
calibrated.
"""
from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import scipy.stats as st
import statsmodels.api as sm

from .. import config
from ._check import DiagnosticCheck

logger = logging.getLogger(__name__)

MEAN_TERM = "mean_forest_prediction"
DIFF_TERM = "differential_forest_prediction"


class CalibrationResult:
    """Coefficient table of the calibration regression, with one-sided p-values."""

    def __init__(self, table: pd.DataFrame, ols_result) -> None:
        self._table = table
        self._ols = ols_result

    @property
    def table(self) -> pd.DataFrame:
        """Columns ``estimate``, ``std_err``, ``t_value``, ``pvalue`` (H1: coefficient > 0)."""
        return self._table.copy()

    @property
    def mean_prediction(self) -> float:
        """Coefficient on the mean forest prediction; 1 is ideal."""
        return float(self._table.loc[MEAN_TERM, "estimate"])

    @property
    def differential_prediction(self) -> float:
        """Coefficient on the differential forest prediction; NaN if tau.hat is constant."""
        return float(self._table.loc[DIFF_TERM, "estimate"])

    def mean_prediction_interval(self, level: float = 0.95) -> tuple[float, float]:
        """Two-sided normal interval for the mean-prediction coefficient."""
        z = float(st.norm.ppf(0.5 + level / 2.0))
        est = self.mean_prediction
        se = float(self._table.loc[MEAN_TERM, "std_err"])
        return (est - z * se, est + z * se)

    @property
    def statsmodels_result(self):
        """The underlying statsmodels OLS result, for full diagnostics."""
        return self._ols

    def summary(self) -> str:
        lines = [
            "",
            "Best linear fit using forest predictions (HC3 standard errors)",
            "─" * 72,
            f"  {'':32s}{'Estimate':>10s}{'Std. Err':>10s}{'t value':>10s}{'Pr(>t)':>10s}",
        ]
        for term, row in self._table.iterrows():
            lines.append(
                f"  {term:32s}{row['estimate']:>10.4f}{row['std_err']:>10.4f}"
                f"{row['t_value']:>10.4f}{row['pvalue']:>10.4f}"
            )
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()


def calibration_test(result) -> CalibrationResult:
    """
    Run the calibration regression for a fitted forest.

    Uses HC3 heteroskedasticity-robust standard errors. p-values are
    one-sided (H1: coefficient > 0) from a t distribution with the residual
    degrees of freedom.
    """
    Y     = np.asarray(result.outcome_values, dtype=float)
    W     = np.asarray(result.treatment_values, dtype=float)
    Y_hat = np.asarray(result.outcome_predictions, dtype=float)
    W_hat = np.asarray(result.propensities, dtype=float)
    tau   = np.asarray(result.cate, dtype=float)

    tau_bar = tau.mean()
    w_res = W - W_hat
    regressors = pd.DataFrame({
        MEAN_TERM: w_res * tau_bar,
        DIFF_TERM: w_res * (tau - tau_bar),
    })

    degenerate = np.allclose(regressors[DIFF_TERM], 0.0)
    if degenerate:
        logger.warning(
            "CATE estimates have no variation; fitting the mean forest prediction only."
        )
        regressors = regressors[[MEAN_TERM]]
    if np.allclose(regressors[MEAN_TERM], 0.0):
        raise ValueError(
            "The mean forest prediction is identically zero (mean CATE of 0 or "
            "propensities equal to treatment); the calibration regression is undefined."
        )

    ols = sm.OLS(Y - Y_hat, regressors).fit(cov_type="HC3")
    df_resid = float(ols.df_resid)

    table = pd.DataFrame({
        "estimate": ols.params,
        "std_err":  ols.bse,
        "t_value":  ols.tvalues,
    })
    table["pvalue"] = st.t.sf(table["t_value"].to_numpy(), df_resid)
    if degenerate:
        table.loc[DIFF_TERM] = np.nan
    return CalibrationResult(table, ols)


def _check_calibration(calib: CalibrationResult, alpha: float | None = None) -> DiagnosticCheck:
    """
    The mean forest prediction should be compatible with 1, and the
    differential prediction should point the right way (positive).

    The check's statistic is the mean coefficient and its threshold 1.
    """
    a = config.ALPHA if alpha is None else alpha
    lo, hi = calib.mean_prediction_interval(1.0 - a)
    mean_ok = lo <= 1.0 <= hi
    diff = calib.differential_prediction
    diff_ok = bool(np.isfinite(diff) and diff > 0.0)
    diff_p = float(calib.table.loc[DIFF_TERM, "pvalue"])

    stats = (
        f"mean coef = {calib.mean_prediction:.4f} [{lo:.4f}, {hi:.4f}], "
        f"differential coef = {diff:.4f} (one-sided p = {diff_p:.4f})"
    )
    if mean_ok and diff_ok:
        return DiagnosticCheck(
            name="Calibration", passed=True, detail=stats,
            statistic=calib.mean_prediction, threshold=1.0,
        )

    problems = []
    if not mean_ok:
        problems.append("the average CATE is miscalibrated (interval excludes 1)")
    if not diff_ok:
        problems.append("the CATE ranking does not track observed heterogeneity")
    return DiagnosticCheck(
        name="Calibration",
        passed=False,
        detail=f"{stats}  Problem: {'; '.join(problems)}.",
        statistic=calib.mean_prediction,
        threshold=1.0,
    )
