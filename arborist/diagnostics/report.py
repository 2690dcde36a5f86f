from __future__ import annotations

import logging

import pandas as pd

from .. import config
from ._check import DiagnosticCheck
from .balance import _check_balance, covariate_balance
from .bias import _check_bias, bias_heuristic
from .calibration import _check_calibration, calibration_test
from .heterogeneity import _check_median_split, _check_rate, held_out_rate, median_split
from .overlap import _check_overlap, overlap_summary

logger = logging.getLogger(__name__)


class ForestDiagnosticReport:
    """
    Results of every diagnostic run against a fitted causal forest.

    Obtain via ``CausalForestResult.diagnose(data)``. Each check is a
    ``DiagnosticCheck`` in ``.checks`` and the overall verdict is
    ``.passed``. The numbers behind the checks are kept on the report
    (``overlap``, ``balance``, ``calibration``, ``subgroups``, ``rate``,
    ``bias``) so they can be plotted or inspected.

    Example::

        result = CausalForest("W", "Y", covariate_names(10)).fit(df)
        report = result.diagnose(df)
        print(report.summary())
        plot_toc(report.rate)
    """

    def __init__(self, checks: list[DiagnosticCheck], treatment: str, outcome: str, *,
                 overlap, balance, calibration, subgroups, rate, bias) -> None:
        self._checks = checks
        self._treatment = treatment
        self._outcome = outcome
        self.overlap = overlap
        self.balance = balance
        self.calibration = calibration
        self.subgroups = subgroups
        self.rate = rate
        self.bias = bias

    @property
    def checks(self) -> list[DiagnosticCheck]:
        """All checks, in the order they were run."""
        return list(self._checks)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self._checks)

    @property
    def failed_checks(self) -> list[DiagnosticCheck]:
        return [c for c in self._checks if not c.passed]

    def check(self, name: str) -> DiagnosticCheck:
        """Look up a check by name, e.g. ``report.check("Overlap")``."""
        for c in self._checks:
            if c.name == name:
                return c
        raise KeyError(f"No check named {name!r}. Known checks: {[c.name for c in self._checks]}")

    def to_frame(self) -> pd.DataFrame:
        """One row per check: ``passed``, ``statistic``, ``threshold``, ``margin``."""
        return pd.DataFrame(
            {
                "passed":    [c.passed for c in self._checks],
                "statistic": [c.statistic for c in self._checks],
                "threshold": [c.threshold for c in self._checks],
                "margin":    [c.margin for c in self._checks],
            },
            index=pd.Index([c.name for c in self._checks], name="check"),
        )

    def summary(self) -> str:
        lines = [
            "",
            f"Causal Forest Diagnostics: {self._treatment} → {self._outcome}",
            "─" * 50,
        ]
        for c in self._checks:
            status = "PASS" if c.passed else "FAIL"
            lines.append(f"  [{status}]  {c.name}: {c.detail}")
        lines.append("")
        if self.passed:
            lines.append("  All checks passed.")
        else:
            names = ", ".join(c.name for c in self.failed_checks)
            lines.append(f"  {len(self.failed_checks)} check(s) failed: {names}.")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()


def run_diagnostics(
    result,
    data: pd.DataFrame,
    rate: bool = True,
    *,
    bounds: tuple[float, float] | None = None,
    threshold: float | None = None,
    tolerance: float | None = None,
    alpha: float | None = None,
    split: float = config.RATE_SPLIT,
    rate_kwargs: dict | None = None,
) -> ForestDiagnosticReport:
    """
    Run overlap, balance, calibration, heterogeneity and bias diagnostics.

    Parameters
    ----------
    result : CausalForestResult
        The fit to diagnose.
    data : pd.DataFrame
        The same dataframe passed to ``fit()``. Only used by the held-out
        RATE check, which refits ``result.estimator`` on two halves.
    rate : bool
        Set to ``False`` to skip the held-out RATE check and its two refits.
    bounds, threshold, tolerance, alpha : optional
        Overlap bounds, balance threshold, bias tolerance and significance
        level. ``None`` uses the defaults in ``arborist.config``.
    split : float
        Share of ``data`` used to train the prioritising forest for RATE.
    rate_kwargs : dict, optional
        Passed on to ``held_out_rate``: ``target``, ``random_state`` (the
        split seed), and ``n_bootstrap`` or ``q`` for the RATE itself.
    """
    logger.info("Running diagnostics for %s -> %s", result.treatment, result.outcome)

    overlap = overlap_summary(result, bounds)
    balance = covariate_balance(result)
    calibration = calibration_test(result)
    subgroups = median_split(result, overlap_bounds=bounds)
    bias = bias_heuristic(result)

    checks = [
        _check_overlap(overlap),
        _check_balance(balance, threshold),
        _check_calibration(calibration, alpha),
        _check_median_split(subgroups, alpha),
    ]

    rate_result = None
    if rate:
        rate_result = held_out_rate(result.estimator, data, split=split, **(rate_kwargs or {}))
        checks.append(_check_rate(rate_result, alpha))

    checks.append(_check_bias(bias, tolerance))

    return ForestDiagnosticReport(
        checks=checks,
        treatment=result.treatment,
        outcome=result.outcome,
        overlap=overlap,
        balance=balance,
        calibration=calibration,
        subgroups=subgroups,
        rate=rate_result,
        bias=bias,
    )
