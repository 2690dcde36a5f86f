"""
Augmented inverse-propensity weighted (AIPW) average treatment effects.

Every function here reads the same five arrays off a fitted result:
``outcome_values`` (Y), ``treatment_values`` (W), ``outcome_predictions``
(Y.hat = E[Y | X]), ``propensities`` (W.hat = P[W = 1 | X]) and ``cate``
(tau.hat). Any object exposing those attributes works.
"""
from __future__ import annotations

import logging

import numpy as np
import scipy.stats as st

from .. import config
from .._exceptions import OverlapError

logger = logging.getLogger(__name__)

TARGETS = ("all", "treated", "control", "overlap")


class ATEEstimate:
    """
    A point estimate with a standard error, for one target population.

    Estimates built from disjoint sets of units are independent, so two of
    them can be differenced with ``contrast()``.
    """

    def __init__(
        self,
        estimate: float,
        std_err: float,
        target: str,
        n_units: int,
        label: str | None = None,
    ) -> None:
        self._estimate = float(estimate)
        self._std_err = float(std_err)
        self._target = target
        self._n_units = int(n_units)
        self._label = label or target

    @property
    def estimate(self) -> float:
        """Point estimate."""
        return self._estimate

    @property
    def std_err(self) -> float:
        """Standard error of the point estimate."""
        return self._std_err

    @property
    def target(self) -> str:
        """Target population: ``all``, ``treated``, ``control``, ``overlap`` or ``contrast``."""
        return self._target

    @property
    def n_units(self) -> int:
        """Number of units the estimate was computed from."""
        return self._n_units

    @property
    def label(self) -> str:
        return self._label

    def interval(self, level: float = 0.95) -> tuple[float, float]:
        """Normal-approximation confidence interval at the given level."""
        if not 0.0 < level < 1.0:
            raise ValueError(f"level must be in (0, 1), got {level}.")
        z = float(st.norm.ppf(0.5 + level / 2.0))
        return (self._estimate - z * self._std_err, self._estimate + z * self._std_err)

    @property
    def conf_int(self) -> tuple[float, float]:
        """95% confidence interval."""
        return self.interval(1.0 - config.ALPHA)

    @property
    def pvalue(self) -> float:
        """Two-sided p-value for ``H0: effect = 0``."""
        if self._std_err == 0.0:
            return 0.0 if self._estimate != 0.0 else 1.0
        return float(2.0 * st.norm.sf(abs(self._estimate) / self._std_err))

    def contrast(self, other: ATEEstimate, label: str | None = None) -> ATEEstimate:
        """
        Difference ``self - other`` of two independent estimates.

        The standard error is ``sqrt(se_self**2 + se_other**2)``, which is
        only valid when the two estimates come from disjoint sets of units.
        """
        return ATEEstimate(
            estimate=self._estimate - other._estimate,
            std_err=float(np.hypot(self._std_err, other._std_err)),
            target="contrast",
            n_units=self._n_units + other._n_units,
            label=label or f"{self._label} - {other._label}",
        )

    def __repr__(self) -> str:
        lo, hi = self.conf_int
        return (
            f"ATEEstimate({self._label}: {self._estimate:.4f}, "
            f"SE = {self._std_err:.4f}, 95% CI [{lo:.4f}, {hi:.4f}], n = {self._n_units})"
        )


# ── Array helpers ──────────────────────────────────────────────────────────────

def _arrays(result, subset=None):
    Y     = np.asarray(result.outcome_values, dtype=float)
    W     = np.asarray(result.treatment_values, dtype=float)
    Y_hat = np.asarray(result.outcome_predictions, dtype=float)
    W_hat = np.asarray(result.propensities, dtype=float)
    tau   = np.asarray(result.cate, dtype=float)

    if subset is not None:
        subset = np.asarray(subset)
        if subset.dtype == bool:
            if len(subset) != len(Y):
                raise ValueError(
                    f"Boolean subset has length {len(subset)}, expected {len(Y)}."
                )
        Y, W, Y_hat, W_hat, tau = (a[subset] for a in (Y, W, Y_hat, W_hat, tau))

    if len(Y) == 0:
        raise ValueError("Subset is empty.")
    return Y, W, Y_hat, W_hat, tau


def _require_interior(W_hat: np.ndarray, target: str, bounds=None) -> None:
    n_degenerate = int(np.sum((W_hat <= 0.0) | (W_hat >= 1.0)))
    if n_degenerate:
        raise OverlapError(
            f"{n_degenerate} unit(s) have an estimated propensity of exactly 0 or 1, "
            f"so inverse-propensity weights for target '{target}' are undefined. "
            f"Use target='overlap', trim the sample, or supply smoother propensities."
        )
    lo, hi = config.OVERLAP_BOUNDS if bounds is None else bounds
    n_weak = int(np.sum((W_hat < lo) | (W_hat > hi)))
    if n_weak:
        logger.warning(
            "%d unit(s) have estimated propensities outside [%.2f, %.2f]; "
            "AIPW estimates may be unstable.", n_weak, lo, hi,
        )


def _influence_se(phi: np.ndarray) -> float:
    n = len(phi)
    if n < 2:
        return float("nan")
    return float(np.std(phi, ddof=1) / np.sqrt(n))


# ── Public API ─────────────────────────────────────────────────────────────────

def doubly_robust_scores(result, overlap_bounds: tuple[float, float] | None = None) -> np.ndarray:
    """
    Per-unit AIPW scores ``Gamma_i``, whose mean is the ATE::

        mu_w  = Y.hat + (W - W.hat) * tau.hat
        Gamma = tau.hat + (W - W.hat) / (W.hat * (1 - W.hat)) * (Y - mu_w)

    Raises
    ------
    ``OverlapError``
        If any propensity is exactly 0 or 1.
    """
    Y, W, Y_hat, W_hat, tau = _arrays(result)
    _require_interior(W_hat, "all", overlap_bounds)
    residual = Y - (Y_hat + (W - W_hat) * tau)
    return tau + (W - W_hat) / (W_hat * (1.0 - W_hat)) * residual


def average_treatment_effect(
    result,
    target: str = "all",
    subset=None,
    overlap_bounds: tuple[float, float] | None = None,
) -> ATEEstimate:
    """
    Doubly robust estimate of the average treatment effect.

    Parameters
    ----------
    result
        A fitted ``CausalForestResult`` (or anything exposing the same arrays).
    target : str
        ``"all"`` (ATE), ``"treated"`` (ATT), ``"control"`` (ATC) or
        ``"overlap"`` (ATE reweighted by ``W.hat * (1 - W.hat)``).
    subset : array-like, optional
        Boolean mask or integer index restricting the estimate to a subgroup.
        The subgroup must contain both treated and control units.
    overlap_bounds : tuple of float, optional
        Propensities outside ``(lower, upper)`` log a warning. Defaults to
        ``config.OVERLAP_BOUNDS``.

    Raises
    ------
    ``ValueError``
        Unknown target, empty subset, or a subset lacking one of the arms.
    ``OverlapError``
        A propensity of exactly 0 or 1 under targets that divide by it.
    """
    if target not in TARGETS:
        raise ValueError(f"target must be one of {TARGETS}, got {target!r}.")

    Y, W, Y_hat, W_hat, tau = _arrays(result, subset)
    n = len(Y)
    n_treated = int(W.sum())
    if n_treated == 0 or n_treated == n:
        raise ValueError("Subset must contain both treated and control units.")

    if target == "overlap":
        h = W_hat * (1.0 - W_hat)
        if h.sum() <= 0.0:
            raise OverlapError("All overlap weights are zero: every propensity is 0 or 1.")
        residual = Y - (Y_hat + (W - W_hat) * tau)
        num = h * tau + (W - W_hat) * residual
        theta = num.sum() / h.sum()
        phi = (num - h * theta) / h.mean()
        return ATEEstimate(theta, _influence_se(phi), target, n)

    _require_interior(W_hat, target, overlap_bounds)

    if target == "all":
        residual = Y - (Y_hat + (W - W_hat) * tau)
        gamma = tau + (W - W_hat) / (W_hat * (1.0 - W_hat)) * residual
        return ATEEstimate(gamma.mean(), _influence_se(gamma), target, n)

    if target == "treated":
        mu0 = Y_hat - W_hat * tau
        r0 = Y - mu0
        psi = W * r0 - (1.0 - W) * W_hat / (1.0 - W_hat) * r0
        theta = psi.sum() / W.sum()
        phi = (psi - W * theta) / W.mean()
        return ATEEstimate(theta, _influence_se(phi), target, n)

    # control
    mu1 = Y_hat + (1.0 - W_hat) * tau
    r1 = Y - mu1
    psi = W * (1.0 - W_hat) / W_hat * r1 - (1.0 - W) * r1
    theta = psi.sum() / (1.0 - W).sum()
    phi = (psi - (1.0 - W) * theta) / (1.0 - W).mean()
    return ATEEstimate(theta, _influence_se(phi), target, n)
