"""
Matplotlib figures for the forest diagnostics.

Every function returns ``(fig, ax)`` and leaves showing or saving to the
caller; ``save_figure`` writes a figure to disk.
"""
from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from . import config
from .diagnostics.balance import inverse_propensity_weights

_TREATED = "#D55E00"
_CONTROL = "#0072B2"


def save_figure(fig, path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=300, bbox_inches="tight")


def plot_overlap(result, bins: int = 50, bounds: tuple[float, float] | None = None):
    """Histogram of estimated propensities by treatment arm, with the overlap bounds."""
    lower, upper = bounds if bounds is not None else config.OVERLAP_BOUNDS
    e = result.propensities
    W = result.treatment_values
    edges = np.linspace(0.0, 1.0, bins + 1)

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(e[W == 1], bins=edges, alpha=0.5, color=_TREATED, label="treated", density=True)
    ax.hist(e[W == 0], bins=edges, alpha=0.5, color=_CONTROL, label="control", density=True)
    ax.axvline(lower, ls="--", c="k", lw=1)
    ax.axvline(upper, ls="--", c="k", lw=1)
    ax.set_xlim(0.0, 1.0)
    ax.set_xlabel("Estimated propensity score")
    ax.set_ylabel("Density")
    ax.set_title("Propensity overlap")
    ax.legend()
    return fig, ax


def plot_balance(balance: pd.DataFrame, threshold: float | None = None):
    """Love plot: absolute raw and weighted SMD per covariate."""
    thr = config.BALANCE_THRESHOLD if threshold is None else threshold
    ordered = balance.reindex(balance["raw_smd"].abs().sort_values().index)
    y = np.arange(len(ordered))

    fig, ax = plt.subplots(figsize=(7, 0.35 * len(ordered) + 1.5))
    ax.scatter(ordered["raw_smd"].abs(), y, marker="o", color="grey", label="raw")
    ax.scatter(ordered["weighted_smd"].abs(), y, marker="s", color=_TREATED, label="IPW weighted")
    ax.axvline(thr, ls="--", c="k", lw=1)
    ax.set_yticks(y)
    ax.set_yticklabels(ordered.index)
    ax.set_xlabel("|Standardised mean difference|")
    ax.set_title("Covariate balance")
    ax.legend(loc="lower right")
    return fig, ax


def plot_weighted_covariate(result, covariate: str, bins: int = 40):
    """Densities of one covariate by arm, weighted by inverse propensities."""
    X = result.covariate_frame
    if covariate not in X.columns:
        raise ValueError(f"Covariate '{covariate}' was not used to fit the forest.")
    x = X[covariate].to_numpy(dtype=float)
    W = result.treatment_values
    w = inverse_propensity_weights(result)
    edges = np.histogram_bin_edges(x, bins=bins)

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(x[W == 1], bins=edges, weights=w[W == 1], density=True, histtype="step",
            lw=2, color=_TREATED, label="treated")
    ax.hist(x[W == 0], bins=edges, weights=w[W == 0], density=True, histtype="step",
            lw=2, color=_CONTROL, label="control")
    ax.set_xlabel(covariate)
    ax.set_ylabel("IPW-weighted density")
    ax.set_title(f"Weighted distribution of {covariate}")
    ax.legend()
    return fig, ax


def plot_cate(result, bins: int = 50):
    """Histogram of out-of-fold CATE estimates, with their mean."""
    tau = result.cate
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(tau, bins=bins, color="grey", alpha=0.8)
    ax.axvline(tau.mean(), ls="--", c="k", lw=1, label=f"mean = {tau.mean():.3f}")
    ax.set_xlabel("Estimated CATE")
    ax.set_ylabel("Units")
    ax.set_title("Out-of-fold CATE estimates")
    ax.legend()
    return fig, ax


def plot_toc(rate):
    """TOC curve with a pointwise 95% band from the bootstrap SEs."""
    toc = rate.toc
    band = 1.96 * toc["std_err"].fillna(0.0)
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(toc["q"], toc["estimate"], color="k", lw=1.5)
    ax.fill_between(toc["q"], toc["estimate"] - band, toc["estimate"] + band,
                    color="grey", alpha=0.3)
    ax.axhline(0.0, ls="--", c="k", lw=0.8)
    ax.set_xlabel("Treated fraction (q)")
    ax.set_ylabel("TOC")
    ax.set_title(f"Targeting operator characteristic ({rate.target} = {rate.estimate:.3f})")
    return fig, ax


def plot_bias(bias, bins: int = 50):
    """Histogram of the bias heuristic, in units of sd(Y)."""
    bias = np.asarray(bias, dtype=float)
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(bias, bins=bins, color="grey", alpha=0.8)
    ax.axvline(0.0, ls="--", c="k", lw=1)
    ax.set_xlabel("Bias / sd(Y)")
    ax.set_ylabel("Units")
    ax.set_title("Bias heuristic")
    return fig, ax
