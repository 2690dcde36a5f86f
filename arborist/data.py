"""
Synthetic data with a known, heterogeneous treatment effect.

The design is deliberately simple so that every diagnostic has a known
answer:

* covariates ``X1..Xp`` are independent standard normals;
* treatment is confounded through ``X1``:
  ``W ~ Bernoulli(0.4 + 0.2 * 1{X1 > 0})``;
* the effect is ``tau = max(X1, 0)``, so it varies only with ``X1``;
* the outcome is ``Y = tau * W + X2 + min(X3, 0) + noise``.

The true ATE is ``E[max(X1, 0)] = 1 / sqrt(2 * pi) ≈ 0.399``.
"""
from __future__ import annotations

import numpy as np
import pandas as pd

TRUE_ATE = 1.0 / np.sqrt(2.0 * np.pi)


def covariate_names(p: int) -> list[str]:
    """``["X1", ..., "Xp"]``."""
    return [f"X{j}" for j in range(1, p + 1)]


def simulate(n: int = 2000, p: int = 10, seed: int = 0) -> pd.DataFrame:
    """
    Draw ``n`` units from the design described in the module docstring.

    Parameters
    ----------
    n : int
        Number of units. At least 2.
    p : int
        Number of covariates. At least 3, since ``X1``, ``X2`` and ``X3``
        enter the design.
    seed : int
        Seed for ``numpy.random.default_rng``.

    Returns
    -------
    pd.DataFrame
        Columns ``X1..Xp``, ``W`` (0/1 float), ``Y`` and ``tau`` (the true
        unit-level effect).
    """
    if n < 2:
        raise ValueError(f"n must be at least 2, got {n}.")
    if p < 3:
        raise ValueError(f"p must be at least 3 (X1, X2 and X3 enter the design), got {p}.")

    rng = np.random.default_rng(seed)
    X   = rng.normal(size=(n, p))
    W   = rng.binomial(1, 0.4 + 0.2 * (X[:, 0] > 0)).astype(float)
    tau = np.maximum(X[:, 0], 0.0)
    Y   = tau * W + X[:, 1] + np.minimum(X[:, 2], 0.0) + rng.normal(size=n)

    df = pd.DataFrame(X, columns=covariate_names(p))
    df["W"]   = W
    df["Y"]   = Y
    df["tau"] = tau
    return df
