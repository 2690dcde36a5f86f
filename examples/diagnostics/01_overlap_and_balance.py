"""
Diagnostics — overlap and covariate balance
===========================================
Check that estimated propensities stay away from 0 and 1, and that
inverse-propensity weighting balances the covariates.
"""

from arborist import CausalForest, covariate_balance, covariate_names, overlap_summary, simulate
from arborist.plotting import plot_balance, plot_overlap, plot_weighted_covariate, save_figure

df = simulate(n=2_000, p=10, seed=0)
result = CausalForest("W", "Y", covariate_names(10)).fit(df)

# ── 1. Overlap ────────────────────────────────────────────────────────────────
print(overlap_summary(result), "\n")
fig, _ = plot_overlap(result)
save_figure(fig, "figures/overlap.png")

# ── 2. Balance ────────────────────────────────────────────────────────────────
balance = covariate_balance(result)
print(balance.round(4), "\n")
fig, _ = plot_balance(balance)
save_figure(fig, "figures/balance.png")

# X1 drives treatment, so it is the covariate to look at.
fig, _ = plot_weighted_covariate(result, "X1")
save_figure(fig, "figures/weighted_X1.png")
