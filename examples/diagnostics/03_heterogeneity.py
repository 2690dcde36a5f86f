"""
Diagnostics — treatment effect heterogeneity
============================================
Two views of heterogeneity:

1. Median split: ATE above vs. below the median CATE, with a closed-form CI
   for the difference.
2. RATE: train a forest on one half, rank the other half by its predicted
   CATE, and evaluate that ranking with a forest fitted on the other half.
"""

from arborist import CausalForest, covariate_names, held_out_rate, median_split, simulate
from arborist.plotting import plot_cate, plot_toc, save_figure

df = simulate(n=2_000, p=10, seed=0)
forest = CausalForest("W", "Y", covariate_names(10))
result = forest.fit(df)

# ── 1. Median split ───────────────────────────────────────────────────────────
contrast = median_split(result)
print(contrast.summary())

lo, hi = contrast.difference.conf_int
print(f"95% CI for the difference in ATE: [{lo:.4f}, {hi:.4f}]\n")

fig, _ = plot_cate(result)
save_figure(fig, "figures/cate.png")

# ── 2. Held-out RATE ──────────────────────────────────────────────────────────
rate = held_out_rate(forest, df, target="AUTOC")
print(rate.summary())

fig, _ = plot_toc(rate)
save_figure(fig, "figures/toc.png")
