"""
Diagnostics — bias heuristic
============================
How biased would a naive difference in means be, unit by unit? Measured in
standard deviations of the outcome.
"""

import numpy as np

from arborist import CausalForest, bias_heuristic, covariate_names, simulate
from arborist.plotting import plot_bias, save_figure

df = simulate(n=2_000, p=10, seed=0)
result = CausalForest("W", "Y", covariate_names(10)).fit(df)

bias = bias_heuristic(result)
print(f"mean |bias| / sd(Y): {np.mean(np.abs(bias)):.4f}")
print(f"max  |bias| / sd(Y): {np.max(np.abs(bias)):.4f}")

naive = df.loc[df.W == 1, "Y"].mean() - df.loc[df.W == 0, "Y"].mean()
print(f"naive difference in means: {naive:.4f}  vs. AIPW ATE: {result.effect:.4f}")

fig, _ = plot_bias(bias)
save_figure(fig, "figures/bias.png")
