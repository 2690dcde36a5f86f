"""
Diagnostics — full report
=========================
Run every check at once and save the figures behind them.
"""

import logging

from arborist import CausalForest, covariate_names, simulate
from arborist.plotting import plot_balance, plot_bias, plot_overlap, plot_toc, save_figure

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

df = simulate(n=2_000, p=10, seed=0)
result = CausalForest("W", "Y", covariate_names(10)).fit(df)

report = result.diagnose(df)
print(report.summary())

for name, (fig, _) in {
    "overlap": plot_overlap(result),
    "balance": plot_balance(report.balance),
    "toc": plot_toc(report.rate),
    "bias": plot_bias(report.bias),
}.items():
    save_figure(fig, f"figures/report_{name}.png")
