"""
Diagnostics — calibration
=========================
Best-linear-predictor test: a mean coefficient near 1 means the average
prediction is right; a positive, significant differential coefficient means
the forest picked up real heterogeneity.
"""

from arborist import CausalForest, covariate_names, simulate

df = simulate(n=2_000, p=10, seed=0)
result = CausalForest("W", "Y", covariate_names(10)).fit(df)

print(result.calibration_test())
