"""
Causal forest — executive summary
=================================
Narrative description of a fitted forest, with a logistic propensity model
instead of the default propensity forest.
"""

from arborist import CausalForest, covariate_names, simulate

df = simulate(n=2_000, p=10, seed=1)

result = CausalForest(
    treatment="W", outcome="Y", covariates=covariate_names(10), propensity="logit",
).fit(df)

print(result.executive_summary())
