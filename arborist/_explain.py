"""
Narrative explanation renderer for a fitted causal forest.

``explain_forest`` takes a ``CausalForestResult`` and returns a formatted
multi-line string; ``CausalForestResult.executive_summary()`` calls it.
"""
from __future__ import annotations

import numpy as np

_SEP = "━" * 66


# ── Shared helpers ─────────────────────────────────────────────────────────────

def _fmt_p(p: float) -> str:
    if p < 0.001:
        return "p < 0.001"
    return f"p = {p:.3f}"


def _fmt_ci(lo: float, hi: float) -> str:
    return f"[{lo:.4f}, {hi:.4f}]"


def _list_vars(names: list[str], limit: int = 6) -> str:
    if len(names) > limit:
        return ", ".join(names[:limit]) + f" and {len(names) - limit} more"
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + f" and {names[-1]}"


def _binary_effect_phrase(effect: float, treatment: str, outcome: str) -> str:
    direction = "increase" if effect >= 0 else "decrease"
    return (
        f"receiving {treatment} is estimated to cause an average "
        f"{direction} of {abs(effect):.4f} in {outcome}"
    )


def _assumptions_section(assumptions: list) -> str:
    n = len(assumptions)
    n_u = sum(1 for a in assumptions if not a.testable)
    n_t = n - n_u
    intro = (
        f"{n_u} of the {n} required assumptions {'is' if n_u == 1 else 'are'} untestable "
        f"and must be justified on substantive grounds; "
        f"{n_t} can be inspected with result.diagnose()."
    )
    lines = ["ASSUMPTIONS", intro, ""]
    for a in assumptions:
        lines.append(f"  {a.fmt_tag()}  {a.name}")
    return "\n".join(lines)


# ── Explanation ────────────────────────────────────────────────────────────────

def explain_forest(result) -> str:
    T, Y = result.treatment, result.outcome
    covs = result.covariates
    model = result.estimator
    trees = "honest trees" if model.honest else "trees"
    lo, hi = result.conf_int
    tau = result.cate
    q10, q90 = np.percentile(tau, [10, 90])
    top = result.variable_importance().head(3)

    blocks = [
        "\n".join([_SEP, "Executive Summary — Causal Forest",
                   f"  {T} → {Y}  |  estimands: ATE and CATE", _SEP]),

        "\n".join([
            "METHOD",
            f"A causal forest estimates how the effect of {T} on {Y} varies with "
            f"{_list_vars(covs)}. Propensity scores and expected outcomes were "
            f"estimated first and used to centre {T} and {Y}; the forest was then "
            f"grown on the centred data with {model.n_folds}-fold cross-fitting "
            f"({model.n_estimators} {trees} per fold), so each unit's CATE comes "
            f"from trees that never saw it. The average effect combines the forest "
            f"with the propensity scores in a doubly robust (AIPW) estimator.",
        ]),

        _assumptions_section(result.assumptions),

        "\n".join([
            "RESULT",
            f"On average, {_binary_effect_phrase(result.effect, T, Y)} "
            f"(ATE = {result.effect:.4f}, 95% CI: {_fmt_ci(lo, hi)}, "
            f"SE = {result.std_err:.4f}, {_fmt_p(result.pvalue)}).",
            "",
            f"Unit-level estimates range from {q10:.4f} to {q90:.4f} between the "
            f"10th and 90th percentiles. The forest split most on "
            f"{_list_vars(list(top.index))}.",
        ]),

        "\n".join([
            "CAVEATS",
            f"Unconfoundedness is untestable: a confounder missing from the "
            f"covariates biases both the ATE and the CATE ranking. The spread of "
            f"CATE estimates mixes real heterogeneity with estimation noise; use "
            f"the calibration test and held-out RATE in result.diagnose() before "
            f"acting on individual estimates.",
        ]),

        _SEP,
    ]
    return "\n\n".join(blocks)
