from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from arborist import OverlapError, bias_heuristic, covariate_balance, overlap_summary
from arborist.diagnostics import DiagnosticCheck, standardized_mean_differences
from arborist.diagnostics.balance import _check_balance, inverse_propensity_weights
from arborist.diagnostics.bias import _check_bias
from arborist.diagnostics.overlap import _check_overlap


N = 5_000


def make_result(seed=42):
    """Oracle nuisances on data confounded through x1."""
    rng = np.random.default_rng(seed)
    x1 = rng.normal(size=N)
    x2 = rng.normal(size=N)
    e = 1.0 / (1.0 + np.exp(-x1))
    W = rng.binomial(1, e).astype(float)
    tau = np.ones(N)
    Y = x1 + tau * W + rng.normal(size=N)
    return SimpleNamespace(
        covariate_frame=pd.DataFrame({"x1": x1, "x2": x2}),
        outcome_values=Y,
        treatment_values=W,
        outcome_predictions=x1 + e * tau,
        propensities=e,
        cate=tau,
        n_units=N,
    )


class TestStandardizedMeanDifferences:
    def test_known_value(self):
        X = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0]})
        smd = standardized_mean_differences(X, [1, 1, 0, 0])
        assert smd["x"] == pytest.approx(-2.0 / np.sqrt(0.5))

    def test_weights_shift_means_not_scale(self):
        X = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0]})
        smd = standardized_mean_differences(X, [1, 1, 0, 0], weights=[0.0, 1.0, 1.0, 1.0])
        assert smd["x"] == pytest.approx(-1.5 / np.sqrt(0.5))

    def test_constant_covariate_is_zero(self):
        X = pd.DataFrame({"c": [5.0, 5.0, 5.0, 5.0]})
        assert standardized_mean_differences(X, [1, 0, 1, 0])["c"] == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="length"):
            standardized_mean_differences(pd.DataFrame({"x": [1.0, 2.0]}), [1, 0, 1])

    def test_single_arm_raises(self):
        with pytest.raises(ValueError, match="Both"):
            standardized_mean_differences(pd.DataFrame({"x": [1.0, 2.0]}), [1, 1])


class TestCovariateBalance:
    @classmethod
    def setup_class(cls):
        cls.r = make_result()
        cls.balance = covariate_balance(cls.r)

    def test_columns_and_index(self):
        assert list(self.balance.columns) == ["raw_smd", "weighted_smd"]
        assert list(self.balance.index) == ["x1", "x2"]

    def test_confounder_imbalanced_before_weighting(self):
        assert self.balance.loc["x1", "raw_smd"] > 0.5

    def test_weighting_with_true_propensities_balances(self):
        assert abs(self.balance.loc["x1", "weighted_smd"]) < 0.1
        assert abs(self.balance.loc["x2", "weighted_smd"]) < 0.1

    def test_check_passes(self):
        check = _check_balance(self.balance)
        assert isinstance(check, DiagnosticCheck)
        assert check.passed
        assert "weighted SMD" in check.detail

    def test_check_fails_on_raw_imbalance(self):
        raw_only = pd.DataFrame({
            "raw_smd": self.balance["raw_smd"],
            "weighted_smd": self.balance["raw_smd"],
        })
        check = _check_balance(raw_only)
        assert not check.passed
        assert "x1" in check.detail

    def test_ipw_weights(self):
        w = inverse_propensity_weights(self.r)
        treated = self.r.treatment_values == 1
        assert np.allclose(w[treated], 1.0 / self.r.propensities[treated])
        assert np.allclose(w[~treated], 1.0 / (1.0 - self.r.propensities[~treated]))

    def test_check_records_worst_smd(self):
        check = _check_balance(self.balance, threshold=0.2)
        assert check.threshold == 0.2
        assert check.statistic == pytest.approx(self.balance["weighted_smd"].abs().max())
        assert check.margin < 0


class TestDegenerateWeights:
    def test_treated_unit_with_zero_propensity_raises(self):
        r = make_result()
        r.propensities = r.propensities.copy()
        r.propensities[np.flatnonzero(r.treatment_values == 1)[0]] = 0.0
        with pytest.raises(OverlapError):
            inverse_propensity_weights(r)
        with pytest.raises(OverlapError):
            covariate_balance(r)

    def test_control_unit_with_unit_propensity_raises(self):
        r = make_result()
        r.propensities = r.propensities.copy()
        r.propensities[np.flatnonzero(r.treatment_values == 0)[0]] = 1.0
        with pytest.raises(OverlapError):
            inverse_propensity_weights(r)

    def test_zero_propensity_on_control_unit_is_finite(self):
        r = make_result()
        r.propensities = r.propensities.copy()
        r.propensities[np.flatnonzero(r.treatment_values == 0)[0]] = 0.0
        assert np.isfinite(inverse_propensity_weights(r)).all()

    def test_check_fails_on_nan_smd(self):
        balance = pd.DataFrame(
            {"raw_smd": [0.3, 0.01], "weighted_smd": [np.nan, 0.01]}, index=["a", "b"],
        )
        check = _check_balance(balance)
        assert not check.passed
        assert "a" in check.detail.split(":")[-1]

    def test_check_fails_when_every_smd_is_nan(self):
        balance = pd.DataFrame(
            {"raw_smd": [0.3, 0.2], "weighted_smd": [np.nan, np.nan]}, index=["a", "b"],
        )
        check = _check_balance(balance)
        assert not check.passed
        assert check.statistic == np.inf


class TestOverlap:
    def test_summary_fields(self):
        r = SimpleNamespace(propensities=np.array([0.01, 0.2, 0.5, 0.97]))
        s = overlap_summary(r)
        assert s["min"] == pytest.approx(0.01)
        assert s["max"] == pytest.approx(0.97)
        assert s["n_below"] == 1
        assert s["n_above"] == 1
        assert s["share_outside"] == pytest.approx(0.5)

    def test_custom_bounds(self):
        r = SimpleNamespace(propensities=np.array([0.01, 0.2, 0.5, 0.97]))
        s = overlap_summary(r, bounds=(0.0, 1.0))
        assert s["n_below"] == 0 and s["n_above"] == 0

    def test_bad_bounds_raise(self):
        r = SimpleNamespace(propensities=np.array([0.5]))
        with pytest.raises(ValueError, match="bounds"):
            overlap_summary(r, bounds=(0.9, 0.1))

    def test_check_passes_inside_bounds(self):
        r = SimpleNamespace(propensities=np.array([0.2, 0.5, 0.8]))
        check = _check_overlap(overlap_summary(r))
        assert check.passed
        assert check.name == "Overlap"

    def test_check_fails_outside_bounds(self):
        r = SimpleNamespace(propensities=np.array([0.01, 0.5, 0.8]))
        check = _check_overlap(overlap_summary(r))
        assert not check.passed
        assert "1 unit(s)" in check.detail
        assert check.statistic == pytest.approx(1 / 3)
        assert check.threshold == 0.0


class TestBiasHeuristic:
    def test_constant_propensity_gives_zero_bias(self):
        r = make_result()
        r.propensities = np.full(N, r.treatment_values.mean())
        assert np.allclose(bias_heuristic(r), 0.0)

    def test_confounding_gives_nonzero_bias(self):
        bias = bias_heuristic(make_result())
        assert bias.shape == (N,)
        assert np.max(np.abs(bias)) > 0.05

    def test_bias_is_scaled_by_outcome_sd(self):
        r = make_result()
        base = bias_heuristic(r)
        r.outcome_values = r.outcome_values * 2.0
        assert np.allclose(bias_heuristic(r), base / 2.0)

    def test_constant_outcome_raises(self):
        r = make_result()
        r.outcome_values = np.zeros(N)
        with pytest.raises(ValueError, match="zero variance"):
            bias_heuristic(r)

    def test_check(self):
        assert _check_bias(np.array([0.01, -0.02])).passed
        failed = _check_bias(np.array([0.01, -0.9]))
        assert not failed.passed
        assert "max |bias|" in failed.detail

    def test_check_custom_tolerance(self):
        assert not _check_bias(np.array([0.01, -0.02]), tolerance=0.001).passed


class TestDiagnosticCheck:
    def test_margin(self):
        check = DiagnosticCheck("Bias heuristic", True, "ok", statistic=0.1, threshold=0.25)
        assert check.margin == pytest.approx(-0.15)

    def test_margin_nan_without_numbers(self):
        assert np.isnan(DiagnosticCheck("Custom", False, "no numbers").margin)

    def test_frozen(self):
        check = DiagnosticCheck("Overlap", True, "ok", statistic=0.0, threshold=0.0)
        with pytest.raises(AttributeError):
            check.passed = False

    def test_repr(self):
        check = DiagnosticCheck("Overlap", False, "bad", statistic=0.5, threshold=0.0)
        assert "FAIL" in repr(check) and "Overlap" in repr(check)

    def test_bias_check_numbers(self):
        check = _check_bias(np.array([0.01, -0.3]), tolerance=0.2)
        assert check.statistic == pytest.approx(0.3)
        assert check.threshold == 0.2
        assert not check.passed
