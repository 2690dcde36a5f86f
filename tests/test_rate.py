import numpy as np
import pytest

from arborist import RATEResult, rank_average_treatment_effect


N = 2_000


def make_scores(seed=42):
    """Scores whose mean rises with x; x is a perfect priority rule."""
    rng = np.random.default_rng(seed)
    x = rng.normal(size=N)
    scores = np.maximum(x, 0.0) + rng.normal(size=N)
    return x, scores


class TestRATEEstimation:
    @classmethod
    def setup_class(cls):
        cls.x, cls.scores = make_scores()
        cls.autoc = rank_average_treatment_effect(cls.scores, cls.x, target="AUTOC")
        cls.qini = rank_average_treatment_effect(cls.scores, cls.x, target="QINI")

    def test_returns_rate_result(self):
        assert isinstance(self.autoc, RATEResult)

    def test_good_priorities_positive(self):
        assert self.autoc.estimate > 0
        assert self.qini.estimate > 0

    def test_good_priorities_significant(self):
        assert self.autoc.estimate / self.autoc.std_err > 1.96

    def test_reversed_priorities_negative(self):
        rev = rank_average_treatment_effect(self.scores, -self.x, n_bootstrap=0)
        assert rev.estimate < 0

    def test_qini_smaller_than_autoc(self):
        # QINI down-weights the small-q end where the TOC is largest.
        assert self.qini.estimate < self.autoc.estimate

    def test_toc_frame(self):
        toc = self.autoc.toc
        assert list(toc.columns) == ["q", "estimate", "std_err"]
        assert len(toc) == 1000
        assert toc["q"].iloc[-1] == pytest.approx(1.0)
        assert toc["estimate"].iloc[-1] == pytest.approx(0.0, abs=1e-12)

    def test_conf_int_ordered(self):
        lo, hi = self.autoc.conf_int
        assert lo < self.autoc.estimate < hi

    def test_deterministic(self):
        again = rank_average_treatment_effect(self.scores, self.x, target="AUTOC")
        assert again.std_err == self.autoc.std_err

    def test_summary(self):
        assert "AUTOC" in self.autoc.summary()
        assert repr(self.autoc) == self.autoc.summary()


class TestRATEExact:
    def test_two_units(self):
        autoc = rank_average_treatment_effect([1.0, 0.0], [2.0, 1.0], target="AUTOC", n_bootstrap=0)
        qini = rank_average_treatment_effect([1.0, 0.0], [2.0, 1.0], target="QINI", n_bootstrap=0)
        assert autoc.estimate == pytest.approx(0.25)
        assert qini.estimate == pytest.approx(0.125)

    def test_constant_scores_give_zero(self):
        r = rank_average_treatment_effect(np.ones(100), np.arange(100.0), n_bootstrap=0)
        assert r.estimate == pytest.approx(0.0, abs=1e-12)

    def test_all_tied_priorities_give_zero(self):
        rng = np.random.default_rng(0)
        r = rank_average_treatment_effect(rng.normal(size=100), np.zeros(100), n_bootstrap=0)
        assert r.estimate == pytest.approx(0.0, abs=1e-12)

    def test_ties_ignore_input_order(self):
        scores = np.array([3.0, 0.0, 1.0, 1.0])
        prios = np.array([1.0, 1.0, 0.0, 0.0])
        a = rank_average_treatment_effect(scores, prios, n_bootstrap=0)
        b = rank_average_treatment_effect(scores[[1, 0, 3, 2]], prios[[1, 0, 3, 2]], n_bootstrap=0)
        assert a.estimate == pytest.approx(b.estimate)

    def test_no_bootstrap_gives_nan_se(self):
        r = rank_average_treatment_effect([1.0, 0.0, 2.0], [1.0, 2.0, 3.0], n_bootstrap=0)
        assert np.isnan(r.std_err)

    def test_custom_q_grid(self):
        r = rank_average_treatment_effect(np.arange(10.0), np.arange(10.0), q=[0.1, 0.5, 1.0], n_bootstrap=0)
        assert list(r.toc["q"]) == [0.1, 0.5, 1.0]
        # Top 10% is the single best unit: 9 - mean(0..9).
        assert r.toc["estimate"].iloc[0] == pytest.approx(4.5)


class TestRATEValidation:
    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="same length"):
            rank_average_treatment_effect([1.0, 2.0], [1.0])

    def test_too_few_units_raises(self):
        with pytest.raises(ValueError, match="two units"):
            rank_average_treatment_effect([1.0], [1.0])

    def test_nan_raises(self):
        with pytest.raises(ValueError, match="NaN"):
            rank_average_treatment_effect([1.0, np.nan], [1.0, 2.0])

    def test_bad_target_raises(self):
        with pytest.raises(ValueError, match="target"):
            rank_average_treatment_effect([1.0, 2.0], [1.0, 2.0], target="AUC")

    def test_q_out_of_range_raises(self):
        with pytest.raises(ValueError, match="q must"):
            rank_average_treatment_effect([1.0, 2.0], [1.0, 2.0], q=[0.0, 1.0])

    def test_q_not_increasing_raises(self):
        with pytest.raises(ValueError, match="increasing"):
            rank_average_treatment_effect([1.0, 2.0], [1.0, 2.0], q=[0.5, 0.2])
