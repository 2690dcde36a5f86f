from types import SimpleNamespace

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from arborist import rank_average_treatment_effect
from arborist.plotting import (
    plot_balance, plot_bias, plot_cate, plot_overlap, plot_toc,
    plot_weighted_covariate, save_figure,
)


N = 500


def make_result():
    rng = np.random.default_rng(0)
    x = rng.normal(size=N)
    e = 1.0 / (1.0 + np.exp(-x))
    return SimpleNamespace(
        covariate_frame=pd.DataFrame({"x": x}),
        treatment_values=rng.binomial(1, e).astype(float),
        propensities=e,
        cate=np.maximum(x, 0.0),
    )


def teardown_function():
    plt.close("all")


class TestPlots:
    def test_overlap(self):
        fig, ax = plot_overlap(make_result())
        assert ax.get_xlabel() == "Estimated propensity score"
        assert len(ax.get_legend().get_texts()) == 2

    def test_balance(self):
        balance = pd.DataFrame({"raw_smd": [0.5, -0.05], "weighted_smd": [0.02, 0.01]}, index=["a", "b"])
        fig, ax = plot_balance(balance)
        assert [t.get_text() for t in ax.get_yticklabels()] == ["b", "a"]

    def test_weighted_covariate(self):
        fig, ax = plot_weighted_covariate(make_result(), "x")
        assert ax.get_xlabel() == "x"

    def test_weighted_covariate_unknown_raises(self):
        with pytest.raises(ValueError, match="z"):
            plot_weighted_covariate(make_result(), "z")

    def test_cate(self):
        fig, ax = plot_cate(make_result())
        assert "CATE" in ax.get_title()

    def test_toc(self):
        rng = np.random.default_rng(1)
        x = rng.normal(size=200)
        rate = rank_average_treatment_effect(x + rng.normal(size=200), x, n_bootstrap=20)
        fig, ax = plot_toc(rate)
        assert "AUTOC" in ax.get_title()

    def test_bias(self):
        fig, ax = plot_bias(np.linspace(-0.1, 0.1, 50))
        assert ax.get_xlabel() == "Bias / sd(Y)"


def test_save_figure_creates_directories(tmp_path):
    fig, _ = plot_cate(make_result())
    path = tmp_path / "nested" / "cate.png"
    save_figure(fig, path)
    assert path.exists()
