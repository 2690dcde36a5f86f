from __future__ import annotations

import copy
import logging
from numbers import Real

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from econml.grf import CausalForest as _GRFCausalForest
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.model_selection import KFold, StratifiedKFold, cross_val_predict

from .. import config
from ..diagnostics._check import Assumption
from .ate import ATEEstimate, average_treatment_effect, doubly_robust_scores

logger = logging.getLogger(__name__)

FOREST_ASSUMPTIONS: list[Assumption] = [
    Assumption("Unconfoundedness: no unobserved confounders given the covariates", testable=False),
    Assumption("Overlap: every unit has a non-degenerate probability of treatment", testable=True),
    Assumption("Nuisance models (propensity and outcome) are consistent", testable=True),
    Assumption("Stable Unit Treatment Value Assumption (SUTVA)", testable=False),
]

PROPENSITY_METHODS = ("forest", "logit")


# ── Private helpers (nuisance models) ──────────────────────────────────────────

def _propensity_scores(
    data: pd.DataFrame,
    treatment: str,
    covariates: list[str],
    n_folds: int,
    random_state: int,
    n_jobs: int,
    n_estimators: int = config.NUISANCE_N_ESTIMATORS,
    min_samples_leaf: int = config.NUISANCE_MIN_SAMPLES_LEAF,
) -> np.ndarray:
    """Cross-fitted random-forest estimate of P[W = 1 | X]."""
    model = RandomForestClassifier(
        n_estimators=n_estimators,
        min_samples_leaf=min_samples_leaf,
        random_state=random_state,
        n_jobs=n_jobs,
    )
    folds = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    proba = cross_val_predict(
        model,
        data[covariates].to_numpy(dtype=float),
        data[treatment].to_numpy(dtype=int),
        cv=folds,
        method="predict_proba",
    )
    return np.asarray(proba[:, 1], dtype=float)


def _logit_propensity_scores(
    data: pd.DataFrame,
    treatment: str,
    covariates: list[str],
) -> np.ndarray:
    """In-sample logistic regression of treatment on the covariates."""
    rhs = " + ".join(f"Q('{c}')" for c in covariates)
    frame = data[[treatment, *covariates]]
    ps = smf.logit(f"Q('{treatment}') ~ {rhs}", data=frame).fit(disp=0).predict()
    return np.asarray(ps, dtype=float)


def _outcome_predictions(
    data: pd.DataFrame,
    outcome: str,
    covariates: list[str],
    n_folds: int,
    random_state: int,
    n_jobs: int,
    n_estimators: int = config.NUISANCE_N_ESTIMATORS,
    min_samples_leaf: int = config.NUISANCE_MIN_SAMPLES_LEAF,
) -> np.ndarray:
    """Cross-fitted random-forest estimate of E[Y | X]."""
    model = RandomForestRegressor(
        n_estimators=n_estimators,
        min_samples_leaf=min_samples_leaf,
        random_state=random_state,
        n_jobs=n_jobs,
    )
    folds = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    pred = cross_val_predict(
        model,
        data[covariates].to_numpy(dtype=float),
        data[outcome].to_numpy(dtype=float),
        cv=folds,
    )
    return np.asarray(pred, dtype=float)


# ── Result ─────────────────────────────────────────────────────────────────────

class CausalForestResult:
    """
    A fitted causal forest together with everything the diagnostics need.

    ``cate`` holds out-of-fold CATE estimates: each unit's value comes from
    a forest trained on the other folds. ``propensities`` and
    ``outcome_predictions`` are the nuisance estimates used to centre the
    treatment and outcome before the forest was grown.
    """

    def __init__(
        self,
        forests: list,
        covariate_frame: pd.DataFrame,
        treatment_values: np.ndarray,
        outcome_values: np.ndarray,
        propensities: np.ndarray,
        outcome_predictions: np.ndarray,
        cate: np.ndarray,
        treatment: str,
        outcome: str,
        estimator: CausalForest,
    ) -> None:
        self._forests = forests
        self._X = covariate_frame
        self._W = treatment_values
        self._Y = outcome_values
        self._W_hat = propensities
        self._Y_hat = outcome_predictions
        self._tau = cate
        self._treatment = treatment
        self._outcome = outcome
        self._estimator = estimator
        self._ate: ATEEstimate | None = None

    # ── Fitted arrays ─────────────────────────────────────────────────────────

    @property
    def treatment(self) -> str:
        return self._treatment

    @property
    def outcome(self) -> str:
        return self._outcome

    @property
    def covariates(self) -> list[str]:
        return list(self._X.columns)

    @property
    def covariate_frame(self) -> pd.DataFrame:
        """Covariates the forest was fitted on."""
        return self._X.copy()

    @property
    def treatment_values(self) -> np.ndarray:
        """Observed treatment W (0/1)."""
        return self._W.copy()

    @property
    def outcome_values(self) -> np.ndarray:
        """Observed outcome Y."""
        return self._Y.copy()

    @property
    def propensities(self) -> np.ndarray:
        """Estimated propensity scores W.hat."""
        return self._W_hat.copy()

    @property
    def outcome_predictions(self) -> np.ndarray:
        """Estimated marginal outcome Y.hat = E[Y | X]."""
        return self._Y_hat.copy()

    @property
    def cate(self) -> np.ndarray:
        """Out-of-fold CATE estimates tau.hat."""
        return self._tau.copy()

    @property
    def estimator(self) -> CausalForest:
        """The (unfitted) estimator specification that produced this result."""
        return self._estimator

    @property
    def n_units(self) -> int:
        return len(self._Y)

    # ── Average effect ────────────────────────────────────────────────────────

    def average_treatment_effect(
        self,
        target: str = "all",
        subset=None,
        overlap_bounds: tuple[float, float] | None = None,
    ) -> ATEEstimate:
        """
        Doubly robust average treatment effect.

        See ``arborist.estimators.ate.average_treatment_effect`` for targets.
        """
        return average_treatment_effect(
            self, target=target, subset=subset, overlap_bounds=overlap_bounds,
        )

    def _overall(self) -> ATEEstimate:
        if self._ate is None:
            self._ate = self.average_treatment_effect()
        return self._ate

    @property
    def effect(self) -> float:
        """AIPW estimate of the ATE over all units."""
        return self._overall().estimate

    @property
    def std_err(self) -> float:
        """Standard error of the ATE."""
        return self._overall().std_err

    @property
    def conf_int(self) -> tuple[float, float]:
        """95% confidence interval for the ATE."""
        return self._overall().conf_int

    @property
    def pvalue(self) -> float:
        """Two-sided p-value for the ATE (``H0: ATE = 0``)."""
        return self._overall().pvalue

    def doubly_robust_scores(self) -> np.ndarray:
        """Per-unit AIPW scores; their mean is the ATE."""
        return doubly_robust_scores(self)

    # ── Prediction ────────────────────────────────────────────────────────────

    def predict(self, data: pd.DataFrame) -> np.ndarray:
        """
        CATE estimates for new rows: the mean prediction of the fold forests.

        Parameters
        ----------
        data : pd.DataFrame
            Must contain every covariate the forest was fitted on.
        """
        missing = [c for c in self.covariates if c not in data.columns]
        if missing:
            raise ValueError(f"Covariate column(s) {missing} not found in dataframe.")
        X = data[self.covariates].to_numpy(dtype=float)
        if np.isnan(X).any():
            raise ValueError("Covariates must not contain missing values.")
        preds = [np.asarray(f.predict(X)).reshape(len(X), -1)[:, 0] for f in self._forests]
        return np.mean(preds, axis=0)

    def variable_importance(self) -> pd.Series:
        """Split-based importance of each covariate, averaged over the fold forests."""
        imp = np.mean([np.asarray(f.feature_importances_, dtype=float) for f in self._forests], axis=0)
        total = imp.sum()
        if total > 0:
            imp = imp / total
        return pd.Series(imp, index=self.covariates, name="importance").sort_values(ascending=False)

    # ── Diagnostics ───────────────────────────────────────────────────────────

    def calibration_test(self):
        """Best-linear-predictor calibration test of the forest. See ``arborist.diagnostics.calibration``."""
        from ..diagnostics.calibration import calibration_test
        return calibration_test(self)

    def rank_average_treatment_effect(self, priorities, target: str = config.RATE_TARGET, **kwargs):
        """
        RATE of ``priorities`` evaluated with this forest's doubly robust scores.

        ``priorities`` should come from a model that did not see these units,
        e.g. ``other_result.predict(data)`` for a forest fitted on a separate
        sample.
        """
        from .rate import rank_average_treatment_effect
        return rank_average_treatment_effect(
            self.doubly_robust_scores(), priorities, target=target, **kwargs
        )

    def diagnose(
        self,
        data: pd.DataFrame,
        rate: bool = True,
        *,
        bounds: tuple[float, float] | None = None,
        threshold: float | None = None,
        tolerance: float | None = None,
        alpha: float | None = None,
        split: float = config.RATE_SPLIT,
        rate_kwargs: dict | None = None,
    ):
        """
        Run every diagnostic against this fit.

        Runs overlap, covariate balance, calibration, median-split
        heterogeneity, held-out RATE (refits two forests on halves of
        ``data``; skip with ``rate=False``) and the bias heuristic.
        The keyword options override the defaults in ``arborist.config``;
        see ``run_diagnostics``.

        Parameters
        ----------
        data : pd.DataFrame
            The same dataframe passed to ``fit()``.
        """
        from ..diagnostics.report import run_diagnostics
        return run_diagnostics(
            self, data, rate=rate, bounds=bounds, threshold=threshold,
            tolerance=tolerance, alpha=alpha, split=split, rate_kwargs=rate_kwargs,
        )

    @property
    def assumptions(self) -> list[Assumption]:
        """Modelling assumptions required for a causal interpretation."""
        return list(FOREST_ASSUMPTIONS)

    # ── Display ───────────────────────────────────────────────────────────────

    def executive_summary(self) -> str:
        """Narrative explanation of the method, assumptions, and result."""
        from .._explain import explain_forest
        return explain_forest(self)

    def summary(self) -> str:
        """Concise tabular summary of the ATE, the CATE spread, and assumptions."""
        lo, hi = self.conf_int
        att = self.average_treatment_effect("treated")
        q10, q50, q90 = np.percentile(self._tau, [10, 50, 90])
        model = self._estimator

        lines = [
            "",
            f"Causal Forest: {self._treatment} → {self._outcome}",
            f"  Estimand: ATE (AIPW), CATE (out-of-fold forest predictions)",
            "─" * 54,
            f"  ATE estimate         : {self.effect:>10.4f}",
            f"  Std. error           : {self.std_err:>10.4f}",
            f"  95% CI               : [{lo:.4f}, {hi:.4f}]",
            f"  p-value              : {self.pvalue:>10.4f}",
            f"  ATT estimate         : {att.estimate:>10.4f}  (SE {att.std_err:.4f})",
            "",
            f"  CATE 10/50/90 pct    : {q10:.4f} / {q50:.4f} / {q90:.4f}",
            f"  Propensity range     : [{self._W_hat.min():.4f}, {self._W_hat.max():.4f}]",
            "",
            f"  Forest: {model.n_estimators} trees x {model.n_folds} folds, "
            f"{len(self.covariates)} covariates, {self.n_units} units",
            "",
            "  Assumptions",
            "  " + "┄" * 48,
        ]
        for a in FOREST_ASSUMPTIONS:
            lines.append(f"  {a.fmt_tag()}  {a.name}")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()


# ── Estimator ──────────────────────────────────────────────────────────────────

class CausalForest:
    """
    Causal forest for heterogeneous treatment effects of a binary treatment.

    Fitting follows the residual-on-residual recipe of generalized random
    forests:

    1. Estimates propensities W.hat and the marginal outcome Y.hat with
       cross-fitted random forests (or a logistic model / known propensity).
    2. Centres the treatment and outcome: ``W - W.hat``, ``Y - Y.hat``.
    3. Grows an honest ``econml.grf.CausalForest`` on the centred data with
       K-fold cross-fitting, so every unit's CATE comes from a forest that
       never saw it.

    Example::

        df = simulate(n=2000)
        result = CausalForest(
            treatment="W", outcome="Y", covariates=covariate_names(10)
        ).fit(df)
        print(result.summary())
        print(result.diagnose(df).summary())
    """

    def __init__(
        self,
        treatment: str,
        outcome: str,
        covariates: list[str],
        *,
        n_estimators: int = config.N_ESTIMATORS,
        min_samples_leaf: int = config.MIN_SAMPLES_LEAF,
        max_samples: float = config.MAX_SAMPLES,
        honest: bool = config.HONEST,
        n_folds: int = config.N_FOLDS,
        propensity="forest",
        random_state: int = config.RANDOM_STATE,
        n_jobs: int = config.N_JOBS,
        nuisance_n_estimators: int = config.NUISANCE_N_ESTIMATORS,
        nuisance_min_samples_leaf: int = config.NUISANCE_MIN_SAMPLES_LEAF,
    ) -> None:
        self._treatment = treatment
        self._outcome = outcome
        self._covariates = list(covariates)
        self.n_estimators = n_estimators
        self.min_samples_leaf = min_samples_leaf
        self.max_samples = max_samples
        self.honest = honest
        self.n_folds = n_folds
        self.propensity = propensity
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.nuisance_n_estimators = nuisance_n_estimators
        self.nuisance_min_samples_leaf = nuisance_min_samples_leaf
        self._validate_inputs()

    @property
    def treatment(self) -> str:
        return self._treatment

    @property
    def outcome(self) -> str:
        return self._outcome

    @property
    def covariates(self) -> list[str]:
        return list(self._covariates)

    def with_propensity(self, propensity) -> CausalForest:
        """A copy of this estimator with every setting kept except ``propensity``."""
        clone = copy.copy(self)
        clone._covariates = list(self._covariates)
        clone.propensity = propensity
        clone._validate_inputs()
        return clone

    def _validate_inputs(self) -> None:
        T, Y, X = self._treatment, self._outcome, self._covariates
        if T == Y:
            raise ValueError("Treatment and outcome must be different variables.")
        if not X:
            raise ValueError("At least one covariate is required.")
        if len(set(X)) != len(X):
            dupes = sorted({c for c in X if X.count(c) > 1})
            raise ValueError(f"Duplicate covariates: {dupes}")
        for label, var in [("Treatment", T), ("Outcome", Y)]:
            if var in X:
                raise ValueError(f"{label} '{var}' cannot also be a covariate.")
        if self.n_folds < 2:
            raise ValueError(f"n_folds must be at least 2, got {self.n_folds}.")
        if self.n_estimators < 1:
            raise ValueError(f"n_estimators must be positive, got {self.n_estimators}.")

        p = self.propensity
        if isinstance(p, bool):
            raise ValueError(
                f"propensity must be one of {PROPENSITY_METHODS}, a probability, "
                f"or an array of probabilities; got the boolean {p!r}."
            )
        if isinstance(p, str):
            if p not in PROPENSITY_METHODS:
                raise ValueError(
                    f"propensity must be one of {PROPENSITY_METHODS}, a probability, "
                    f"or an array of probabilities; got {p!r}."
                )
        elif isinstance(p, Real):
            if not 0.0 < float(p) < 1.0:
                raise ValueError(f"A constant propensity must be in (0, 1), got {p}.")
        else:
            arr = np.asarray(p, dtype=float)
            if arr.ndim != 1:
                raise ValueError("A propensity array must be one-dimensional.")
            if np.isnan(arr).any() or arr.min() < 0.0 or arr.max() > 1.0:
                raise ValueError("A propensity array must contain probabilities in [0, 1].")

    def _validate_data(self, data: pd.DataFrame) -> None:
        columns = set(data.columns)
        for label, var in [("Treatment", self._treatment), ("Outcome", self._outcome)]:
            if var not in columns:
                raise ValueError(f"{label} column '{var}' not found in dataframe.")
        missing = [c for c in self._covariates if c not in columns]
        if missing:
            raise ValueError(f"Covariate column(s) {missing} not found in dataframe.")

        used = [self._treatment, self._outcome, *self._covariates]
        n_na = int(data[used].isna().sum().sum())
        if n_na:
            raise ValueError(
                f"Found {n_na} missing value(s) in the treatment, outcome or covariates. "
                f"Impute or drop them before fitting."
            )

        t_vals = set(data[self._treatment].unique())
        if not t_vals <= {0, 1, 0.0, 1.0}:
            raise ValueError(
                f"Treatment '{self._treatment}' must be binary (0/1). "
                f"Found values: {sorted(t_vals)}"
            )
        counts = data[self._treatment].astype(int).value_counts()
        if not {0, 1} <= set(counts.index):
            raise ValueError(
                f"Treatment '{self._treatment}' must contain both 0 and 1. "
                f"Found only: {t_vals}"
            )
        if counts.min() < self.n_folds:
            raise ValueError(
                f"Each treatment arm needs at least n_folds={self.n_folds} units; "
                f"found {dict(counts)}."
            )

        p = self.propensity
        if not isinstance(p, (str, Real)) and len(np.asarray(p)) != len(data):
            raise ValueError(
                f"Propensity array has length {len(np.asarray(p))}, "
                f"but the dataframe has {len(data)} rows."
            )

    def _propensities(self, data: pd.DataFrame) -> np.ndarray:
        p = self.propensity
        if isinstance(p, str):
            if p == "logit":
                return _logit_propensity_scores(data, self._treatment, self._covariates)
            return _propensity_scores(
                data, self._treatment, self._covariates,
                self.n_folds, self.random_state, self.n_jobs,
                self.nuisance_n_estimators, self.nuisance_min_samples_leaf,
            )
        if isinstance(p, Real):
            return np.full(len(data), float(p))
        return np.asarray(p, dtype=float).copy()

    def _new_forest(self, fold: int) -> _GRFCausalForest:
        return _GRFCausalForest(
            n_estimators=self.n_estimators,
            min_samples_leaf=self.min_samples_leaf,
            max_samples=self.max_samples,
            honest=self.honest,
            inference=False,
            random_state=self.random_state + fold,
            n_jobs=self.n_jobs,
        )

    def fit(self, data: pd.DataFrame) -> CausalForestResult:
        """
        Estimate nuisances, grow the cross-fitted forests, and return the result.

        Parameters
        ----------
        data : pd.DataFrame
            Must contain a binary (0/1) treatment column, a numeric outcome
            column, and every covariate.

        Raises
        ------
        ``ValueError``
            Missing columns, missing values, non-binary treatment, an arm with
            fewer than ``n_folds`` units, or a propensity array of the wrong
            length.
        """
        self._validate_data(data)
        data = data.reset_index(drop=True)
        n = len(data)
        logger.info(
            "Fitting causal forest %s -> %s on %d units, %d covariates",
            self._treatment, self._outcome, n, len(self._covariates),
        )

        X = data[self._covariates].to_numpy(dtype=float)
        W = data[self._treatment].to_numpy(dtype=float)
        Y = data[self._outcome].to_numpy(dtype=float)

        W_hat = self._propensities(data)
        Y_hat = _outcome_predictions(
            data, self._outcome, self._covariates,
            self.n_folds, self.random_state, self.n_jobs,
            self.nuisance_n_estimators, self.nuisance_min_samples_leaf,
        )
        logger.debug(
            "Nuisances: propensity range [%.4f, %.4f], outcome residual SD %.4f",
            W_hat.min(), W_hat.max(), float(np.std(Y - Y_hat)),
        )

        W_res = W - W_hat
        Y_res = Y - Y_hat

        tau = np.empty(n)
        forests = []
        folds = KFold(n_splits=self.n_folds, shuffle=True, random_state=self.random_state)
        for k, (train, test) in enumerate(folds.split(X)):
            forest = self._new_forest(k)
            forest.fit(X[train], W_res[train], Y_res[train])
            tau[test] = np.asarray(forest.predict(X[test])).reshape(len(test), -1)[:, 0]
            forests.append(forest)
            logger.debug("Fold %d: trained on %d units, predicted %d", k, len(train), len(test))

        return CausalForestResult(
            forests=forests,
            covariate_frame=data[self._covariates].copy(),
            treatment_values=W,
            outcome_values=Y,
            propensities=W_hat,
            outcome_predictions=Y_hat,
            cate=tau,
            treatment=self._treatment,
            outcome=self._outcome,
            estimator=self,
        )
