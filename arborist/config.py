"""
Default settings shared by the estimators and diagnostics.

Each value can be overridden per call:

* forest settings and ``NUISANCE_*`` through the ``CausalForest`` constructor
  (``n_estimators``, ..., ``nuisance_n_estimators``,
  ``nuisance_min_samples_leaf``);
* ``BOOTSTRAP_N`` / ``BOOTSTRAP_SEED`` and ``RATE_TARGET`` through
  ``n_bootstrap`` / ``random_state`` and ``target`` on
  ``rank_average_treatment_effect``;
* ``RATE_SPLIT`` / ``RATE_SPLIT_SEED`` through ``split`` / ``random_state``
  on ``held_out_rate``;
* ``OVERLAP_BOUNDS``, ``BALANCE_THRESHOLD``, ``BIAS_TOLERANCE`` and ``ALPHA``
  through ``bounds``, ``threshold``, ``tolerance`` and ``alpha`` on
  ``run_diagnostics`` / ``CausalForestResult.diagnose`` (and
  ``overlap_bounds`` on ``average_treatment_effect``).
"""
from __future__ import annotations

# Forest
N_ESTIMATORS     = 500
MIN_SAMPLES_LEAF = 5
MAX_SAMPLES      = 0.45
HONEST           = True
N_FOLDS          = 5
RANDOM_STATE     = 42
N_JOBS           = -1

# Nuisance forests (propensity and marginal outcome)
NUISANCE_N_ESTIMATORS     = 300
NUISANCE_MIN_SAMPLES_LEAF = 5

# Inference
ALPHA          = 0.05
BOOTSTRAP_N    = 200
BOOTSTRAP_SEED = 42

# Diagnostics
OVERLAP_BOUNDS    = (0.05, 0.95)
BALANCE_THRESHOLD = 0.1
BIAS_TOLERANCE    = 0.25
RATE_TARGET       = "AUTOC"
RATE_SPLIT        = 0.5
RATE_SPLIT_SEED   = 2024
