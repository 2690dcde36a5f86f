from .data import simulate, covariate_names
from .estimators.forest import CausalForest, CausalForestResult
from .estimators.ate import ATEEstimate, average_treatment_effect, doubly_robust_scores
from .estimators.rate import RATEResult, rank_average_treatment_effect
from .diagnostics import (
    Assumption, DiagnosticCheck, ForestDiagnosticReport, CalibrationResult, SubgroupContrast,
    calibration_test, covariate_balance, overlap_summary, median_split, subgroup_contrast,
    held_out_rate, bias_heuristic, run_diagnostics,
)
from ._exceptions import OverlapError

__all__ = [
    "simulate", "covariate_names",
    "CausalForest", "CausalForestResult",
    "ATEEstimate", "average_treatment_effect", "doubly_robust_scores",
    "RATEResult", "rank_average_treatment_effect",
    "Assumption", "DiagnosticCheck", "ForestDiagnosticReport", "CalibrationResult", "SubgroupContrast",
    "calibration_test", "covariate_balance", "overlap_summary", "median_split", "subgroup_contrast",
    "held_out_rate", "bias_heuristic", "run_diagnostics",
    "OverlapError",
]
