from ._check import Assumption, DiagnosticCheck
from .balance import covariate_balance, standardized_mean_differences
from .bias import bias_heuristic
from .calibration import CalibrationResult, calibration_test
from .heterogeneity import SubgroupContrast, held_out_rate, median_split, subgroup_contrast
from .overlap import overlap_summary
from .report import ForestDiagnosticReport, run_diagnostics

__all__ = [
    "Assumption", "DiagnosticCheck",
    "covariate_balance", "standardized_mean_differences",
    "bias_heuristic",
    "CalibrationResult", "calibration_test",
    "SubgroupContrast", "held_out_rate", "median_split", "subgroup_contrast",
    "overlap_summary",
    "ForestDiagnosticReport", "run_diagnostics",
]
