from .forest import CausalForest, CausalForestResult
from .ate import ATEEstimate, average_treatment_effect, doubly_robust_scores
from .rate import RATEResult, rank_average_treatment_effect

__all__ = [
    "CausalForest", "CausalForestResult",
    "ATEEstimate", "average_treatment_effect", "doubly_robust_scores",
    "RATEResult", "rank_average_treatment_effect",
]
