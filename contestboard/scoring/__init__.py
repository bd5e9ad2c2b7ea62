"""Score computation and ranking."""

from .ranking import (
    Ranked,
    TIE_EPSILON,
    TieResult,
    detect_first_place_tie,
    rank,
    rank_map,
    rank_next_stage,
)
from .score_model import (
    EDUCATION_VALUES,
    EXPERIENCE_VALUES,
    Education,
    Experience,
    compute_total_score,
    normalize_next_stage_score,
    normalize_test_score,
)

__all__ = [
    "EDUCATION_VALUES",
    "EXPERIENCE_VALUES",
    "Education",
    "Experience",
    "Ranked",
    "TIE_EPSILON",
    "TieResult",
    "compute_total_score",
    "detect_first_place_tie",
    "normalize_next_stage_score",
    "normalize_test_score",
    "rank",
    "rank_map",
    "rank_next_stage",
]
