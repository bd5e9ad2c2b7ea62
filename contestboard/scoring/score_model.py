"""Score model: category point tables and the weighted total score."""

from __future__ import annotations

import enum
import math
from typing import Any, Optional, Union

TEST_SCORE_WEIGHT = 0.6
MIN_SCORE = 0.0
MAX_SCORE = 100.0


class Education(str, enum.Enum):
    """Highest completed education level."""

    SLTA = "SLTA"
    D1 = "D1"
    D2 = "D2"
    D3 = "D3"
    S1 = "S1"
    S2 = "S2"
    S3 = "S3"


class Experience(str, enum.Enum):
    """Prior role held in village government."""

    KEPALA_DESA = "Kepala Desa"
    BPD = "BPD"
    SEKDES = "Sekdes"
    KASI = "Kasi"
    KAUR = "Kaur"
    KASUN = "Kasun"
    NO_EXPERIENCE = "No Experience"


EDUCATION_VALUES: dict[Education, int] = {
    Education.SLTA: 5,
    Education.D1: 8,
    Education.D2: 11,
    Education.D3: 14,
    Education.S1: 17,
    Education.S2: 20,
    Education.S3: 20,
}

EXPERIENCE_VALUES: dict[Experience, int] = {
    Experience.KEPALA_DESA: 20,
    Experience.BPD: 20,
    Experience.SEKDES: 18,
    Experience.KASI: 15,
    Experience.KAUR: 15,
    Experience.KASUN: 12,
    Experience.NO_EXPERIENCE: 0,
}

DEFAULT_EDUCATION = Education.SLTA
DEFAULT_EXPERIENCE = Experience.NO_EXPERIENCE


def _lookup_key(value: str) -> str:
    # "Kepala Desa", "KepalaDesa" and "kepala desa" all name the same category.
    return "".join(value.split()).lower()


_EDUCATION_BY_KEY = {_lookup_key(member.value): member for member in Education}
_EXPERIENCE_BY_KEY = {_lookup_key(member.value): member for member in Experience}


def parse_education(value: Union[str, Education, None]) -> Optional[Education]:
    """Return the :class:`Education` matching ``value`` or ``None`` when unknown."""
    if isinstance(value, Education):
        return value
    if not isinstance(value, str):
        return None
    return _EDUCATION_BY_KEY.get(_lookup_key(value))


def parse_experience(value: Union[str, Experience, None]) -> Optional[Experience]:
    """Return the :class:`Experience` matching ``value`` or ``None`` when unknown."""
    if isinstance(value, Experience):
        return value
    if not isinstance(value, str):
        return None
    return _EXPERIENCE_BY_KEY.get(_lookup_key(value))


def education_value(value: Union[str, Education, None]) -> int:
    member = parse_education(value)
    return EDUCATION_VALUES[member] if member is not None else 0


def experience_value(value: Union[str, Experience, None]) -> int:
    member = parse_experience(value)
    return EXPERIENCE_VALUES[member] if member is not None else 0


def coerce_score(raw: Any) -> float:
    """Leniently convert ``raw`` into a finite float.

    ``None``, blank strings, unparseable strings, booleans and non-finite
    values all become ``0.0``. This never raises.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return 0.0
        try:
            value = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def normalize_score(raw: Any) -> Optional[float]:
    """Clamp a submitted score into ``[0, 100]``.

    A blank submission (``None`` or whitespace) clears the score and returns
    ``None``. Anything unparseable becomes ``0.0`` rather than an error so the
    caller can reflect the coerced value back to the user.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    value = coerce_score(raw)
    return min(MAX_SCORE, max(MIN_SCORE, value))


# The test score and the next-stage score follow the same input policy.
normalize_test_score = normalize_score
normalize_next_stage_score = normalize_score


def compute_total_score(
    education: Union[str, Education, None],
    experience: Union[str, Experience, None],
    test_score: Any = None,
) -> float:
    """Compute a participant's total score.

    Parameters
    ----------
    education : str or Education
        Education category. Unknown values contribute ``0``.
    experience : str or Experience
        Experience category. Unknown values contribute ``0``.
    test_score : Any, default: None
        Numeric test score; missing or unparseable values contribute ``0``.

    Returns
    -------
    float
        ``education_value + experience_value + 0.6 * test_score``.
    """
    return (
        education_value(education)
        + experience_value(experience)
        + TEST_SCORE_WEIGHT * coerce_score(test_score)
    )


__all__ = [
    "DEFAULT_EDUCATION",
    "DEFAULT_EXPERIENCE",
    "EDUCATION_VALUES",
    "EXPERIENCE_VALUES",
    "Education",
    "Experience",
    "TEST_SCORE_WEIGHT",
    "coerce_score",
    "compute_total_score",
    "education_value",
    "experience_value",
    "normalize_next_stage_score",
    "normalize_score",
    "normalize_test_score",
    "parse_education",
    "parse_experience",
]
