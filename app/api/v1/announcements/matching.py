"""Match score for a tutor's interest in a lead (0-100).

Weights: subject coverage 60, demo approval ratio 15, rating 15, experience 10.
"""

from typing import Iterable, Optional

SUBJECT_WEIGHT = 60
APPROVAL_WEIGHT = 15
RATING_WEIGHT = 15
EXPERIENCE_WEIGHT = 10

MAX_RATING = 5.0
# Teaching hours at which the experience component saturates
EXPERIENCE_CAP_HOURS = 1000.0


def _normalize(subjects: Optional[Iterable[str]]) -> set:
    return {s.strip().lower() for s in (subjects or []) if s and s.strip()}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def subject_coverage(lead_subjects: Iterable[str], tutor_subjects: Iterable[str]) -> float:
    """Share of the lead's subjects the tutor teaches."""
    wanted = _normalize(lead_subjects)
    if not wanted:
        return 0.0
    return len(wanted & _normalize(tutor_subjects)) / len(wanted)


def compute_match_score(
    lead_subjects: Iterable[str],
    tutor_subjects: Iterable[str],
    approval_ratio: float = 0.0,
    ratings: float = 0.0,
    experience_hours: float = 0.0,
) -> int:
    score = (
        SUBJECT_WEIGHT * subject_coverage(lead_subjects, tutor_subjects)
        + APPROVAL_WEIGHT * _clamp(approval_ratio)
        + RATING_WEIGHT * _clamp(ratings / MAX_RATING)
        + EXPERIENCE_WEIGHT * _clamp(experience_hours / EXPERIENCE_CAP_HOURS)
    )
    return int(round(score))
