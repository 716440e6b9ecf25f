from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from .models import (
    Answer,
    AssignedFeedback,
    DimensionScore,
    FeedbackLibraryEntry,
    FeedbackType,
    RaterType,
)

T = TypeVar("T")

ROLE_ALIASES: dict[str, RaterType] = {
    "peer": RaterType.PEER,
    "colleague": RaterType.PEER,
    "direct_report": RaterType.DIRECT_REPORT,
    "subordinate": RaterType.DIRECT_REPORT,
    "directreport": RaterType.DIRECT_REPORT,
    "supervisor": RaterType.SUPERVISOR,
    "manager": RaterType.SUPERVISOR,
    "boss": RaterType.SUPERVISOR,
    "self": RaterType.SELF,
}


def mean_or_none(values: Iterable[float]) -> float | None:
    """Arithmetic mean, or None for an empty input (absence is not zero)."""
    values = list(values)
    if not values:
        return None
    return math.fsum(values) / len(values)


def pick_first_or_none(items: Iterable[T], predicate: Callable[[T], bool]) -> T | None:
    """
    Selection policy for assigned feedback: the first matching item in input
    order wins. Stores may hold several candidates; exactly one is surfaced.
    """
    return next((item for item in items if predicate(item)), None)


def map_role_to_rater_type(role: str | None) -> RaterType:
    """
    Normalize a group-membership role label to a rater type.

    >>> map_role_to_rater_type("Manager")
    <RaterType.SUPERVISOR: 'supervisor'>
    >>> map_role_to_rater_type(None)
    <RaterType.OTHER: 'other'>
    """
    if not role:
        return RaterType.OTHER
    return ROLE_ALIASES.get(role.lower(), RaterType.OTHER)


def is_blocker_assessment(title: str | None, marker: str = "blocker") -> bool:
    # Title substring dispatch: a title like "Blocker-Free Leadership" is
    # misclassified. Replace with an explicit assessment kind once the store has one.
    return bool(title) and marker.lower() in title.lower()


def exceeds(score: float, reference: float | None) -> bool:
    return reference is not None and score > reference


def falls_below(score: float, reference: float | None) -> bool:
    return reference is not None and score < reference


def blocker_needs_improvement(
    score: float, benchmark: float | None, peer_norm: float | None
) -> bool:
    """Blocker polarity: higher is worse."""
    return exceeds(score, benchmark) or exceeds(score, peer_norm)


def leader_needs_improvement(
    score: float,
    benchmark: float | None,
    peer_norm: float | None,
    group_score: float | None = None,
    tolerance: float = 0.49,
) -> bool:
    """
    Leader polarity: lower is worse. The batch group-score test only applies
    when ``group_score`` is given (top-level dimensions); scores within
    ``tolerance`` of the batch average are not flagged.
    """
    if falls_below(score, benchmark) or falls_below(score, peer_norm):
        return True
    return group_score is not None and score < group_score - tolerance


def parse_numeric(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def aggregate_dimension_scores(answers: Iterable[Answer]) -> list[DimensionScore]:
    """
    Reduce raw answers to one average per (assignment, dimension).

    Answers from fields without a dimension and non-numeric values are
    ignored. Output is ordered by first appearance.
    """
    buckets: dict[tuple[str, str], list[float]] = defaultdict(list)
    for answer in answers:
        if answer.dimension_id is None:
            continue
        number = parse_numeric(answer.value)
        if number is None:
            continue
        buckets[(answer.assignment_id, answer.dimension_id)].append(number)

    return [
        DimensionScore(
            assignment_id=assignment_id,
            dimension_id=dimension_id,
            avg_score=math.fsum(values) / len(values),
            answer_count=len(values),
        )
        for (assignment_id, dimension_id), values in buckets.items()
    ]


def select_feedback(
    scores: Sequence[DimensionScore], library: Sequence[FeedbackLibraryEntry]
) -> list[AssignedFeedback]:
    """
    Pick feedback-library entries for an assignment's dimension scores.

    For every scored dimension: the first ``overall`` entry whose score range
    accepts the score, then the first accepted ``specific`` entry.
    """
    assigned: list[AssignedFeedback] = []

    def pick(dimension_id: str, score: float, kind: FeedbackType) -> None:
        entry = pick_first_or_none(
            library,
            lambda e: e.dimension_id == dimension_id and e.type == kind and e.accepts(score),
        )
        if entry is not None:
            assigned.append(
                AssignedFeedback(
                    dimension_id=dimension_id,
                    type=kind,
                    content=entry.content,
                    feedback_id=entry.id,
                )
            )

    for score in scores:
        pick(score.dimension_id, score.avg_score, "overall")
        pick(score.dimension_id, score.avg_score, "specific")
    return assigned
