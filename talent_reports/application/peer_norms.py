"""
On-demand peer-group norms (GEOnorms).

Norms are recomputed from current completed-assignment data on every call and
never cached, so repeated calls can differ as more assignments complete.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from ..domain.models import PeerNorm
from ..domain.ports import ReportDataSource
from ..domain.services import mean_or_none
from ..infrastructure.logging import get_logger

logger = get_logger(__name__)


def calculate_peer_norms(
    source: ReportDataSource,
    group_id: str,
    assessment_id: str,
    dimension_ids: Sequence[str],
) -> dict[str, PeerNorm]:
    """
    Average dimension score across completed assignments of a group's members.

    Args:
        source: Data source to read membership, assignments and scores from
        group_id: Peer group whose members form the norm population
        assessment_id: Only assignments of this assessment contribute
        dimension_ids: Dimensions to compute norms for

    Returns:
        Mapping of dimension id to :class:`PeerNorm`. Dimensions without any
        contributing score are absent, never present with a zero count. Every
        degenerate input (unknown group, no members, no completed assignments,
        no scores) yields an empty or partial mapping rather than an error.
    """
    if not dimension_ids:
        return {}

    members = source.find_group_members(group_id)
    profile_ids = list(dict.fromkeys(m.profile_id for m in members))
    if not profile_ids:
        logger.debug("Group %s has no members; no peer norms", group_id)
        return {}

    assignments = source.find_assignments(
        profile_ids=profile_ids, assessment_id=assessment_id, completed=True
    )
    if not assignments:
        logger.debug(
            "No completed assignments for group %s on assessment %s", group_id, assessment_id
        )
        return {}

    requested = list(dict.fromkeys(dimension_ids))
    scores = source.find_dimension_scores([a.id for a in assignments], requested)

    by_dimension: dict[str, list[float]] = defaultdict(list)
    for row in scores:
        by_dimension[row.dimension_id].append(row.avg_score)

    norms: dict[str, PeerNorm] = {}
    for dimension_id in requested:
        values = by_dimension.get(dimension_id)
        average = mean_or_none(values or [])
        if average is None:
            continue
        norms[dimension_id] = PeerNorm(
            dimension_id=dimension_id,
            average_score=average,
            participant_count=len(values),
        )

    logger.debug(
        "Computed %d peer norms for group %s from %d assignments",
        len(norms),
        group_id,
        len(assignments),
    )
    return norms


def calculate_peer_norm_for_dimension(
    source: ReportDataSource, group_id: str, assessment_id: str, dimension_id: str
) -> PeerNorm | None:
    return calculate_peer_norms(source, group_id, assessment_id, [dimension_id]).get(dimension_id)
