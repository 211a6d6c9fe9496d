"""Feature extraction for (requester, candidate) pairs.

``extract`` is a pure function: identical inputs always produce an identical
``FeatureVector`` and nothing outside the returned value is touched apart from
a log line when an input has to be clamped.
"""

from __future__ import annotations

import math

import structlog

from app.exceptions import UnscoreableCandidateError
from app.ml.acceptance.types import (
    MIN_GROUP_SIZE,
    MIN_TRAVEL_HOURS,
    CandidateProfile,
    ExchangeRequest,
    FeatureVector,
)

logger = structlog.get_logger("seat_exchange.features")

# Longest rake in regular service; distances beyond this saturate.
MAX_COACH_DISTANCE = 24


def resolve_coach_distance(
    request: ExchangeRequest,
    candidate: CandidateProfile | None,
    requester: CandidateProfile | None,
) -> int:
    """Coach gap between the two seats.

    When both passengers have a known coach index the gap is measured from the
    registry, otherwise the distance declared in the request is used.
    """
    if (
        candidate is not None
        and requester is not None
        and candidate.coach_index is not None
        and requester.coach_index is not None
    ):
        return abs(requester.coach_index - candidate.coach_index)
    return request.coach_distance


def extract(
    request: ExchangeRequest,
    candidate: CandidateProfile | None = None,
    requester: CandidateProfile | None = None,
) -> FeatureVector:
    """Build the feature vector for one pair.

    ``candidate`` may be omitted for the one-off ``/predict`` check, in which
    case the candidate is assumed to travel alone.
    """
    warnings: list[str] = []

    distance = resolve_coach_distance(request, candidate, requester)
    if distance < 0:
        logger.warning(
            "coach_distance_clamped",
            value=distance,
            candidate_id=candidate.user_id if candidate else None,
        )
        warnings.append("coach_distance_clamped")
        distance = 0

    group_size = max(int(request.group_size), MIN_GROUP_SIZE)

    candidate_group_size = MIN_GROUP_SIZE
    if candidate is not None:
        if candidate.group_size is None or candidate.group_size < MIN_GROUP_SIZE:
            raise UnscoreableCandidateError(
                f"Candidate {candidate.user_id} has invalid group size "
                f"{candidate.group_size!r}",
                candidate_id=candidate.user_id,
            )
        candidate_group_size = int(candidate.group_size)

    hours = max(float(request.travel_duration), MIN_TRAVEL_HOURS)

    return FeatureVector(
        gender_match=1.0 if request.gender_match else 0.0,
        seat_upgrade=1.0 if request.seat_upgrade else 0.0,
        coach_distance=float(distance),
        group_size=float(group_size),
        candidate_group_size=float(candidate_group_size),
        travel_duration=hours,
        distance_norm=min(distance, MAX_COACH_DISTANCE) / MAX_COACH_DISTANCE,
        log_duration=math.log1p(hours),
        warnings=tuple(warnings),
    )
