"""
Smart Seat Exchange: Response Normalizer

The only place where engine results are turned into the wire contract:

  * candidate ids always leave as ``passenger_id``
  * match probabilities always leave as a 0–100 percentage
  * the single ``/predict`` probability always leaves as 0–1

Before anything is emitted the result is checked for internal consistency.
A violation raises ``ResponseContractError``; the caller then sees a single
error instead of a ``MatchSet`` whose counts disagree with its list.
"""

from __future__ import annotations

import math

import structlog

from app.exceptions import ResponseContractError
from app.schemas.exchange import MatchItem, PredictMatchesResponse, PredictResponse
from app.services.matching_service import Match, MatchSet, Prediction

logger = structlog.get_logger("seat_exchange.response_normalizer")


def _check_probability(value: float, candidate_id: int | None) -> None:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or not 0.0 <= value <= 1.0:
        raise ResponseContractError(
            f"Probability {value!r} outside [0, 1]", candidate_id=candidate_id
        )


def _normalize_match(match: Match) -> MatchItem:
    _check_probability(match.probability, match.candidate_id)
    return MatchItem(
        passenger_id=match.candidate_id,
        acceptance_probability=float(match.percentage),
        coach_distance=match.coach_distance,
        group_size=match.group_size,
        seat_type=match.seat_type,
    )


def normalize_match_set(match_set: MatchSet) -> PredictMatchesResponse:
    items = [_normalize_match(m) for m in match_set.matches]

    if match_set.willing_count != len(items):
        raise ResponseContractError("willing count does not match match list")
    if match_set.total_candidates_considered < len(items):
        raise ResponseContractError(
            "more matches than analysed candidates",
            total=match_set.total_candidates_considered,
            willing=len(items),
        )

    keys = [(-i.acceptance_probability, i.passenger_id) for i in items]
    if keys != sorted(keys):
        raise ResponseContractError("matches are not in ranking order")
    if len({i.passenger_id for i in items}) != len(items):
        raise ResponseContractError("duplicate passenger in matches")

    return PredictMatchesResponse(
        total_analyzed=match_set.total_candidates_considered,
        willing_to_exchange=len(items),
        matches=items,
    )


def normalize_prediction(prediction: Prediction) -> PredictResponse:
    _check_probability(prediction.probability, prediction.candidate_id)
    return PredictResponse(
        acceptance_probability=round(float(prediction.probability), 4),
        decision=prediction.decision,
    )
