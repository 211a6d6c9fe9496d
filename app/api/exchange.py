"""
Smart Seat Exchange: Exchange prediction API

``POST /predict_matches`` ranks every other registered passenger by how likely
they are to accept the requester's exchange.  ``POST /predict`` is the one-off
probability check for a single (optionally named) candidate.

Each handler receives an explicit ``ExchangeSession`` built per request; there
is no process-wide "current passenger".
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.database import get_db
from app.exceptions import ExchangeValidationError, PassengerNotFoundError
from app.ml.acceptance import build_probability_model
from app.schemas.exchange import (
    PredictMatchesRequest,
    PredictMatchesResponse,
    PredictRequest,
    PredictResponse,
)
from app.services.candidate_pool import (
    CandidatePoolProvider,
    DatabaseCandidatePool,
    MockCandidatePool,
)
from app.services.matching_service import MatchingService
from app.services.response_normalizer import normalize_match_set, normalize_prediction

logger = structlog.get_logger("seat_exchange.api.exchange")

router = APIRouter()

# ── Service singletons ────────────────────────────────────────────────────────

_matching_service: MatchingService | None = None
_mock_pool: MockCandidatePool | None = None


def get_matching_service() -> MatchingService:
    global _matching_service
    if _matching_service is None:
        settings = get_settings()
        _matching_service = MatchingService(model=build_probability_model(settings))
    return _matching_service


def shutdown_matching_service() -> None:
    global _matching_service
    if _matching_service is not None:
        _matching_service.close()
        _matching_service = None


def _get_mock_pool(settings: Settings) -> MockCandidatePool:
    global _mock_pool
    if _mock_pool is None:
        _mock_pool = MockCandidatePool(size=settings.MOCK_POOL_SIZE, seed=settings.MOCK_SEED)
    return _mock_pool


async def get_candidate_pool(
    db: AsyncSession = Depends(get_db),
) -> CandidatePoolProvider:
    settings = get_settings()
    if settings.CANDIDATE_POOL == "mock":
        return _get_mock_pool(settings)
    return DatabaseCandidatePool(db)


# ── Per-request session ──────────────────────────────────────────────────────

@dataclass
class ExchangeSession:
    """Everything one exchange request needs, passed explicitly to handlers."""

    request_id: str
    settings: Settings
    pool: CandidatePoolProvider
    service: MatchingService
    log: structlog.stdlib.BoundLogger


async def get_exchange_session(
    request: Request,
    pool: CandidatePoolProvider = Depends(get_candidate_pool),
    service: MatchingService = Depends(get_matching_service),
) -> ExchangeSession:
    request_id = (
        getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or uuid.uuid4().hex
    )
    return ExchangeSession(
        request_id=request_id,
        settings=get_settings(),
        pool=pool,
        service=service,
        log=logger.bind(request_id=request_id),
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /predict_matches - Rank willing passengers
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/predict_matches",
    response_model=PredictMatchesResponse,
    summary="Rank passengers likely to accept a seat exchange",
)
async def predict_matches(
    payload: PredictMatchesRequest,
    threshold: float | None = Query(
        None, description="Willing-to-exchange threshold in percent (default from config)"
    ),
    session: ExchangeSession = Depends(get_exchange_session),
) -> PredictMatchesResponse:
    """Score every other registered passenger and return the willing subset,
    highest acceptance probability first."""
    log = session.log.bind(user_id=payload.user_id)
    log.info("predict_matches_start", threshold=threshold)

    match_set = await session.service.match(
        payload.to_domain(user_id=payload.user_id),
        session.pool,
        threshold=threshold,
    )
    response = normalize_match_set(match_set)

    log.info(
        "predict_matches_complete",
        total_analyzed=response.total_analyzed,
        willing=response.willing_to_exchange,
        skipped=match_set.skipped,
    )
    return response


# ──────────────────────────────────────────────────────────────────────────────
# POST /predict - One-off probability check
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/predict",
    response_model=PredictResponse,
    summary="Acceptance probability for a single exchange",
)
async def predict(
    payload: PredictRequest,
    session: ExchangeSession = Depends(get_exchange_session),
) -> PredictResponse:
    """Return the acceptance probability (0–1) and a send / hold decision.

    With ``candidate_id`` the named passenger's seat metadata is used;
    without it the candidate is assumed to travel alone.
    """
    log = session.log.bind(user_id=payload.user_id, candidate_id=payload.candidate_id)
    log.info("predict_start")

    if payload.candidate_id is not None and payload.candidate_id == payload.user_id:
        raise ExchangeValidationError(
            "A passenger cannot be matched with themselves.", field="candidate_id"
        )

    candidate = None
    requester = None
    if payload.candidate_id is not None:
        candidate = await session.pool.get(payload.candidate_id)
        if candidate is None:
            raise PassengerNotFoundError(
                f"Passenger {payload.candidate_id} not found.",
                user_id=payload.candidate_id,
            )
        if payload.user_id is not None:
            requester = await session.pool.get(payload.user_id)

    prediction = await session.service.predict(
        payload.to_domain(user_id=payload.user_id),
        candidate=candidate,
        requester=requester,
    )
    response = normalize_prediction(prediction)

    log.info(
        "predict_complete",
        probability=response.acceptance_probability,
        decision=response.decision,
    )
    return response
