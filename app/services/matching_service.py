"""
Smart Seat Exchange: Matching Engine

Scores every candidate in the pool against one exchange request and returns
the ranked willing-to-exchange subset:

  1. Snapshot the candidate pool once; drop the requester's own record.
  2. Extract features and score each candidate on a worker thread.
  3. p ∈ [0, 1] from the model → percentage = round(p × 100) for display.
  4. Willing  ⇔  p × 100 ≥ threshold   (default 70 %).
  5. Sort willing by displayed percentage desc, ties by candidate id asc.

Candidates the model cannot score are excluded and counted in ``skipped``.
The whole run is bounded by ``MATCH_TIMEOUT_SECONDS``; on expiry the caller
gets ``MatchTimeoutError`` and never a partial ``MatchSet``.
"""

from __future__ import annotations

import asyncio
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

import structlog

from app.config import get_settings
from app.exceptions import MatchTimeoutError, UnscoreableCandidateError
from app.ml.acceptance import features as feature_extractor
from app.ml.acceptance.base import AcceptanceModel
from app.ml.acceptance.types import (
    CandidateProfile,
    ExchangeRequest,
    FeatureVector,
    Unscoreable,
)
from app.services.candidate_pool import CandidatePoolProvider

logger = structlog.get_logger("seat_exchange.matching_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

DECISION_SEND = "Send Request"
DECISION_HOLD = "Not Recommended"

# Percentages are compared at this precision so that float noise such as
# 0.29 * 100 == 28.999999999999996 does not flip a boundary decision.
_PERCENT_PRECISION = 6


def to_percentage(probability: float) -> float:
    """Unrounded percentage, cleaned of float noise."""
    return round(probability * 100.0, _PERCENT_PRECISION)


def display_percentage(probability: float) -> int:
    """Nearest whole percentage, halves rounded up."""
    return int(math.floor(to_percentage(probability) + 0.5))


def is_willing(probability: float, threshold: float) -> bool:
    return to_percentage(probability) >= threshold


# ──────────────────────────────────────────────────────────────────────────────
# Result types
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Match:
    candidate_id: int
    probability: float            # canonical [0, 1], unrounded
    coach_distance: int
    group_size: int
    seat_type: str | None = None

    @property
    def percentage(self) -> int:
        return display_percentage(self.probability)

    def sort_key(self) -> tuple[int, int]:
        return (-self.percentage, self.candidate_id)


@dataclass(frozen=True)
class MatchSet:
    total_candidates_considered: int
    matches: tuple[Match, ...] = ()
    skipped: int = 0
    threshold: float = 70.0

    @property
    def willing_count(self) -> int:
        return len(self.matches)

    @classmethod
    def empty(cls, threshold: float) -> "MatchSet":
        return cls(total_candidates_considered=0, matches=(), skipped=0, threshold=threshold)


@dataclass(frozen=True)
class Prediction:
    probability: float
    decision: str
    candidate_id: int | None = None


class MatchingService:
    """Concurrent scoring and ranking over a candidate pool.

    Dependencies are injected at construction so that the service can be
    tested with stub models and swapped in FastAPI's dependency graph.  The
    model and the extractor must be reentrant; the service never shares
    mutable state between scoring tasks.
    """

    def __init__(
        self,
        model: AcceptanceModel,
        threshold: float | None = None,
        timeout_seconds: float | None = None,
        max_workers: int | None = None,
        extractor: Callable[..., FeatureVector] = feature_extractor.extract,
    ) -> None:
        settings = get_settings()
        self.model = model
        self.extractor = extractor
        self.threshold: float = (
            settings.ACCEPTANCE_THRESHOLD if threshold is None else float(threshold)
        )
        self.timeout_seconds: float = (
            settings.MATCH_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        workers = settings.SCORING_WORKERS if max_workers is None else max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="seat-scorer"
        )

        logger.info(
            "matching_service_initialised",
            model=getattr(model, "name", type(model).__name__),
            threshold=self.threshold,
            timeout_seconds=self.timeout_seconds,
            workers=workers,
        )

    # ── Public API ────────────────────────────────────────────────────────

    async def match(
        self,
        request: ExchangeRequest,
        pool: CandidatePoolProvider,
        threshold: float | None = None,
    ) -> MatchSet:
        """Run one matching pass of ``request`` against ``pool``.

        Raises
        ------
        ExchangeValidationError
            Request fields out of range; nothing is scored.
        PoolUnavailableError
            The pool could not be read.
        MatchTimeoutError
            The run did not finish within ``timeout_seconds``.
        """
        request.validate()
        threshold = self.threshold if threshold is None else float(threshold)

        log = logger.bind(
            requester_id=request.user_id,
            model=getattr(self.model, "name", "custom"),
            pool=getattr(pool, "name", "custom"),
        )
        log.info("match_run_start", threshold=threshold)
        started = time.perf_counter()

        try:
            match_set = await asyncio.wait_for(
                self._run(request, pool, threshold, log),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            log.warning("match_run_timeout", timeout=self.timeout_seconds)
            raise MatchTimeoutError(
                f"Matching did not complete within {self.timeout_seconds}s",
                timeout=self.timeout_seconds,
            ) from exc

        log.info(
            "match_run_complete",
            total_analyzed=match_set.total_candidates_considered,
            willing=match_set.willing_count,
            skipped=match_set.skipped,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return match_set

    async def predict(
        self,
        request: ExchangeRequest,
        candidate: CandidateProfile | None = None,
        requester: CandidateProfile | None = None,
        threshold: float | None = None,
    ) -> Prediction:
        """Score a single pair without ranking a population.

        ``candidate`` may be ``None`` for a generic check against a passenger
        travelling alone.  Raises ``UnscoreableCandidateError`` if the model
        cannot produce a probability.
        """
        request.validate()
        threshold = self.threshold if threshold is None else float(threshold)

        loop = asyncio.get_running_loop()
        try:
            outcome = await asyncio.wait_for(
                loop.run_in_executor(
                    self._executor, self._score_pair, request, candidate, requester
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise MatchTimeoutError(
                f"Prediction did not complete within {self.timeout_seconds}s",
                timeout=self.timeout_seconds,
            ) from exc

        candidate_id = candidate.user_id if candidate is not None else None
        if isinstance(outcome, Unscoreable):
            logger.warning(
                "prediction_unscoreable",
                candidate_id=candidate_id,
                reason=outcome.reason,
            )
            raise UnscoreableCandidateError(
                f"Could not score request: {outcome.reason}",
                candidate_id=candidate_id,
            )

        decision = DECISION_SEND if is_willing(outcome, threshold) else DECISION_HOLD
        logger.info(
            "prediction_complete",
            candidate_id=candidate_id,
            probability=round(outcome, 4),
            decision=decision,
        )
        return Prediction(probability=outcome, decision=decision, candidate_id=candidate_id)

    def close(self) -> None:
        """Stop the worker pool; pending scoring tasks are cancelled."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _run(
        self,
        request: ExchangeRequest,
        pool: CandidatePoolProvider,
        threshold: float,
        log,
    ) -> MatchSet:
        snapshot = await pool.snapshot()

        requester: CandidateProfile | None = None
        candidates: list[CandidateProfile] = []
        seen: set[int] = set()
        for candidate in snapshot:
            if request.user_id is not None and candidate.user_id == request.user_id:
                requester = candidate
                continue
            if candidate.user_id in seen:
                log.warning("duplicate_candidate_ignored", candidate_id=candidate.user_id)
                continue
            seen.add(candidate.user_id)
            candidates.append(candidate)

        if requester is not None:
            log.info("self_candidate_filtered", requester_id=requester.user_id)

        if not candidates:
            log.info("match_run_empty_pool")
            return MatchSet.empty(threshold)

        loop = asyncio.get_running_loop()
        outcomes = await asyncio.gather(
            *(
                loop.run_in_executor(
                    self._executor, self._score_candidate, request, candidate, requester
                )
                for candidate in candidates
            )
        )

        scored: list[Match] = []
        skipped = 0
        for candidate, outcome in zip(candidates, outcomes):
            if isinstance(outcome, Unscoreable):
                skipped += 1
                log.info(
                    "candidate_unscoreable",
                    candidate_id=candidate.user_id,
                    reason=outcome.reason,
                )
                continue
            scored.append(outcome)

        willing = sorted(
            (m for m in scored if is_willing(m.probability, threshold)),
            key=Match.sort_key,
        )

        return MatchSet(
            total_candidates_considered=len(scored),
            matches=tuple(willing),
            skipped=skipped,
            threshold=threshold,
        )

    def _score_pair(
        self,
        request: ExchangeRequest,
        candidate: CandidateProfile | None,
        requester: CandidateProfile | None,
    ) -> float | Unscoreable:
        try:
            features = self.extractor(request, candidate, requester)
        except UnscoreableCandidateError as exc:
            return Unscoreable(exc.message)
        return self.model.score(features)

    def _score_candidate(
        self,
        request: ExchangeRequest,
        candidate: CandidateProfile,
        requester: CandidateProfile | None,
    ) -> Match | Unscoreable:
        outcome = self._score_pair(request, candidate, requester)
        if isinstance(outcome, Unscoreable):
            return outcome

        distance = max(
            feature_extractor.resolve_coach_distance(request, candidate, requester), 0
        )
        return Match(
            candidate_id=candidate.user_id,
            probability=outcome,
            coach_distance=distance,
            group_size=candidate.group_size,
            seat_type=candidate.seat_type,
        )
