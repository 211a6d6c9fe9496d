"""
Smart Seat Exchange: Candidate pool providers.

A provider hands the matching engine an immutable snapshot of every registered
passenger.  The snapshot is taken once at the start of a run; registrations
that land mid-run are picked up by the next run.

Providers:
  * ``DatabaseCandidatePool`` - live registry (PostgreSQL via SQLAlchemy)
  * ``StaticCandidatePool``   - fixed in-memory list (tests, batch tools)
  * ``MockCandidatePool``     - seeded synthetic passengers for demos,
                                selected with ``CANDIDATE_POOL=mock``
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.exceptions import PoolUnavailableError
from app.ml.acceptance.types import CandidateProfile
from app.models.passenger import Passenger

logger = structlog.get_logger("seat_exchange.candidate_pool")

SEAT_TYPES: tuple[str, ...] = ("lower", "middle", "upper", "side_lower", "side_upper")

SNAPSHOT_ATTEMPTS = 3


def _is_transient_db_error(exc: BaseException) -> bool:
    """Dropped connections and refused connects are worth one more try."""
    if isinstance(exc, (OperationalError, OSError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def profile_from_passenger(passenger: Passenger) -> CandidateProfile:
    return CandidateProfile(
        user_id=passenger.id,
        seat_type=passenger.seat_type,
        coach_index=passenger.coach_index,
        group_size=passenger.group_size,
    )


class CandidatePoolProvider(ABC):
    """Read-only source of candidate passengers."""

    name: str = "base"

    @abstractmethod
    async def snapshot(self) -> tuple[CandidateProfile, ...]:
        """Return every registered passenger, ordered by id.

        Raises ``PoolUnavailableError`` if the backing store cannot be read.
        """

    async def get(self, user_id: int) -> CandidateProfile | None:
        for candidate in await self.snapshot():
            if candidate.user_id == user_id:
                return candidate
        return None


class StaticCandidatePool(CandidatePoolProvider):
    name = "static"

    def __init__(self, candidates: Iterable[CandidateProfile] = ()) -> None:
        self._candidates = tuple(sorted(candidates, key=lambda c: c.user_id))

    async def snapshot(self) -> tuple[CandidateProfile, ...]:
        return self._candidates


class MockCandidatePool(CandidatePoolProvider):
    """Synthetic passengers generated from a fixed seed.

    Ids run from 1 to ``size`` so a requester id inside that range is
    excluded like any real registered passenger would be.
    """

    name = "mock"

    def __init__(self, size: int = 25, seed: int = 42) -> None:
        rng = random.Random(seed)
        candidates = []
        for i in range(size):
            candidates.append(
                CandidateProfile(
                    user_id=i + 1,
                    seat_type=rng.choice(SEAT_TYPES),
                    coach_index=rng.randint(0, 17),
                    # Most passengers travel alone, some with family
                    group_size=1 if rng.random() < 0.6 else rng.randint(2, 5),
                )
            )
        self._candidates = tuple(candidates)
        logger.info("mock_pool_generated", size=size, seed=seed)

    async def snapshot(self) -> tuple[CandidateProfile, ...]:
        return self._candidates


class DatabaseCandidatePool(CandidatePoolProvider):
    """Active passengers from the registry."""

    name = "database"

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def snapshot(self) -> tuple[CandidateProfile, ...]:
        stmt = (
            select(Passenger)
            .where(Passenger.is_active.is_(True))
            .order_by(Passenger.id)
        )
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient_db_error),
                stop=stop_after_attempt(SNAPSHOT_ATTEMPTS),
                wait=wait_exponential(multiplier=0.05, max=0.5),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "candidate_pool_retry",
                            attempt_number=attempt.retry_state.attempt_number,
                        )
                        await self.db_session.rollback()
                    result = await self.db_session.execute(stmt)
                    passengers = result.scalars().all()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("candidate_pool_unavailable", error=str(exc))
            raise PoolUnavailableError(
                "Passenger registry is unavailable", provider=self.name
            ) from exc

        return tuple(profile_from_passenger(p) for p in passengers)

    async def get(self, user_id: int) -> CandidateProfile | None:
        try:
            passenger = await self.db_session.get(Passenger, user_id)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("candidate_lookup_failed", user_id=user_id, error=str(exc))
            raise PoolUnavailableError(
                "Passenger registry is unavailable", provider=self.name
            ) from exc
        if passenger is None or not passenger.is_active:
            return None
        return profile_from_passenger(passenger)
