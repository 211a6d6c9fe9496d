"""
Smart Seat Exchange: Passenger registry API

Registration and seat-metadata maintenance for the passengers that make up the
candidate pool.  Login and session handling belong to the UI layer.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.exceptions import PassengerNotFoundError
from app.models.passenger import Passenger
from app.schemas.passenger import PassengerCreate, PassengerResponse, SeatUpdate

logger = structlog.get_logger("seat_exchange.api.passengers")

router = APIRouter()


async def _load_passenger(db: AsyncSession, user_id: int) -> Passenger:
    passenger = await db.get(Passenger, user_id)
    if passenger is None:
        raise PassengerNotFoundError(f"Passenger {user_id} not found.", user_id=user_id)
    return passenger


# ──────────────────────────────────────────────────────────────────────────────
# POST / - Register a passenger
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/",
    response_model=PassengerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a passenger",
)
async def register_passenger(
    payload: PassengerCreate,
    db: AsyncSession = Depends(get_db),
) -> Passenger:
    """Register a passenger by name and PNR.

    PNRs are unique; registering the same PNR twice returns 409.
    """
    log = logger.bind(pnr=payload.pnr)
    log.info("register_passenger_start")

    stmt = select(Passenger).where(Passenger.pnr == payload.pnr)
    existing = (await db.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        log.warning("register_passenger_duplicate_pnr")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A passenger with this PNR is already registered.",
        )

    passenger = Passenger(
        name=payload.name.strip(),
        pnr=payload.pnr,
        seat_type=payload.seat_type,
        coach_index=payload.coach_index,
        group_size=payload.group_size,
    )
    db.add(passenger)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same PNR
        await db.rollback()
        log.warning("register_passenger_duplicate_pnr", stage="flush")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A passenger with this PNR is already registered.",
        )
    await db.refresh(passenger)

    log.info("register_passenger_complete", user_id=passenger.id)
    return passenger


# ──────────────────────────────────────────────────────────────────────────────
# GET / - List passengers
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/",
    response_model=list[PassengerResponse],
    summary="List registered passengers",
)
async def list_passengers(
    limit: int = Query(20, ge=1, le=100, description="Max passengers to return"),
    offset: int = Query(0, ge=0, description="Number of passengers to skip"),
    db: AsyncSession = Depends(get_db),
) -> list[Passenger]:
    logger.info("list_passengers", limit=limit, offset=offset)

    stmt = (
        select(Passenger)
        .where(Passenger.is_active.is_(True))
        .order_by(Passenger.id)
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id} - Get passenger
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}",
    response_model=PassengerResponse,
    summary="Get passenger by ID",
)
async def get_passenger(
    user_id: int,
    db: AsyncSession = Depends(get_db),
) -> Passenger:
    logger.info("get_passenger", user_id=user_id)
    return await _load_passenger(db, user_id)


# ──────────────────────────────────────────────────────────────────────────────
# PATCH /{user_id}/seat - Update seat metadata
# ──────────────────────────────────────────────────────────────────────────────

@router.patch(
    "/{user_id}/seat",
    response_model=PassengerResponse,
    summary="Update seat metadata",
)
async def update_seat(
    user_id: int,
    payload: SeatUpdate,
    db: AsyncSession = Depends(get_db),
) -> Passenger:
    """Update seat type, coach and group size.

    Name and PNR are fixed at registration.  Only fields present in the
    request body are applied.
    """
    log = logger.bind(user_id=user_id)
    log.info("update_seat_start")

    passenger = await _load_passenger(db, user_id)

    update_data = payload.model_dump(exclude_unset=True)
    if update_data.get("group_size", 1) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="group_size cannot be null.",
        )
    for field, value in update_data.items():
        setattr(passenger, field, value)

    await db.flush()
    await db.refresh(passenger)
    log.info("update_seat_complete", updated_fields=list(update_data.keys()))
    return passenger
