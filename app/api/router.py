"""
Smart Seat Exchange: Main API Router

Aggregates all sub-routers so that ``app.main`` can mount the entire API
surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import exchange, passengers

router = APIRouter()

router.include_router(exchange.router, tags=["Exchange"])
router.include_router(passengers.router, prefix="/passengers", tags=["Passengers"])
