"""
Smart Seat Exchange: Domain errors.

Per-candidate failures (``UnscoreableCandidateError``) are absorbed by the
matching engine and only show up in the ``skipped`` counter.  Whole-run
failures (``PoolUnavailableError``, ``MatchTimeoutError``) abort the run and
are mapped to a single HTTP error in ``app.main``.
"""

from __future__ import annotations


class SeatExchangeError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "seat_exchange_error"

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ExchangeValidationError(SeatExchangeError):
    """A request field is missing or out of range."""

    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, field: str | None = None, **context) -> None:
        super().__init__(message, field=field, **context)
        self.field = field


class UnscoreableCandidateError(SeatExchangeError):
    """The model (or the extractor) could not score one candidate."""

    status_code = 422
    code = "unscoreable_candidate"


class PoolUnavailableError(SeatExchangeError):
    """The candidate pool provider could not be read."""

    status_code = 503
    code = "pool_unavailable"


class MatchTimeoutError(SeatExchangeError):
    """A matching run exceeded its deadline."""

    status_code = 504
    code = "match_timeout"


class PassengerNotFoundError(SeatExchangeError):
    status_code = 404
    code = "passenger_not_found"


class ResponseContractError(SeatExchangeError):
    """An internal result could not be rendered into the wire contract."""

    status_code = 500
    code = "response_contract_violation"
