"""Shared pytest fixtures for the seat exchange tests."""
import pytest

from app.ml.acceptance.types import CandidateProfile, ExchangeRequest
from app.services.candidate_pool import StaticCandidatePool
from app.services.matching_service import MatchingService
from tests.stubs import DistanceLookupModel


@pytest.fixture
def make_request():
    """Factory for valid exchange requests; keyword overrides win."""
    def _make(**overrides):
        fields = {
            "user_id": 100,
            "gender_match": True,
            "seat_upgrade": False,
            "coach_distance": 2,
            "group_size": 1,
            "travel_duration": 4.0,
        }
        fields.update(overrides)
        return ExchangeRequest(**fields)
    return _make


@pytest.fixture
def requester_profile():
    """Requester sits in coach 0, so a candidate in coach N is N coaches away."""
    return CandidateProfile(user_id=100, seat_type="upper", coach_index=0, group_size=1)


@pytest.fixture
def boundary_pool(requester_profile):
    """Worked example: three candidates scoring 90 %, 70 % and 65 %."""
    return StaticCandidatePool([
        requester_profile,
        CandidateProfile(user_id=1, seat_type="lower", coach_index=1, group_size=2),
        CandidateProfile(user_id=2, seat_type="side_lower", coach_index=2, group_size=1),
        CandidateProfile(user_id=3, seat_type="middle", coach_index=3, group_size=4),
    ])


@pytest.fixture
def boundary_model():
    return DistanceLookupModel({1: 0.90, 2: 0.70, 3: 0.65})


@pytest.fixture
def service_factory():
    """Build MatchingService instances and shut their workers down afterwards."""
    created = []

    def _build(model, **kwargs):
        kwargs.setdefault("threshold", 70.0)
        kwargs.setdefault("timeout_seconds", 5.0)
        kwargs.setdefault("max_workers", 4)
        service = MatchingService(model=model, **kwargs)
        created.append(service)
        return service

    yield _build
    for service in created:
        service.close()
