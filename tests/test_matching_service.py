"""Unit tests for MatchingService - scoring, thresholding and ranking."""
import asyncio

import pytest
from unittest.mock import MagicMock

from app.exceptions import (
    ExchangeValidationError,
    MatchTimeoutError,
    PoolUnavailableError,
    UnscoreableCandidateError,
)
from app.ml.acceptance.heuristic import HeuristicAcceptanceModel
from app.ml.acceptance.types import CandidateProfile
from app.services.candidate_pool import CandidatePoolProvider, StaticCandidatePool
from app.services.matching_service import (
    DECISION_HOLD,
    DECISION_SEND,
    MatchSet,
    display_percentage,
    is_willing,
)
from tests.stubs import ConstantModel, DistanceLookupModel, FailingLookupModel


class BrokenPool(CandidatePoolProvider):
    name = "broken"

    async def snapshot(self):
        raise PoolUnavailableError("registry down")


class SlowPool(CandidatePoolProvider):
    name = "slow"

    async def snapshot(self):
        await asyncio.sleep(1.0)
        return ()


class TestPercentages:

    def test_half_rounds_up(self):
        assert display_percentage(0.125) == 13
        assert display_percentage(0.124) == 12

    def test_float_noise_does_not_flip_threshold(self):
        """0.29 * 100 is 28.999999999999996 in binary floating point."""
        assert is_willing(0.29, 29.0)
        assert is_willing(0.70, 70.0)
        assert not is_willing(0.6999, 70.0)


class TestBoundaryScenario:

    @pytest.mark.asyncio
    async def test_threshold_70_keeps_90_and_70(
        self, service_factory, make_request, boundary_pool, boundary_model
    ):
        """Pool scoring [90 %, 70 %, 65 %] at threshold 70 -> two matches."""
        service = service_factory(boundary_model)
        result = await service.match(make_request(), boundary_pool)

        assert result.total_candidates_considered == 3
        assert result.willing_count == 2
        assert [m.percentage for m in result.matches] == [90, 70]
        assert [m.candidate_id for m in result.matches] == [1, 2]
        assert result.skipped == 0

    @pytest.mark.asyncio
    async def test_matches_echo_candidate_context(
        self, service_factory, make_request, boundary_pool, boundary_model
    ):
        service = service_factory(boundary_model)
        result = await service.match(make_request(), boundary_pool)

        first = result.matches[0]
        assert first.coach_distance == 1
        assert first.group_size == 2
        assert first.seat_type == "lower"
        assert 0.0 <= first.probability <= 1.0


class TestSelfExclusion:

    @pytest.mark.asyncio
    async def test_requester_never_in_matches(self, service_factory, make_request):
        pool = StaticCandidatePool([
            CandidateProfile(user_id=100),
            CandidateProfile(user_id=5),
        ])
        service = service_factory(ConstantModel(0.95))
        result = await service.match(make_request(user_id=100), pool)

        assert [m.candidate_id for m in result.matches] == [5]
        assert result.total_candidates_considered == 1

    @pytest.mark.asyncio
    async def test_pool_with_only_requester_is_empty(self, service_factory, make_request):
        pool = StaticCandidatePool([CandidateProfile(user_id=100)])
        service = service_factory(ConstantModel(0.95))
        result = await service.match(make_request(user_id=100), pool)

        assert result == MatchSet.empty(70.0)


class TestEdgeCases:

    @pytest.mark.asyncio
    async def test_empty_pool(self, service_factory, make_request):
        service = service_factory(ConstantModel(0.95))
        result = await service.match(make_request(), StaticCandidatePool([]))

        assert result.total_candidates_considered == 0
        assert result.willing_count == 0
        assert result.matches == ()

    @pytest.mark.asyncio
    async def test_threshold_zero_or_below_accepts_everyone(
        self, service_factory, make_request, boundary_pool, boundary_model
    ):
        service = service_factory(boundary_model)
        for threshold in (0, -10):
            result = await service.match(make_request(), boundary_pool, threshold=threshold)
            assert result.willing_count == 3

    @pytest.mark.asyncio
    async def test_threshold_above_100_is_valid_and_empty(
        self, service_factory, make_request, boundary_pool, boundary_model
    ):
        service = service_factory(boundary_model)
        result = await service.match(make_request(), boundary_pool, threshold=101)

        assert result.willing_count == 0
        assert result.total_candidates_considered == 3

    @pytest.mark.asyncio
    async def test_default_threshold_comes_from_service(
        self, service_factory, make_request, boundary_pool, boundary_model
    ):
        service = service_factory(boundary_model, threshold=60.0)
        result = await service.match(make_request(), boundary_pool)

        assert result.threshold == 60.0
        assert result.willing_count == 3


class TestRanking:

    @pytest.mark.asyncio
    async def test_ties_broken_by_ascending_id(self, service_factory, make_request):
        pool = StaticCandidatePool([
            CandidateProfile(user_id=uid, coach_index=None) for uid in (42, 7, 19, 3)
        ])
        service = service_factory(ConstantModel(0.8))
        result = await service.match(make_request(), pool)

        assert [m.candidate_id for m in result.matches] == [3, 7, 19, 42]

    @pytest.mark.asyncio
    async def test_sorted_non_increasing(self, service_factory, make_request, requester_profile):
        pool = StaticCandidatePool(
            [requester_profile]
            + [CandidateProfile(user_id=i, coach_index=i) for i in range(1, 11)]
        )
        service = service_factory(HeuristicAcceptanceModel())
        result = await service.match(make_request(seat_upgrade=True), pool, threshold=0)

        percentages = [m.percentage for m in result.matches]
        assert percentages == sorted(percentages, reverse=True)
        assert result.willing_count == len(result.matches) == 10

    @pytest.mark.asyncio
    async def test_closer_candidate_never_ranks_lower(
        self, service_factory, make_request, requester_profile
    ):
        """Two candidates differing only in coach distance."""
        near = CandidateProfile(user_id=50, coach_index=1)
        far = CandidateProfile(user_id=10, coach_index=9)
        pool = StaticCandidatePool([requester_profile, near, far])
        service = service_factory(HeuristicAcceptanceModel())
        result = await service.match(make_request(), pool, threshold=0)

        by_id = {m.candidate_id: m.probability for m in result.matches}
        assert by_id[50] >= by_id[10]

    @pytest.mark.asyncio
    async def test_repeated_runs_are_identical(
        self, service_factory, make_request, requester_profile
    ):
        pool = StaticCandidatePool(
            [requester_profile]
            + [CandidateProfile(user_id=i, coach_index=i % 4, group_size=1 + i % 3) for i in range(1, 30)]
        )
        service = service_factory(HeuristicAcceptanceModel())
        first = await service.match(make_request(), pool, threshold=40)
        second = await service.match(make_request(), pool, threshold=40)

        assert first == second


class TestUnscoreableCandidates:

    @pytest.mark.asyncio
    async def test_unscoreable_counted_as_skipped(
        self, service_factory, make_request, requester_profile
    ):
        pool = StaticCandidatePool([
            requester_profile,
            CandidateProfile(user_id=1, coach_index=1),
            CandidateProfile(user_id=2, coach_index=8),   # not in the lookup table
            CandidateProfile(user_id=3, coach_index=2),
        ])
        service = service_factory(DistanceLookupModel({1: 0.9, 2: 0.5}))
        result = await service.match(make_request(), pool)

        assert result.skipped == 1
        assert result.total_candidates_considered == 2
        assert [m.candidate_id for m in result.matches] == [1]

    @pytest.mark.asyncio
    async def test_model_exception_is_skipped_not_fatal(
        self, service_factory, make_request, requester_profile
    ):
        pool = StaticCandidatePool([
            requester_profile,
            CandidateProfile(user_id=1, coach_index=1),
            CandidateProfile(user_id=2, coach_index=2),   # lookup raises KeyError
        ])
        service = service_factory(FailingLookupModel({1: 0.9}))
        result = await service.match(make_request(), pool)

        assert result.skipped == 1
        assert result.total_candidates_considered == 1
        assert [m.candidate_id for m in result.matches] == [1]

    @pytest.mark.asyncio
    async def test_invalid_candidate_metadata_is_skipped(
        self, service_factory, make_request
    ):
        pool = StaticCandidatePool([
            CandidateProfile(user_id=1, group_size=0),
            CandidateProfile(user_id=2, group_size=1),
        ])
        service = service_factory(ConstantModel(0.9))
        result = await service.match(make_request(), pool)

        assert result.skipped == 1
        assert [m.candidate_id for m in result.matches] == [2]


class TestWholeRunFailures:

    @pytest.mark.asyncio
    async def test_pool_unavailable_propagates(self, service_factory, make_request):
        service = service_factory(ConstantModel(0.9))
        with pytest.raises(PoolUnavailableError):
            await service.match(make_request(), BrokenPool())

    @pytest.mark.asyncio
    async def test_timeout_raises_instead_of_partial_result(
        self, service_factory, make_request
    ):
        service = service_factory(ConstantModel(0.9), timeout_seconds=0.05)
        with pytest.raises(MatchTimeoutError):
            await service.match(make_request(), SlowPool())

    @pytest.mark.asyncio
    async def test_invalid_request_never_reaches_model(
        self, service_factory, make_request, boundary_pool
    ):
        model = MagicMock()
        model.name = "spy"
        service = service_factory(model)
        with pytest.raises(ExchangeValidationError) as excinfo:
            await service.match(make_request(coach_distance=-1), boundary_pool)

        assert excinfo.value.field == "coach_distance"
        model.score.assert_not_called()


class TestPredict:

    @pytest.mark.asyncio
    async def test_send_decision_above_threshold(self, service_factory, make_request):
        service = service_factory(ConstantModel(0.82))
        prediction = await service.predict(make_request(user_id=None))

        assert prediction.probability == pytest.approx(0.82)
        assert prediction.decision == DECISION_SEND
        assert prediction.candidate_id is None

    @pytest.mark.asyncio
    async def test_hold_decision_below_threshold(self, service_factory, make_request):
        service = service_factory(ConstantModel(0.41))
        prediction = await service.predict(make_request())

        assert prediction.decision == DECISION_HOLD

    @pytest.mark.asyncio
    async def test_named_candidate_uses_registry_distance(
        self, service_factory, make_request, requester_profile
    ):
        service = service_factory(DistanceLookupModel({3: 0.9}))
        prediction = await service.predict(
            make_request(coach_distance=7),
            candidate=CandidateProfile(user_id=8, coach_index=3),
            requester=requester_profile,
        )

        assert prediction.probability == pytest.approx(0.9)
        assert prediction.candidate_id == 8

    @pytest.mark.asyncio
    async def test_unscoreable_prediction_raises(self, service_factory, make_request):
        service = service_factory(DistanceLookupModel({}))
        with pytest.raises(UnscoreableCandidateError):
            await service.predict(make_request())
