from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.ml.acceptance.types import ExchangeRequest


class ExchangeRequestBase(BaseModel):
    """Exchange parameters shared by ``/predict`` and ``/predict_matches``.

    Older clients send ``requester_group_size`` and ``travel_hours``; both are
    accepted and folded into the canonical field names.
    """

    model_config = ConfigDict(populate_by_name=True)

    gender_match: bool
    seat_upgrade: bool
    coach_distance: int = Field(ge=0)
    group_size: int = Field(
        ge=1, validation_alias=AliasChoices("group_size", "requester_group_size")
    )
    travel_duration: float = Field(
        ge=0.5, allow_inf_nan=False,
        validation_alias=AliasChoices("travel_duration", "travel_hours"),
    )

    def to_domain(self, user_id: Optional[int] = None) -> ExchangeRequest:
        return ExchangeRequest(
            gender_match=self.gender_match,
            seat_upgrade=self.seat_upgrade,
            coach_distance=self.coach_distance,
            group_size=self.group_size,
            travel_duration=self.travel_duration,
            user_id=user_id,
        )


class PredictMatchesRequest(ExchangeRequestBase):
    user_id: int = Field(ge=1)


class PredictRequest(ExchangeRequestBase):
    user_id: Optional[int] = Field(None, ge=1)
    candidate_id: Optional[int] = Field(None, ge=1)


class MatchItem(BaseModel):
    passenger_id: int
    acceptance_probability: float = Field(ge=0.0, le=100.0)
    coach_distance: int = Field(ge=0)
    group_size: int = Field(ge=1)
    seat_type: Optional[str] = None


class PredictMatchesResponse(BaseModel):
    total_analyzed: int = Field(ge=0)
    willing_to_exchange: int = Field(ge=0)
    matches: list[MatchItem] = []


class PredictResponse(BaseModel):
    acceptance_probability: float = Field(ge=0.0, le=1.0)
    decision: str
