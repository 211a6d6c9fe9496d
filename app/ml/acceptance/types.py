"""Value types shared by the feature extractor and the probability models.

Everything here is immutable so that scoring tasks running on worker threads
never share mutable state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from app.exceptions import ExchangeValidationError

MIN_GROUP_SIZE = 1
MIN_TRAVEL_HOURS = 0.5


@dataclass(frozen=True)
class ExchangeRequest:
    """One inline seat-exchange request.  Nothing about it is persisted."""

    gender_match: bool
    seat_upgrade: bool
    coach_distance: int
    group_size: int
    travel_duration: float
    user_id: int | None = None

    def validate(self) -> "ExchangeRequest":
        """Raise ``ExchangeValidationError`` unless every field is in range."""
        for name in ("gender_match", "seat_upgrade"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ExchangeValidationError(
                    f"{name} must be a boolean, got {value!r}", field=name
                )

        if isinstance(self.coach_distance, bool) or not isinstance(self.coach_distance, int):
            raise ExchangeValidationError(
                "coach_distance must be an integer", field="coach_distance"
            )
        if self.coach_distance < 0:
            raise ExchangeValidationError(
                f"coach_distance must be >= 0, got {self.coach_distance}",
                field="coach_distance",
            )

        if isinstance(self.group_size, bool) or not isinstance(self.group_size, int):
            raise ExchangeValidationError("group_size must be an integer", field="group_size")
        if self.group_size < MIN_GROUP_SIZE:
            raise ExchangeValidationError(
                f"group_size must be >= {MIN_GROUP_SIZE}, got {self.group_size}",
                field="group_size",
            )

        try:
            hours = float(self.travel_duration)
        except (TypeError, ValueError):
            raise ExchangeValidationError(
                "travel_duration must be a number", field="travel_duration"
            ) from None
        if not math.isfinite(hours) or hours < MIN_TRAVEL_HOURS:
            raise ExchangeValidationError(
                f"travel_duration must be >= {MIN_TRAVEL_HOURS} hours, got {self.travel_duration}",
                field="travel_duration",
            )

        if self.user_id is not None and (
            isinstance(self.user_id, bool) or not isinstance(self.user_id, int)
        ):
            raise ExchangeValidationError("user_id must be an integer", field="user_id")
        return self


@dataclass(frozen=True)
class CandidateProfile:
    """Read-only snapshot of a registered passenger taken at the start of a run."""

    user_id: int
    seat_type: str | None = None
    coach_index: int | None = None
    group_size: int = 1


@dataclass(frozen=True)
class FeatureVector:
    gender_match: float
    seat_upgrade: float
    coach_distance: float
    group_size: float
    candidate_group_size: float
    travel_duration: float
    distance_norm: float
    log_duration: float
    warnings: tuple[str, ...] = field(default=(), compare=False)

    FEATURE_NAMES = (
        "gender_match",
        "seat_upgrade",
        "coach_distance",
        "group_size",
        "candidate_group_size",
        "travel_duration",
        "distance_norm",
        "log_duration",
    )

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in self.FEATURE_NAMES}

    def is_finite(self) -> bool:
        return all(
            isinstance(v, (int, float)) and math.isfinite(v)
            for v in self.as_dict().values()
        )


@dataclass(frozen=True)
class Unscoreable:
    """Returned by a model instead of a probability when it cannot score."""

    reason: str
