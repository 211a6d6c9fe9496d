"""Demo-only acceptance model.

A pseudo-random base probability is derived from a hash of the features that
carry no expected direction (group sizes, travel time) and a fixed seed, so
repeated runs over the same pool return the same ranking.  Coach distance,
gender match and seat upgrade are then applied as fixed-sign adjustments and
the result is clipped to ``[low, high]``, which keeps the mock monotonic in
the same directions as the live models.  Selected with
``PROBABILITY_MODEL=mock`` and never combined with a live model.
"""

from __future__ import annotations

import hashlib
import random

from app.ml.acceptance.base import AcceptanceModel
from app.ml.acceptance.types import FeatureVector

# Features hashed into the pseudo-random base.
_NEUTRAL_FEATURES = ("group_size", "candidate_group_size", "travel_duration")

GENDER_MATCH_BONUS = 0.08
SEAT_UPGRADE_BONUS = 0.10
DISTANCE_PENALTY = 0.30


class MockAcceptanceModel(AcceptanceModel):
    name = "mock"

    def __init__(self, seed: int = 42, low: float = 0.40, high: float = 0.99) -> None:
        if not 0.0 <= low <= high <= 1.0:
            raise ValueError(f"Invalid mock probability range [{low}, {high}]")
        self.seed = seed
        self.low = low
        self.high = high

    def _base(self, features: FeatureVector) -> float:
        key = f"{self.seed}|" + "|".join(
            f"{getattr(features, name):.6f}" for name in _NEUTRAL_FEATURES
        )
        digest = hashlib.sha256(key.encode("utf-8")).digest()
        rng = random.Random(int.from_bytes(digest[:8], "big"))
        return rng.uniform(self.low, self.high)

    def _predict(self, features: FeatureVector) -> float:
        p = (
            self._base(features)
            + GENDER_MATCH_BONUS * features.gender_match
            + SEAT_UPGRADE_BONUS * features.seat_upgrade
            - DISTANCE_PENALTY * features.distance_norm
        )
        return min(max(p, self.low), self.high)

    def describe(self) -> dict:
        return {"model": self.name, "seed": self.seed, "range": [self.low, self.high]}
