"""
Deterministic heuristic acceptance model.

  z = bias
      + w_gender   × gender_match
      + w_upgrade  × seat_upgrade
      − w_distance × distance_norm
      − w_group    × (group_size − 1)
      − w_party    × (candidate_group_size − 1)
      − w_duration × ln(1 + travel_hours)
  p = σ(z)

Every weight is non-negative and enters with a fixed sign, which is what makes
the model monotonic: more coaches between the seats can never raise ``p``,
while a gender-compatible neighbourhood or a berth upgrade can never lower it.
"""

from __future__ import annotations

from app.ml.acceptance.base import AcceptanceModel, sigmoid
from app.ml.acceptance.types import FeatureVector


class HeuristicAcceptanceModel(AcceptanceModel):
    """Hand-tuned logistic score used when no trained artefact is deployed."""

    name = "heuristic"

    DEFAULT_WEIGHTS: dict[str, float] = {
        "bias": 1.2,
        "gender_match": 0.9,
        "seat_upgrade": 1.1,
        "distance_norm": 3.0,
        "group_size": 0.35,
        "candidate_group_size": 0.25,
        "log_duration": 0.4,
    }

    def __init__(self, weights: dict[str, float] | None = None) -> None:
        merged = dict(self.DEFAULT_WEIGHTS)
        if weights:
            merged.update(weights)
        negative = [k for k, v in merged.items() if k != "bias" and v < 0]
        if negative:
            raise ValueError(
                f"Heuristic weights must be non-negative, got negative {negative}"
            )
        self.weights = merged

    def _predict(self, features: FeatureVector) -> float:
        w = self.weights
        z = (
            w["bias"]
            + w["gender_match"] * features.gender_match
            + w["seat_upgrade"] * features.seat_upgrade
            - w["distance_norm"] * features.distance_norm
            - w["group_size"] * (features.group_size - 1.0)
            - w["candidate_group_size"] * (features.candidate_group_size - 1.0)
            - w["log_duration"] * features.log_duration
        )
        return sigmoid(z)

    def describe(self) -> dict:
        return {"model": self.name, "weights": dict(self.weights)}
