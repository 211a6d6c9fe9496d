"""Trained logistic-regression acceptance model.

The coefficients are produced offline and shipped as a small JSON artefact::

    {
      "version": "2024-11-lr",
      "intercept": 1.05,
      "coefficients": {"gender_match": 0.82, "distance_norm": -2.7, ...}
    }

Feature names must come from ``FeatureVector.FEATURE_NAMES``; any name that is
absent gets a zero coefficient.  Signs of the directional features are checked
on load so that a bad artefact is rejected at startup rather than producing
rankings that reward distant seats.
"""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import structlog

from app.ml.acceptance.base import AcceptanceModel, sigmoid
from app.ml.acceptance.types import FeatureVector

logger = structlog.get_logger("seat_exchange.model.logistic")

# feature -> required sign of its coefficient (+1 non-negative, -1 non-positive)
_SIGN_CONSTRAINTS: dict[str, int] = {
    "gender_match": 1,
    "seat_upgrade": 1,
    "coach_distance": -1,
    "distance_norm": -1,
}


class LogisticAcceptanceModel(AcceptanceModel):
    name = "logistic"

    def __init__(
        self,
        coefficients: dict[str, float],
        intercept: float = 0.0,
        version: str = "unversioned",
    ) -> None:
        unknown = set(coefficients) - set(FeatureVector.FEATURE_NAMES)
        if unknown:
            raise ValueError(f"Unknown feature(s) in coefficients: {sorted(unknown)}")

        for feature, sign in _SIGN_CONSTRAINTS.items():
            value = coefficients.get(feature, 0.0)
            if value * sign < 0:
                raise ValueError(
                    f"Coefficient for {feature!r} has the wrong sign ({value})"
                )

        self.version = version
        self.intercept = float(intercept)
        self._weights = np.array(
            [float(coefficients.get(n, 0.0)) for n in FeatureVector.FEATURE_NAMES],
            dtype=np.float64,
        )
        # read-only so concurrent scorers can share it safely
        self._weights.setflags(write=False)

    @classmethod
    def from_file(cls, path: str | Path) -> "LogisticAcceptanceModel":
        """Load a coefficient artefact from ``path``."""
        artefact_path = Path(path)
        with artefact_path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)

        model = cls(
            coefficients=payload.get("coefficients", {}),
            intercept=payload.get("intercept", 0.0),
            version=str(payload.get("version", "unversioned")),
        )
        logger.info(
            "logistic_model_loaded",
            path=str(artefact_path),
            version=model.version,
        )
        return model

    def _predict(self, features: FeatureVector) -> float:
        x = np.array(
            [getattr(features, n) for n in FeatureVector.FEATURE_NAMES],
            dtype=np.float64,
        )
        z = self.intercept + float(np.dot(self._weights, x))
        return sigmoid(z)

    def describe(self) -> dict:
        return {
            "model": self.name,
            "version": self.version,
            "intercept": self.intercept,
            "coefficients": dict(zip(FeatureVector.FEATURE_NAMES, self._weights.tolist())),
        }
