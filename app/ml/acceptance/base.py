"""Common contract for acceptance-probability models."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import structlog

from app.ml.acceptance.types import FeatureVector, Unscoreable

logger = structlog.get_logger("seat_exchange.model")


def sigmoid(z: float) -> float:
    """Numerically stable logistic function."""
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)


class AcceptanceModel(ABC):
    """Maps a ``FeatureVector`` to a probability in [0, 1].

    Subclasses implement ``_predict``.  ``score`` wraps it so that malformed
    input or a numerically broken result yields ``Unscoreable`` instead of an
    exception; implementations must be reentrant because the matching engine
    calls ``score`` from several worker threads at once.
    """

    name: str = "base"

    @abstractmethod
    def _predict(self, features: FeatureVector) -> float:
        """Return the raw probability for ``features``."""

    def score(self, features: FeatureVector) -> float | Unscoreable:
        if not isinstance(features, FeatureVector) or not features.is_finite():
            return Unscoreable("malformed_features")
        try:
            probability = float(self._predict(features))
        except Exception as exc:
            logger.warning("model_predict_failed", model=self.name, error=str(exc))
            return Unscoreable(f"{type(exc).__name__}: {exc}")

        if not math.isfinite(probability) or not 0.0 <= probability <= 1.0:
            return Unscoreable(f"out_of_range:{probability!r}")
        return probability

    def describe(self) -> dict:
        return {"model": self.name}
