"""Acceptance-probability models and the feature extractor that feeds them."""

from __future__ import annotations

from app.config import Settings
from app.ml.acceptance.base import AcceptanceModel
from app.ml.acceptance.heuristic import HeuristicAcceptanceModel
from app.ml.acceptance.logistic import LogisticAcceptanceModel
from app.ml.acceptance.mock import MockAcceptanceModel


def build_probability_model(settings: Settings) -> AcceptanceModel:
    """Instantiate the model named by ``settings.PROBABILITY_MODEL``."""
    if settings.PROBABILITY_MODEL == "logistic":
        return LogisticAcceptanceModel.from_file(settings.MODEL_COEFFICIENTS_PATH)
    if settings.PROBABILITY_MODEL == "mock":
        return MockAcceptanceModel(seed=settings.MOCK_SEED)
    return HeuristicAcceptanceModel()


__all__ = [
    "AcceptanceModel",
    "HeuristicAcceptanceModel",
    "LogisticAcceptanceModel",
    "MockAcceptanceModel",
    "build_probability_model",
]
