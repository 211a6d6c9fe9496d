"""Deterministic stand-in models used across the test suite."""
from app.ml.acceptance.base import AcceptanceModel


class DistanceLookupModel(AcceptanceModel):
    """Returns a fixed probability per coach distance; unknown distances give
    NaN and therefore come back as ``Unscoreable``."""

    name = "lookup"

    def __init__(self, table):
        self.table = dict(table)

    def _predict(self, features):
        return self.table.get(int(features.coach_distance), float("nan"))


class ConstantModel(AcceptanceModel):
    name = "constant"

    def __init__(self, probability):
        self.probability = probability

    def _predict(self, features):
        return self.probability


class FailingLookupModel(AcceptanceModel):
    """Raises ``KeyError`` for distances missing from its table, like a model
    whose coefficient lookup is incomplete."""

    name = "failing_lookup"

    def __init__(self, table):
        self.table = dict(table)

    def _predict(self, features):
        return self.table[int(features.coach_distance)]
