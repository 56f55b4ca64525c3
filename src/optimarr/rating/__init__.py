"""Compatibility rating: configuration, client matrix and the rating engine."""

from optimarr.rating.config import (
    CategoryMode,
    RatingConfig,
    RatingConfigError,
    RatingThresholds,
    RatingWeights,
    SupportedSets,
)
from optimarr.rating.engine import (
    Category,
    RatingResult,
    Verdict,
    client_verdict,
    rate,
)
from optimarr.rating.matrix import (
    ClientCompatibilityMatrix,
    CompatibilityOverride,
    PropertyCategory,
    SupportLevel,
    default_matrix,
)

__all__ = [
    "Category",
    "CategoryMode",
    "ClientCompatibilityMatrix",
    "CompatibilityOverride",
    "PropertyCategory",
    "RatingConfig",
    "RatingConfigError",
    "RatingResult",
    "RatingThresholds",
    "RatingWeights",
    "SupportLevel",
    "SupportedSets",
    "Verdict",
    "client_verdict",
    "default_matrix",
    "rate",
]
