"""Biometric similarity matching.

Metric: cosine similarity over the raw feature vectors, range [-1.0, 1.0].
Identical directions score 1.0, opposite directions score -1.0.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..core.constants import DEFAULT_FEATURE_DIMENSION, DEFAULT_SIMILARITY_THRESHOLD
from ..core.exceptions import NotEnrolledError, ValidationError


@dataclass(frozen=True)
class MatchResult:
    is_match: bool
    score: float
    threshold: float


def as_feature_vector(values, *, dimension: int, field_name: str = "Feature vector") -> np.ndarray:
    """Validate and convert a feature vector before any arithmetic."""

    if not isinstance(values, (list, tuple, np.ndarray)):
        raise ValidationError(f"{field_name} must be a list of numbers")
    if isinstance(values, np.ndarray):
        if values.dtype.kind not in "iuf":
            raise ValidationError(f"{field_name} must be a list of numbers")
    elif any(isinstance(v, (bool, np.bool_)) or not isinstance(v, numbers.Real) for v in values):
        # JSON strings and booleans would otherwise be coerced by numpy.
        raise ValidationError(f"{field_name} must be a list of numbers")
    try:
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a list of numbers")

    if vector.ndim != 1:
        raise ValidationError(f"{field_name} must be one-dimensional")
    if vector.shape[0] != dimension:
        raise ValidationError(f"{field_name} must have {dimension} values, got {vector.shape[0]}")
    if not np.all(np.isfinite(vector)):
        raise ValidationError(f"{field_name} contains non-finite values")
    return vector


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity; 0.0 when either vector has zero magnitude."""

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(a, b) / (norm_a * norm_b))
    # Rounding can push |score| a hair past 1.
    return max(-1.0, min(1.0, score))


class SimilarityMatcher:
    def __init__(
        self,
        *,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        dimension: int = DEFAULT_FEATURE_DIMENSION,
    ):
        if not -1.0 <= float(threshold) <= 1.0:
            raise ValueError("threshold must be within [-1, 1]")
        if int(dimension) <= 0:
            raise ValueError("dimension must be positive")
        self._threshold = float(threshold)
        self._dimension = int(dimension)

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def dimension(self) -> int:
        return self._dimension

    def validate(self, values, *, field_name: str = "Feature vector") -> np.ndarray:
        return as_feature_vector(values, dimension=self._dimension, field_name=field_name)

    def score(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(self.validate(a), self.validate(b))

    def match(self, captured: Sequence[float], reference: Optional[Sequence[float]]) -> MatchResult:
        """Compare a fresh capture against the enrolled reference.

        A zero-magnitude vector never matches. A missing reference raises
        :class:`NotEnrolledError` rather than counting as a mismatch.
        """

        probe = self.validate(captured, field_name="Captured feature vector")
        if reference is None:
            raise NotEnrolledError("Face not enrolled")
        stored = self.validate(reference, field_name="Enrolled feature vector")

        if not np.any(probe) or not np.any(stored):
            return MatchResult(is_match=False, score=0.0, threshold=self._threshold)

        score = cosine_similarity(probe, stored)
        return MatchResult(is_match=score >= self._threshold, score=score, threshold=self._threshold)
