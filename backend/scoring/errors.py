# backend/scoring/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional

from rest_framework.exceptions import ValidationError

from .conf import CATEGORIES


class ScoringError(Exception):
    """Base class for failures the engine recovers from locally."""


class InvalidCategory(ValidationError):
    """Category was supplied but is not one the engine scores."""

    default_code = "invalid_category"

    def __init__(self, value: Any):
        self.value = value
        message = f"'{value}' is not a valid category; expected one of {', '.join(CATEGORIES)}."
        super().__init__(detail={"category": [message]}, code=self.default_code)


class UnreliableDetection(ScoringError):
    def __init__(self, category: Optional[str], confidence: float, scores: Dict[str, int]):
        super().__init__(f"category detection unreliable (best={category}, confidence={confidence})")
        self.category = category
        self.confidence = confidence
        self.scores = scores


class EnrichmentUnavailable(ScoringError):
    # reason: timeout | auth | quota | http | parse | disabled
    def __init__(self, reason: str, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or reason)
        self.reason = reason
        self.status_code = status_code


class CacheUnavailable(ScoringError):
    pass


def resolve_category(value: Any) -> Optional[str]:
    """
    Normalize a caller-supplied category. Blank values and ``"auto"`` mean
    "detect it"; anything else outside CATEGORIES raises InvalidCategory.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidCategory(value)
    v = value.strip().lower()
    if v in ("", "auto"):
        return None
    if v not in CATEGORIES:
        raise InvalidCategory(value)
    return v
