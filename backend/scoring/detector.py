# backend/scoring/detector.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .conf import CATEGORIES, DetectorWeights, get_weights
from .errors import UnreliableDetection
from .lexicons import DETECTOR_KEYWORDS, DETECTOR_PATTERNS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    category: str
    confidence: float
    scores: Dict[str, int]
    evidence: Tuple[str, ...]


def _count_keywords(text: str, keywords: Sequence[str]) -> int:
    return sum(1 for k in keywords if k in text)


def uppercase_ratio(text: str) -> float:
    letters = re.findall(r"[A-Za-z]", text or "")
    if not letters:
        return 0.0
    return sum(1 for ch in letters if ch.isupper()) / len(letters)


def score_category(category: str, text: str, raw_ingredients: Sequence[str],
                   weights: Optional[DetectorWeights] = None) -> Tuple[int, List[str]]:
    """Keyword/pattern evidence for one category, capped at weights.max_score."""
    w = weights or get_weights().detector
    keywords = DETECTOR_KEYWORDS[category]
    product_pts, category_pts, ingredient_pts = w.keyword_points[category]

    score = 0
    evidence: List[str] = []
    for group, points in (("products", product_pts), ("categories", category_pts), ("ingredients", ingredient_pts)):
        n = _count_keywords(text, keywords[group])
        if n:
            score += n * points
            evidence.append(f"{n} {category} {group} keyword(s)")

    for label, rx, points in DETECTOR_PATTERNS[category]:
        if rx.search(text):
            score += points
            evidence.append(label)

    # INCI lists are conventionally printed in capitals
    if category == "cosmetics":
        inci = [i for i in raw_ingredients if len(i.strip()) > 2]
        if inci and uppercase_ratio(" ".join(inci)) > w.inci_uppercase_ratio:
            score += w.inci_points
            evidence.append("INCI formatting")

    return min(w.max_score, score), evidence


def detection_confidence(winner: int, runner_up: int, weights: Optional[DetectorWeights] = None) -> float:
    w = weights or get_weights().detector
    if winner <= 0:
        return 0.0
    gap = winner - runner_up
    for min_winner, min_gap, confidence in w.confidence_bands:
        if winner >= min_winner and gap >= min_gap:
            return confidence
    return w.floor_confidence


def detect_category(product_name: str, raw_ingredients: Sequence[str], extra_text: str = "",
                    weights: Optional[DetectorWeights] = None) -> Detection:
    """
    Pick the most likely category for an undeclared product.

    Raises UnreliableDetection when confidence falls below
    weights.unreliable_below (no evidence at all scores 0.0).
    """
    w = weights or get_weights().detector
    text = " ".join([product_name or "", " ".join(raw_ingredients), extra_text or ""]).lower()

    scores: Dict[str, int] = {}
    evidence: Dict[str, List[str]] = {}
    for category in CATEGORIES:
        scores[category], evidence[category] = score_category(category, text, raw_ingredients, w)

    ranked = sorted(CATEGORIES, key=lambda c: -scores[c])
    best, second = ranked[0], ranked[1]
    confidence = detection_confidence(scores[best], scores[second], w)

    if confidence < w.unreliable_below:
        logger.info("Category detection unreliable: scores=%s", scores)
        raise UnreliableDetection(best if scores[best] else None, confidence, scores)

    logger.info("Detected category %s (confidence %.2f, scores=%s)", best, confidence, scores)
    return Detection(category=best, confidence=confidence, scores=scores, evidence=tuple(evidence[best]))
