# backend/scoring/classifier.py
"""
Food transformation tiers (NOVA-style, 1 = unprocessed ... 4 = ultra-processed).

The tier is a pure function of five counts, evaluated as an ordered cascade
where the first matching rule wins: industrial evidence dominates raw
ingredient counting, which dominates "mostly culinary" inference.
"""
from __future__ import annotations

from typing import Optional, Sequence

from .conf import ClassifierWeights, get_weights
from .lexicons import DEFAULT_LEXICONS, LexiconSet
from .markers import additives_by_severity, count_kind, detect_markers
from .schemas import ADDITIVE, INDUSTRIAL, NATURAL, SUSPICIOUS, ClassificationResult, Marker, TierInfo
from .utils import clamp

TIER_INFO = {
    1: TierInfo(
        name="unprocessed or minimally processed",
        description="Natural foods, possibly cleaned, cut, dried, pasteurised or frozen.",
        health_impact="Reference diet: associated with the best health outcomes.",
        advice="Fine for regular consumption.",
    ),
    2: TierInfo(
        name="processed culinary ingredients",
        description="Substances extracted from foods (oils, butter, sugar, salt) used to cook.",
        health_impact="Neutral in moderation, as part of home cooking.",
        advice="Fine for regular consumption in culinary amounts.",
    ),
    3: TierInfo(
        name="processed foods",
        description="Foods altered by adding salt, sugar, oil or a few additives.",
        health_impact="Moderate: watch salt, sugar and fat content.",
        advice="Occasional consumption; compare labels.",
    ),
    4: TierInfo(
        name="ultra-processed",
        description="Industrial formulations built from refined substances and cosmetic additives.",
        health_impact="Associated with higher cardiovascular, metabolic and all-cause mortality risk.",
        advice="Prefer a less processed alternative with a short ingredient list.",
    ),
}


def tier_for_counts(additive_count: int, industrial_count: int, natural_count: int,
                    token_count: int, ultra_marker_present: bool) -> int:
    if ultra_marker_present or token_count > 5 or additive_count > 2:
        return 4
    if additive_count > 0 or industrial_count > 0 or token_count > 3:
        return 3
    if natural_count == 0 and additive_count == 0 and token_count <= 2:
        return 2
    return 1


def classification_confidence(ultra_marker_count: int, additive_count: int, token_count: int,
                              has_suspicious: bool, weights: Optional[ClassifierWeights] = None) -> float:
    w = weights or get_weights().classifier
    c = w.base_confidence
    if ultra_marker_count > w.ultra_marker_threshold:
        c += w.ultra_marker_bonus
    if additive_count > w.additive_threshold:
        c += w.additive_bonus
    if token_count < w.min_tokens:
        c -= w.few_tokens_penalty
    if has_suspicious:
        c -= w.suspicious_penalty
    return round(clamp(c, w.min_confidence, w.max_confidence), 2)


def classify_food(tokens: Sequence[str], markers: Optional[Sequence[Marker]] = None,
                  weights: Optional[ClassifierWeights] = None,
                  lexicons: LexiconSet = DEFAULT_LEXICONS) -> ClassificationResult:
    if markers is None:
        markers = detect_markers(tokens, "food", lexicons)

    additive_count = count_kind(markers, ADDITIVE)
    industrial_count = count_kind(markers, INDUSTRIAL)
    natural_count = count_kind(markers, NATURAL)
    high, _medium, _low = additives_by_severity(markers)
    # additive codes and industrial ingredients both signal ultra-processing
    ultra_marker_count = additive_count + industrial_count

    tier = tier_for_counts(
        additive_count=additive_count,
        industrial_count=industrial_count,
        natural_count=natural_count,
        token_count=len(tokens),
        ultra_marker_present=bool(industrial_count or high),
    )
    confidence = classification_confidence(
        ultra_marker_count=ultra_marker_count,
        additive_count=additive_count,
        token_count=len(tokens),
        has_suspicious=count_kind(markers, SUSPICIOUS) > 0,
        weights=weights,
    )
    return ClassificationResult(tier=tier, tier_info=TIER_INFO[tier], markers=tuple(markers), confidence=confidence)
