# backend/scoring/intensity.py
"""
Transformation-intensity analysis (levels 1-5).

Finer-grained than the tier classifier: it looks at *how* a product was
processed from processing-method vocabulary, implicit methods (palm oil
implies intensive refining) and ingredient/process markers, each with a
fixed level.

Nutrient-impact figures are heuristic estimates derived from method counts
and the level. They are explanatory, not measured values.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .conf import IntensityWeights, get_weights
from .lexicons import (
    ADDITIVE_MARKER_LEVEL,
    IMPACT_ORDER,
    IMPLICIT_METHODS,
    INTENSITY_MARKERS,
    PROCESS_TERMS,
    PROCESSING_METHODS,
    ProcessingMethod,
)
from .markers import extract_additives
from .schemas import IntensityResult, NutrientImpact
from .utils import clamp, mean, round_half_up

IMPACT_BY_LEVEL = {1: "low", 2: "medium", 3: "high", 4: "very_high", 5: "extreme"}

RECOMMENDATIONS_BY_LEVEL = {
    5: ("Extreme industrial processing: replace with a minimally processed alternative.",
        "Keep to rare, occasional consumption."),
    4: ("Heavy industrial processing: look for a version without refined or modified ingredients.",),
    3: ("Moderate processing: check the label for refined ingredients and additives.",),
    2: ("Light processing: compatible with everyday consumption.",),
    1: ("Minimal processing: compatible with everyday consumption.",),
}


def detect_methods(text: str) -> List[ProcessingMethod]:
    found: List[ProcessingMethod] = []
    names = set()
    for method in PROCESSING_METHODS + IMPLICIT_METHODS:
        if method.name not in names and method.pattern.search(text):
            names.add(method.name)
            found.append(method)
    return found


def detect_intensity_markers(text: str) -> Tuple[List[Tuple[str, int]], int]:
    """Return ([(label, level)], additive_marker_count)."""
    found: List[Tuple[str, int]] = []
    for label, rx, level in INTENSITY_MARKERS + PROCESS_TERMS:
        if rx.search(text):
            found.append((label, level))
    additives = extract_additives(text)
    found.extend((code, ADDITIVE_MARKER_LEVEL) for code in additives)
    return found, len(additives)


def intensity_level(method_levels: Sequence[int], marker_levels: Sequence[int], has_chemical: bool,
                    additive_count: int, has_extreme: bool, weights: Optional[IntensityWeights] = None) -> int:
    w = weights or get_weights().intensity
    raw = (mean(method_levels) or 0.0) * w.method_weight + (mean(marker_levels) or 0.0) * w.marker_weight
    if has_chemical:
        raw += w.chemical_bonus
    if additive_count > w.additive_threshold:
        raw += w.additive_bonus
    if has_extreme:
        raw = max(raw, w.extreme_floor)
    return int(clamp(round_half_up(raw), 1, 5))


def intensity_confidence(evidence: int, weights: Optional[IntensityWeights] = None) -> float:
    w = weights or get_weights().intensity
    for minimum, confidence in w.confidence_steps:
        if evidence >= minimum:
            return confidence
    return w.default_confidence


def nutrient_impact(level: int, thermal_count: int, chemical_count: int) -> NutrientImpact:
    return NutrientImpact(
        vitamin_loss=min(80, 10 + 15 * thermal_count + 10 * level),
        mineral_retention=max(50, 95 - 10 * chemical_count - 5 * level),
        protein_denaturation=min(70, 5 + 10 * thermal_count + 15 * chemical_count),
        fiber_degradation=min(100, 8 * level),
        antioxidant_loss=min(100, 14 * level),
        glycemic_increase=min(100, 6 * level),
    )


def analyze_intensity(tokens: Sequence[str], weights: Optional[IntensityWeights] = None) -> IntensityResult:
    text = " , ".join(tokens)
    methods = detect_methods(text)
    markers, additive_count = detect_intensity_markers(text)

    categories = [m.category for m in methods]
    level = intensity_level(
        method_levels=[m.level for m in methods],
        marker_levels=[lvl for _label, lvl in markers],
        has_chemical="chemical" in categories,
        additive_count=additive_count,
        has_extreme=any(m.impact == "extreme" for m in methods),
        weights=weights,
    )

    if methods:
        impact = max((m.impact for m in methods), key=IMPACT_ORDER.index)
    else:
        impact = IMPACT_BY_LEVEL[level]

    recommendations = list(RECOMMENDATIONS_BY_LEVEL[level])
    if "chemical" in categories:
        recommendations.append("Contains chemically transformed ingredients (hydrogenation, hydrolysis or esterification).")

    return IntensityResult(
        level=level,
        detected_methods=tuple(m.name for m in methods),
        detected_markers=tuple(label for label, _lvl in markers),
        nutrient_impact=nutrient_impact(level, categories.count("thermal"), categories.count("chemical")),
        confidence=intensity_confidence(len(methods) + len(markers), weights),
        impact=impact,
        recommendations=tuple(recommendations),
    )
