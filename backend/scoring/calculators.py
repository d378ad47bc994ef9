# backend/scoring/calculators.py
from __future__ import annotations

from typing import Callable, Dict, List, Optional

from .conf import CATEGORIES, Weights, get_weights
from .errors import InvalidCategory
from .schemas import (
    STATUS_INSUFFICIENT_DATA,
    STATUS_UNRELIABLE_DETECTION,
    AnalysisResult,
    Bonus,
    CategoryPayload,
    CosmeticsPayload,
    DetergentsPayload,
    FoodPayload,
    Penalty,
    ScoreBreakdown,
)
from .utils import round_half_up

SOURCES = {
    "food": ("INSERM 2024 (NOVA classification)", "ANSES 2024 (ultra-processing)", "EFSA food additives re-evaluation"),
    "cosmetics": ("CosIng (EU cosmetic ingredients database)", "ANSES 2024 (endocrine disruptors)", "EWG Skin Deep"),
    "detergents": ("Regulation (EC) 648/2004 on detergents", "INERIS ecotoxicity data", "ADEME"),
}

# score band -> generic advice, checked top-down
BAND_RECOMMENDATIONS = {
    "food": (
        (60, "Good choice: suitable for regular consumption."),
        (40, "Acceptable occasionally: compare with less processed alternatives."),
        (0, "Limit consumption and prefer minimally processed alternatives."),
    ),
    "cosmetics": (
        (60, "Well-tolerated formula for regular use."),
        (40, "Acceptable formula: check the listed sensitising ingredients."),
        (0, "Prefer a formula without endocrine disruptors or allergens."),
    ),
    "detergents": (
        (60, "Low environmental impact: use the recommended dose."),
        (40, "Moderate impact: dose carefully and prefer concentrated refills."),
        (0, "High environmental impact: prefer an eco-labelled alternative."),
    ),
}

NEUTRAL_SCORE = 50
# keeps breakdown.total == score for neutral results
NEUTRAL_BREAKDOWN = ScoreBreakdown(penalties=(Penalty("Not enough information to score", 100 - NEUTRAL_SCORE, "medium"),))
INSUFFICIENT_DATA_CONFIDENCE = 0.6
MAX_CONFIDENCE = 0.95


# =========================
# -------- Grading --------
# =========================

def grade_from_score(score: int) -> str:
    if score >= 80: return "excellent"
    if score >= 60: return "good"
    if score >= 40: return "average"
    if score >= 20: return "poor"
    return "very_poor"


def _severity(points: int, high: int, medium: int) -> str:
    if points >= high:
        return "high"
    if points >= medium:
        return "medium"
    return "low"


def _band_advice(category: str, score: int) -> str:
    for floor, text in BAND_RECOMMENDATIONS[category]:
        if score >= floor:
            return text
    return BAND_RECOMMENDATIONS[category][-1][1]


def _result(category: str, breakdown: ScoreBreakdown, extras: List[str], confidence: float,
            details: Dict) -> AnalysisResult:
    score = breakdown.total
    recommendations: List[str] = []
    for r in [_band_advice(category, score), *extras]:
        if r not in recommendations:
            recommendations.append(r)
    return AnalysisResult(
        score=score,
        grade=grade_from_score(score),
        breakdown=breakdown,
        recommendations=tuple(recommendations),
        sources=SOURCES[category],
        confidence=confidence,
        category=category,
        details=details,
    )


# =========================
# ---------- Food ---------
# =========================

def calculate_food(payload: FoodPayload, weights: Optional[Weights] = None) -> AnalysisResult:
    w = (weights or get_weights()).food
    cls, intensity = payload.classification, payload.intensity
    penalties: List[Penalty] = []
    bonuses: List[Bonus] = []

    tier_points = int(w.tier_points.get(cls.tier, 0))
    if tier_points:
        penalties.append(Penalty(f"Transformation tier {cls.tier}: {cls.tier_info.name}",
                                 tier_points, _severity(tier_points, 40, 20)))

    ultra_points = round_half_up(intensity.level * w.intensity_multiplier)
    if ultra_points:
        penalties.append(Penalty(f"Processing intensity {intensity.level}/5",
                                 ultra_points, _severity(ultra_points, 30, 15)))

    n_high, n_med = len(payload.high_risk_additives), len(payload.medium_risk_additives)
    additive_points = min(w.additive_cap, n_high * w.high_risk_additive + n_med * w.medium_risk_additive)
    if additive_points:
        penalties.append(Penalty(f"Additives: {n_high} high-risk, {n_med} medium-risk",
                                 additive_points, "high" if n_high else "medium"))

    natural_points = min(w.natural_bonus_cap, payload.natural_count * w.natural_bonus)
    if natural_points:
        bonuses.append(Bonus(f"{payload.natural_count} natural ingredient(s)", natural_points))

    extras = [cls.tier_info.advice, *intensity.recommendations]
    if payload.high_risk_additives:
        extras.append("Contains high-risk additives: " + ", ".join(payload.high_risk_additives) + ".")
    if cls.tier == 4:
        extras.append("Ultra-processed product: regular consumption is linked to adverse health outcomes.")

    confidence = cls.confidence if cls.confidence is not None else w.fallback_confidence
    details = {
        "tier": cls.tier,
        "tier_name": cls.tier_info.name,
        "health_impact": cls.tier_info.health_impact,
        "intensity_level": intensity.level,
        "intensity_impact": intensity.impact,
        "processing_methods": list(intensity.detected_methods),
        "additives": list(payload.high_risk_additives + payload.medium_risk_additives),
        "natural_count": payload.natural_count,
    }
    return _result("food", ScoreBreakdown(tuple(penalties), tuple(bonuses)), extras, confidence, details)


# =========================
# ------- Cosmetics -------
# =========================

def calculate_cosmetics(payload: CosmeticsPayload, weights: Optional[Weights] = None) -> AnalysisResult:
    w = (weights or get_weights()).cosmetics
    penalties: List[Penalty] = []
    bonuses: List[Bonus] = []

    hazard_points = round_half_up(payload.hazard_score * w.hazard_multiplier)
    if hazard_points:
        penalties.append(Penalty(f"Hazard score {payload.hazard_score}/3",
                                 hazard_points, _severity(hazard_points, 40, 20)))
    endocrine_names = [m.value for m in payload.endocrine]
    allergen_names = [m.value for m in payload.allergens]
    if endocrine_names:
        penalties.append(Penalty("Endocrine disruptors: " + ", ".join(endocrine_names),
                                 len(endocrine_names) * w.endocrine_points, "high"))
    if allergen_names:
        penalties.append(Penalty("Allergens: " + ", ".join(allergen_names),
                                 len(allergen_names) * w.allergen_points, "medium"))

    if payload.naturality_score > w.naturality_threshold:
        points = round_half_up((payload.naturality_score - w.naturality_threshold) / w.naturality_step)
        if points:
            bonuses.append(Bonus(f"Naturality {payload.naturality_score}%", points))

    extras: List[str] = []
    if endocrine_names:
        extras.append("Avoid during pregnancy and on young children: contains suspected endocrine disruptors.")
    if allergen_names:
        extras.append("Patch-test before use: contains regulated fragrance allergens.")
    if payload.beneficial:
        extras.append("Beneficial actives: " + ", ".join(payload.beneficial) + ".")

    details = {
        "hazard_score": payload.hazard_score,
        "naturality_score": payload.naturality_score,
        "endocrine_disruptors": endocrine_names,
        "allergens": allergen_names,
        "beneficial": list(payload.beneficial),
    }
    return _result("cosmetics", ScoreBreakdown(tuple(penalties), tuple(bonuses)), extras, w.confidence, details)


# =========================
# ------- Detergents ------
# =========================

def calculate_detergents(payload: DetergentsPayload, weights: Optional[Weights] = None) -> AnalysisResult:
    w = (weights or get_weights()).detergents
    penalties: List[Penalty] = []
    bonuses: List[Bonus] = []

    aquatic_points = round_half_up(payload.aquatic_toxicity * w.aquatic_multiplier)
    if aquatic_points:
        penalties.append(Penalty(f"Aquatic toxicity {payload.aquatic_toxicity}/10",
                                 aquatic_points, _severity(aquatic_points, 40, 20)))
    if payload.biodegradability < w.biodegradability_target:
        points = round_half_up((w.biodegradability_target - payload.biodegradability) * w.biodegradability_multiplier)
        if points:
            penalties.append(Penalty(f"Biodegradability {payload.biodegradability}%",
                                     points, _severity(points, 20, 10)))
    voc_points = payload.voc_emissions * w.voc_multiplier
    if voc_points:
        penalties.append(Penalty(f"VOC emissions {payload.voc_emissions}/10",
                                 voc_points, _severity(voc_points, 20, 10)))
    if payload.biodegradability >= w.biodegradability_bonus_threshold:
        bonuses.append(Bonus(f"Biodegradability {payload.biodegradability}%", w.biodegradability_bonus))

    extras: List[str] = []
    if payload.aquatic_toxicity > 7:
        extras.append("Dangerous for aquatic life: never pour undiluted and use the minimal dose.")
    if payload.hazards:
        extras.append("Hazardous compounds: " + ", ".join(m.value for m in payload.hazards) + ".")
    if payload.eco_labels:
        extras.append("Certified eco-label: " + ", ".join(payload.eco_labels) + ".")

    details = {
        "aquatic_toxicity": payload.aquatic_toxicity,
        "biodegradability": payload.biodegradability,
        "voc_emissions": payload.voc_emissions,
        "hazards": [m.value for m in payload.hazards],
        "eco_labels": list(payload.eco_labels),
    }
    return _result("detergents", ScoreBreakdown(tuple(penalties), tuple(bonuses)), extras, w.confidence, details)


CALCULATORS: Dict[str, Callable[..., AnalysisResult]] = {
    "food": calculate_food,
    "cosmetics": calculate_cosmetics,
    "detergents": calculate_detergents,
}


def calculate_score(payload: CategoryPayload, weights: Optional[Weights] = None) -> AnalysisResult:
    """Dispatch a category payload to its calculator by its category tag."""
    category = getattr(payload, "category", None)
    calculator = CALCULATORS.get(category)
    if calculator is None:
        raise InvalidCategory(category)
    return calculator(payload, weights)


# =========================
# ---- Degraded results ---
# =========================

def insufficient_data_result(category: str) -> AnalysisResult:
    if category not in CATEGORIES:
        raise InvalidCategory(category)
    return AnalysisResult(
        score=NEUTRAL_BREAKDOWN.total,
        grade=grade_from_score(NEUTRAL_BREAKDOWN.total),
        breakdown=NEUTRAL_BREAKDOWN,
        recommendations=("Ingredient list missing or too short: provide the full list for a reliable score.",),
        sources=SOURCES[category],
        confidence=INSUFFICIENT_DATA_CONFIDENCE,
        category=category,
        status=STATUS_INSUFFICIENT_DATA,
    )


def unreliable_detection_result(confidence: float, scores: Dict[str, int]) -> AnalysisResult:
    return AnalysisResult(
        score=NEUTRAL_BREAKDOWN.total,
        grade=grade_from_score(NEUTRAL_BREAKDOWN.total),
        breakdown=NEUTRAL_BREAKDOWN,
        recommendations=("Product type could not be determined: specify the category (food, cosmetics or detergents).",),
        sources=(),
        confidence=confidence,
        category=None,
        status=STATUS_UNRELIABLE_DETECTION,
        details={"detection_scores": dict(scores)},
    )
