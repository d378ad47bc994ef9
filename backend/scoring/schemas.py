# backend/scoring/schemas.py
"""
Value types passed between the engine stages.

All types are frozen dataclasses. Category payloads form a tagged union
(``FoodPayload | CosmeticsPayload | DetergentsPayload``) keyed by their
``category`` attribute; calculators dispatch on that tag.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

# Marker kinds
ADDITIVE = "additive"
INDUSTRIAL = "industrial"
NATURAL = "natural"
SUSPICIOUS = "suspicious"
HAZARD_ENDOCRINE = "hazard-endocrine"
HAZARD_ALLERGEN = "hazard-allergen"
HAZARD_AQUATIC = "hazard-aquatic"

STATUS_OK = "ok"
STATUS_INSUFFICIENT_DATA = "insufficient_data"
STATUS_UNRELIABLE_DETECTION = "unreliable_detection"


@dataclass(frozen=True)
class Marker:
    kind: str
    value: str
    severity: str = "low"
    label: Optional[str] = None


@dataclass(frozen=True)
class AnalysisRequest:
    product_name: str
    category: Optional[str]
    tokens: Tuple[str, ...]
    raw_ingredients: Tuple[str, ...] = ()
    barcode: Optional[str] = None
    enrich: bool = False
    user_query: Optional[str] = None


# =========================
# -- Stage results --------
# =========================

@dataclass(frozen=True)
class TierInfo:
    name: str
    description: str
    health_impact: str
    advice: str


@dataclass(frozen=True)
class ClassificationResult:
    tier: int
    tier_info: TierInfo
    markers: Tuple[Marker, ...]
    confidence: float


@dataclass(frozen=True)
class NutrientImpact:
    """Heuristic estimates (percent) derived from method counts and level, not measurements."""

    vitamin_loss: int
    mineral_retention: int
    protein_denaturation: int
    fiber_degradation: int
    antioxidant_loss: int
    glycemic_increase: int


@dataclass(frozen=True)
class IntensityResult:
    level: int
    detected_methods: Tuple[str, ...]
    detected_markers: Tuple[str, ...]
    nutrient_impact: NutrientImpact
    confidence: float
    impact: str = "low"
    recommendations: Tuple[str, ...] = ()
    insufficient_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IntensityResult":
        return cls(
            level=data["level"],
            detected_methods=tuple(data["detected_methods"]),
            detected_markers=tuple(data["detected_markers"]),
            nutrient_impact=NutrientImpact(**data["nutrient_impact"]),
            confidence=data["confidence"],
            impact=data.get("impact", "low"),
            recommendations=tuple(data.get("recommendations") or ()),
            insufficient_data=data.get("insufficient_data", False),
        )


# =========================
# -- Category payloads ----
# =========================

@dataclass(frozen=True)
class FoodPayload:
    classification: ClassificationResult
    intensity: IntensityResult
    high_risk_additives: Tuple[str, ...]
    medium_risk_additives: Tuple[str, ...]
    natural_count: int
    category: str = field(default="food", init=False)


@dataclass(frozen=True)
class CosmeticsPayload:
    hazard_score: float
    endocrine: Tuple[Marker, ...]
    allergens: Tuple[Marker, ...]
    naturality_score: int
    beneficial: Tuple[str, ...] = ()
    category: str = field(default="cosmetics", init=False)


@dataclass(frozen=True)
class DetergentsPayload:
    aquatic_toxicity: float
    biodegradability: int
    voc_emissions: int
    hazards: Tuple[Marker, ...] = ()
    eco_labels: Tuple[str, ...] = ()
    category: str = field(default="detergents", init=False)


CategoryPayload = Union[FoodPayload, CosmeticsPayload, DetergentsPayload]


# =========================
# -- Scoring output -------
# =========================

@dataclass(frozen=True)
class Penalty:
    reason: str
    points: int
    severity: str = "low"


@dataclass(frozen=True)
class Bonus:
    reason: str
    points: int


@dataclass(frozen=True)
class ScoreBreakdown:
    penalties: Tuple[Penalty, ...] = ()
    bonuses: Tuple[Bonus, ...] = ()
    base: int = 100

    @property
    def total(self) -> int:
        s = self.base - sum(p.points for p in self.penalties) + sum(b.points for b in self.bonuses)
        return max(0, min(100, int(s)))


@dataclass(frozen=True)
class AnalysisResult:
    score: int
    grade: str
    breakdown: ScoreBreakdown
    recommendations: Tuple[str, ...]
    sources: Tuple[str, ...]
    confidence: float
    category: Optional[str]
    status: str = STATUS_OK
    details: Dict[str, Any] = field(default_factory=dict)
    alternatives: Tuple[str, ...] = ()
    enriched: bool = False

    @property
    def insufficient_data(self) -> bool:
        return self.status == STATUS_INSUFFICIENT_DATA

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisResult":
        bd = data["breakdown"]
        return cls(
            score=data["score"],
            grade=data["grade"],
            breakdown=ScoreBreakdown(
                penalties=tuple(Penalty(**p) for p in bd.get("penalties") or ()),
                bonuses=tuple(Bonus(**b) for b in bd.get("bonuses") or ()),
                base=bd.get("base", 100),
            ),
            recommendations=tuple(data.get("recommendations") or ()),
            sources=tuple(data.get("sources") or ()),
            confidence=data["confidence"],
            category=data.get("category"),
            status=data.get("status", STATUS_OK),
            details=dict(data.get("details") or {}),
            alternatives=tuple(data.get("alternatives") or ()),
            enriched=bool(data.get("enriched", False)),
        )


@dataclass
class CacheEntry:
    key: str
    value: Dict[str, Any]
    created_at: float
    expires_at: float
    hit_count: int = 0

    @classmethod
    def new(cls, key: str, value: Dict[str, Any], ttl: int) -> "CacheEntry":
        now = time.time()
        return cls(key=key, value=value, created_at=now, expires_at=now + ttl)

    def remaining(self) -> float:
        return self.expires_at - time.time()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheEntry":
        return cls(
            key=data["key"],
            value=data["value"],
            created_at=data["created_at"],
            expires_at=data["expires_at"],
            hit_count=int(data.get("hit_count", 0)),
        )
