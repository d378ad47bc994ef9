# backend/scoring/conf.py
"""
Engine configuration.

Every tunable is read from ``django.conf.settings`` with an in-code default,
secrets and endpoints default to environment variables. Weight tables are
frozen dataclasses built once per process and handed to the pure scoring
functions as plain arguments.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

CATEGORIES: Tuple[str, ...] = ("food", "cosmetics", "detergents")

DEFAULT_TTLS: Mapping[str, int] = MappingProxyType({
    "food": 3600,
    "cosmetics": 7200,
    "detergents": 10800,
    "auto": 3600,
    "intensity": 86400,
})


# =========================
# ----- Weight tables -----
# =========================

@dataclass(frozen=True)
class FoodWeights:
    tier_points: Mapping[int, int] = field(
        default_factory=lambda: MappingProxyType({1: 0, 2: 10, 3: 30, 4: 50})
    )
    intensity_multiplier: float = 5.0
    high_risk_additive: int = 10
    medium_risk_additive: int = 5
    additive_cap: int = 30
    natural_bonus: int = 2
    natural_bonus_cap: int = 10
    fallback_confidence: float = 0.85


@dataclass(frozen=True)
class ClassifierWeights:
    base_confidence: float = 0.8
    ultra_marker_threshold: int = 2
    ultra_marker_bonus: float = 0.15
    additive_threshold: int = 3
    additive_bonus: float = 0.10
    min_tokens: int = 3
    few_tokens_penalty: float = 0.10
    suspicious_penalty: float = 0.05
    min_confidence: float = 0.6
    max_confidence: float = 0.95


@dataclass(frozen=True)
class IntensityWeights:
    method_weight: float = 0.6
    marker_weight: float = 0.4
    chemical_bonus: float = 0.5
    additive_threshold: int = 5
    additive_bonus: float = 0.5
    extreme_floor: float = 4.5
    # (minimum evidence count, confidence), checked in order
    confidence_steps: Tuple[Tuple[int, float], ...] = (
        (10, 0.95), (7, 0.90), (5, 0.85), (3, 0.80), (1, 0.75),
    )
    default_confidence: float = 0.70


@dataclass(frozen=True)
class CosmeticsWeights:
    hazard_multiplier: int = 20
    endocrine_points: int = 15
    allergen_points: int = 10
    naturality_threshold: int = 50
    naturality_step: int = 5
    endocrine_severity: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({"high": 1.0, "medium": 0.6, "low": 0.3})
    )
    allergen_severity: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({"high": 0.4, "medium": 0.25, "low": 0.15})
    )
    hazard_max: float = 3.0
    confidence: float = 0.9


@dataclass(frozen=True)
class DetergentsWeights:
    aquatic_multiplier: int = 5
    biodegradability_target: int = 90
    biodegradability_multiplier: float = 0.5
    voc_multiplier: int = 3
    biodegradability_bonus_threshold: int = 95
    biodegradability_bonus: int = 10
    default_aquatic_toxicity: float = 2.0
    eco_majority_relief: float = 2.0
    default_biodegradability: int = 80
    hazardous_biodegradability: int = 30
    confidence: float = 0.88


@dataclass(frozen=True)
class DetectorWeights:
    keyword_points: Mapping[str, Tuple[int, int, int]] = field(
        default_factory=lambda: MappingProxyType({
            "food": (20, 15, 10),
            "cosmetics": (20, 15, 12),
            "detergents": (25, 20, 15),
        })
    )
    inci_uppercase_ratio: float = 0.8
    inci_points: int = 30
    max_score: int = 100
    # (winner minimum, gap minimum, confidence), checked in order
    confidence_bands: Tuple[Tuple[int, int, float], ...] = (
        (60, 20, 0.9), (40, 15, 0.7), (25, 10, 0.5),
    )
    floor_confidence: float = 0.3
    unreliable_below: float = 0.3


@dataclass(frozen=True)
class Weights:
    food: FoodWeights = field(default_factory=FoodWeights)
    classifier: ClassifierWeights = field(default_factory=ClassifierWeights)
    intensity: IntensityWeights = field(default_factory=IntensityWeights)
    cosmetics: CosmeticsWeights = field(default_factory=CosmeticsWeights)
    detergents: DetergentsWeights = field(default_factory=DetergentsWeights)
    detector: DetectorWeights = field(default_factory=DetectorWeights)


def build_weights(overrides: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Weights:
    """
    Build a Weights tree from partial overrides, e.g.
    ``{"food": {"additive_cap": 25}, "detector": {"unreliable_below": 0.5}}``.
    Unknown sections or keys raise ImproperlyConfigured.
    """
    overrides = dict(overrides or {})
    sections = {f.name: f for f in fields(Weights)}
    unknown = set(overrides) - set(sections)
    if unknown:
        raise ImproperlyConfigured(f"SCORING_WEIGHTS: unknown section(s) {sorted(unknown)}")

    built: Dict[str, Any] = {}
    for name, f in sections.items():
        section = f.default_factory()
        patch = dict(overrides.get(name) or {})
        known = {x.name for x in fields(section)}
        bad = set(patch) - known
        if bad:
            raise ImproperlyConfigured(f"SCORING_WEIGHTS[{name!r}]: unknown key(s) {sorted(bad)}")
        for key, value in list(patch.items()):
            if isinstance(value, dict):
                patch[key] = MappingProxyType(dict(value))
        built[name] = replace(section, **patch)
    return Weights(**built)


@lru_cache(maxsize=1)
def get_weights() -> Weights:
    return build_weights(getattr(settings, "SCORING_WEIGHTS", None))


# =========================
# ----- Runtime knobs -----
# =========================

def cache_alias() -> str:
    return getattr(settings, "SCORING_CACHE_ALIAS", "default")


def cache_timeout() -> float:
    return float(getattr(settings, "SCORING_CACHE_TIMEOUT", 2.0))


def cache_ttl(kind: str) -> int:
    ttls = {**DEFAULT_TTLS, **(getattr(settings, "SCORING_CACHE_TTLS", None) or {})}
    return int(ttls.get(kind, ttls["auto"]))


@dataclass(frozen=True)
class EnrichmentSettings:
    api_key: str
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float


def enrichment_settings() -> EnrichmentSettings:
    conf = getattr(settings, "SCORING_ENRICHMENT", None) or {}
    return EnrichmentSettings(
        api_key=conf.get("API_KEY", os.getenv("ENRICHMENT_API_KEY", "")),
        base_url=conf.get("BASE_URL", os.getenv("ENRICHMENT_BASE_URL", "https://api.deepseek.com/v1")),
        model=conf.get("MODEL", os.getenv("ENRICHMENT_MODEL", "deepseek-chat")),
        temperature=float(conf.get("TEMPERATURE", 0.3)),
        max_tokens=int(conf.get("MAX_TOKENS", 2000)),
        timeout=float(conf.get("TIMEOUT", 30.0)),
    )


def ocr_langs() -> str:
    return getattr(settings, "SCORING_OCR_LANGS", os.getenv("OCR_LANGS", "eng+fra"))


def ocr_max_dimension() -> int:
    return int(getattr(settings, "SCORING_OCR_MAX_DIMENSION", os.getenv("OCR_MAX_DIMENSION", "2200")))
