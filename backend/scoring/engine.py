# backend/scoring/engine.py
"""
Analysis orchestrator.

normalize -> detect markers -> classify/analyze -> score with the category
calculator -> optional enrichment -> write-through cache.

Only InvalidCategory reaches the caller as an error. Unreliable category
detection, missing ingredients, enrichment and cache failures all degrade
to a result carrying a status and reduced confidence.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from rest_framework.exceptions import ValidationError

from . import ocr
from .cache import ANALYSIS_PREFIX, BARCODE_PREFIX, INTENSITY_PREFIX, AnalysisCache, fingerprint
from .calculators import (
    MAX_CONFIDENCE,
    calculate_score,
    insufficient_data_result,
    unreliable_detection_result,
)
from .classifier import classify_food
from .conf import Weights, cache_ttl, get_weights
from .cosmetics import analyze_cosmetics
from .detector import detect_category
from .detergents import analyze_detergents
from .enrichment import Enrichment, EnrichmentClient
from .errors import EnrichmentUnavailable, InvalidCategory, UnreliableDetection
from .intensity import analyze_intensity
from .lexicons import DEFAULT_LEXICONS, LexiconSet
from .markers import additives_by_severity, count_kind, detect_markers
from .schemas import (
    NATURAL,
    STATUS_OK,
    AnalysisRequest,
    AnalysisResult,
    CategoryPayload,
    FoodPayload,
    IntensityResult,
)
from .serializers import AnalysisResultSerializer, AnalyzeRequestSerializer

logger = logging.getLogger(__name__)


def parse_request(data: Mapping[str, Any]) -> AnalysisRequest:
    """Validate raw input. Raises InvalidCategory for an unknown category, ValidationError otherwise."""
    serializer = AnalyzeRequestSerializer(data=dict(data))
    if not serializer.is_valid():
        if "category" in serializer.errors:
            raise InvalidCategory(serializer.initial_data.get("category"))
        raise ValidationError(serializer.errors)
    return serializer.to_request()


def merge_enrichment(result: AnalysisResult, enrichment: Enrichment) -> AnalysisResult:
    recommendations = list(result.recommendations)
    for item in enrichment.insights + enrichment.recommendations:
        if item not in recommendations:
            recommendations.append(item)
    confidence = result.confidence
    if enrichment.confidence is not None:
        confidence = min(MAX_CONFIDENCE, max(result.confidence, enrichment.confidence))
    return replace(
        result,
        recommendations=tuple(recommendations),
        alternatives=tuple(enrichment.alternatives),
        confidence=confidence,
        enriched=True,
    )


class ScoringEngine:
    def __init__(self, cache: Optional[AnalysisCache] = None,
                 enrichment: Optional[EnrichmentClient] = None,
                 weights: Optional[Weights] = None,
                 lexicons: LexiconSet = DEFAULT_LEXICONS):
        self.cache = cache if cache is not None else AnalysisCache()
        self.enrichment = enrichment if enrichment is not None else EnrichmentClient()
        self.weights = weights or get_weights()
        self.lexicons = lexicons

    # =========================
    # ---- Pure pipeline ------
    # =========================

    def build_payload(self, category: str, request: AnalysisRequest) -> CategoryPayload:
        tokens = request.tokens
        markers = detect_markers(tokens, category, self.lexicons)
        if category == "food":
            high, medium, _low = additives_by_severity(markers)
            return FoodPayload(
                classification=classify_food(tokens, markers, self.weights.classifier, self.lexicons),
                intensity=analyze_intensity(tokens, self.weights.intensity),
                high_risk_additives=tuple(high),
                medium_risk_additives=tuple(medium),
                natural_count=count_kind(markers, NATURAL),
            )
        if category == "cosmetics":
            return analyze_cosmetics(tokens, markers, self.weights.cosmetics, self.lexicons)
        if category == "detergents":
            return analyze_detergents(tokens, markers, request.product_name,
                                      self.weights.detergents, self.lexicons)
        raise InvalidCategory(category)

    def score(self, category: str, request: AnalysisRequest) -> AnalysisResult:
        if not request.tokens:
            return insufficient_data_result(category)
        return calculate_score(self.build_payload(category, request), self.weights)

    # =========================
    # ---- Public operations --
    # =========================

    async def analyze(self, data: Mapping[str, Any]) -> AnalysisResult:
        request = parse_request(data)

        category, ttl_kind = request.category, request.category
        if category is None:
            try:
                detection = detect_category(request.product_name, request.raw_ingredients,
                                            weights=self.weights.detector)
            except UnreliableDetection as exc:
                return unreliable_detection_result(exc.confidence, exc.scores)
            category, ttl_kind = detection.category, "auto"

        if not request.tokens:
            return insufficient_data_result(category)

        variant = None
        if request.enrich:
            variant = {"enriched": True, "query": request.user_query or ""}
        key = fingerprint(category, request.product_name, request.tokens, variant)
        ttl = cache_ttl(ttl_kind)

        result = await self.cache.get_or_compute(
            key,
            lambda: self._compute(category, request),
            ttl=ttl,
            decode=AnalysisResult.from_dict,
            should_store=lambda r: r.status == STATUS_OK and (r.enriched or not request.enrich),
        )
        if request.barcode and result.status == STATUS_OK:
            await self.cache.link(f"{BARCODE_PREFIX}:{request.barcode}", key, ttl)
        return result

    async def _compute(self, category: str, request: AnalysisRequest) -> AnalysisResult:
        result = self.score(category, request)
        if request.enrich:
            result = await self._enrich(result, request)
        return result

    async def _enrich(self, result: AnalysisResult, request: AnalysisRequest) -> AnalysisResult:
        base = dict(AnalysisResultSerializer(result).data)
        try:
            enrichment = await self.enrichment.enrich(request.product_name, result.category, base, request.user_query)
        except EnrichmentUnavailable as exc:
            logger.warning("Enrichment unavailable (%s) for %r: %s", exc.reason, request.product_name, exc)
            return result
        return merge_enrichment(result, enrichment)

    async def analyze_intensity(self, data: Mapping[str, Any]) -> IntensityResult:
        """Deep transformation-intensity analysis alone, cached with the long TTL."""
        request = parse_request(data)
        if not request.tokens:
            logger.debug("No ingredients for intensity analysis of %r; not cached", request.product_name)
            return replace(analyze_intensity((), self.weights.intensity), insufficient_data=True)
        key = fingerprint("food", request.product_name, request.tokens, prefix=INTENSITY_PREFIX)

        async def compute() -> IntensityResult:
            return analyze_intensity(request.tokens, self.weights.intensity)

        return await self.cache.get_or_compute(
            key, compute, ttl=cache_ttl("intensity"), decode=IntensityResult.from_dict,
        )

    async def analyze_label(self, image, product_name: str = "", category: Optional[str] = None,
                            enrich: bool = False) -> AnalysisResult:
        """OCR an ingredient label image, then analyze the extracted list."""
        text = await asyncio.to_thread(ocr.extract_ingredients_text, image)
        logger.debug("Label OCR extracted %d characters", len(text))
        return await self.analyze({
            "product_name": product_name,
            "category": category,
            "ingredients_text": text,
            "enrich": enrich,
        })

    async def lookup_barcode(self, barcode: str) -> Optional[AnalysisResult]:
        entry = await self.cache.resolve(f"{BARCODE_PREFIX}:{barcode}")
        if entry is None:
            return None
        return AnalysisResult.from_dict(entry.value)

    async def invalidate(self, pattern: str = f"{ANALYSIS_PREFIX}:*") -> int:
        return await self.cache.invalidate(pattern)

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.snapshot()


_engine: Optional[ScoringEngine] = None


def get_engine() -> ScoringEngine:
    """Process-wide engine; its cache holds the in-flight map shared by all requests."""
    global _engine
    if _engine is None:
        _engine = ScoringEngine()
    return _engine


async def analyze(data: Mapping[str, Any]) -> AnalysisResult:
    return await get_engine().analyze(data)


async def invalidate(pattern: str = f"{ANALYSIS_PREFIX}:*") -> int:
    return await get_engine().invalidate(pattern)
