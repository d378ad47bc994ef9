"""
End-to-end analysis through the engine: validation, detection, caching,
enrichment and the module-level entry points.
"""
import asyncio
import threading

import pytest
from rest_framework.exceptions import ValidationError

from scoring import engine as engine_module
from scoring import ocr
from scoring.cache import fingerprint
from scoring.enrichment import Enrichment
from scoring.errors import EnrichmentUnavailable, InvalidCategory
from scoring.schemas import STATUS_INSUFFICIENT_DATA, STATUS_OK, STATUS_UNRELIABLE_DETECTION, AnalysisResult
from scoring.utils import normalize_ingredients

ULTRA = {"productName": "Soda caramel", "category": "food",
         "ingredients": ["eau", "sucre", "E150d", "E466", "arôme artificiel"]}


class FakeEnrichment:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def enrich(self, product_name, category, base_analysis, user_query=None):
        self.calls.append((product_name, category, base_analysis, user_query))
        if self.error is not None:
            raise self.error
        return self.result


class TestAnalyze:

    def test_ultra_processed_food(self, engine):
        result = asyncio.run(engine.analyze(ULTRA))
        assert isinstance(result, AnalysisResult)
        assert result.status == STATUS_OK
        assert result.details["tier"] == 4
        assert result.score <= 50
        assert result.confidence >= 0.8

    def test_minimally_processed_food(self, engine):
        result = asyncio.run(engine.analyze({"name": "Pickles brine", "category": "food",
                                             "ingredients_text": "eau, sel, vinaigre"}))
        assert result.details["tier"] in (1, 2)
        assert result.score >= 80

    def test_cosmetics(self, engine):
        result = asyncio.run(engine.analyze({"product_name": "Crème", "category": "cosmetics",
                                             "inci": "AQUA, GLYCERIN, BHT, LIMONENE"}))
        assert result.category == "cosmetics"
        assert result.details["hazard_score"] > 0
        assert any(p.reason.startswith("Allergens") for p in result.breakdown.penalties)
        assert result.score < 70

    def test_unknown_category_is_rejected(self, engine):
        with pytest.raises(InvalidCategory) as excinfo:
            asyncio.run(engine.analyze({"category": "banana", "ingredients": ["eau"]}))
        assert excinfo.value.value == "banana"
        assert isinstance(excinfo.value, ValidationError)
        assert engine.cache_stats()["computations"] == 0

    def test_malformed_ingredients_are_rejected(self, engine):
        with pytest.raises(ValidationError):
            asyncio.run(engine.analyze({"category": "food", "ingredients": {"a": 1}}))

    def test_missing_ingredients(self, engine):
        result = asyncio.run(engine.analyze({"productName": "Mystery", "category": "food", "ingredients": []}))
        assert result.status == STATUS_INSUFFICIENT_DATA
        assert result.insufficient_data
        assert result.score == 50
        assert engine.cache_stats()["computations"] == 0

    def test_auto_detection(self, engine):
        data = {"productName": "Lessive liquide", "category": "auto",
                "ingredients": ["Aqua", "Sodium Laureth Sulfate", "Coco Glucoside", "Citric Acid"]}
        result = asyncio.run(engine.analyze(data))
        assert result.category == "detergents"

        key = fingerprint("detergents", "Lessive liquide", normalize_ingredients(data["ingredients"]))
        entry = asyncio.run(engine.cache.read(key))
        assert entry.expires_at - entry.created_at == pytest.approx(3600)

    def test_unreliable_detection(self, engine):
        result = asyncio.run(engine.analyze({"ingredients": ["xyz", "qwerty"]}))
        assert result.status == STATUS_UNRELIABLE_DETECTION
        assert result.category is None
        assert result.confidence < 0.3
        assert engine.cache_stats()["computations"] == 0


class TestCaching:

    def test_concurrent_identical_requests_compute_once(self, engine, monkeypatch):
        calls = []
        original = engine._compute

        async def slow_compute(category, request):
            calls.append(category)
            await asyncio.sleep(2)
            return await original(category, request)

        monkeypatch.setattr(engine, "_compute", slow_compute)

        async def scenario():
            return await asyncio.gather(engine.analyze(ULTRA), engine.analyze(dict(ULTRA)))

        first, second = asyncio.run(scenario())
        assert calls == ["food"]
        assert first == second

    def test_requests_from_separate_threads(self, engine, monkeypatch):
        original = engine._compute

        async def slow_compute(category, request):
            await asyncio.sleep(0.5)
            return await original(category, request)

        monkeypatch.setattr(engine, "_compute", slow_compute)
        results, errors = [], []

        def worker():
            try:
                results.append(asyncio.run(engine.analyze(ULTRA)))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert len(results) == 2
        assert results[0] == results[1]

    def test_second_call_is_served_from_cache(self, engine):
        first = asyncio.run(engine.analyze(ULTRA))
        reordered = dict(ULTRA, ingredients=list(reversed(ULTRA["ingredients"])))
        second = asyncio.run(engine.analyze(reordered))
        assert first == second

        stats = engine.cache_stats()
        assert stats["computations"] == 1
        assert stats["hits"] == 1

    def test_invalidate(self, engine):
        asyncio.run(engine.analyze(ULTRA))
        assert asyncio.run(engine.invalidate("analysis:food")) == 1
        asyncio.run(engine.analyze(ULTRA))
        assert engine.cache_stats()["computations"] == 2

    def test_barcode_lookup(self, engine):
        result = asyncio.run(engine.analyze(dict(ULTRA, barcode="3017620422003")))
        assert asyncio.run(engine.lookup_barcode("3017620422003")) == result
        assert asyncio.run(engine.lookup_barcode("0000000000000")) is None


class TestEnrichment:

    def test_enriched_result_is_merged_and_cached(self, engine):
        engine.enrichment = FakeEnrichment(Enrichment(
            insights=("High sugar content",),
            recommendations=("Drink water instead",),
            alternatives=("Sparkling water",),
            confidence=0.99,
        ))
        data = dict(ULTRA, enrich=True, userQuery="Is it bad?")
        result = asyncio.run(engine.analyze(data))
        assert result.enriched
        assert result.alternatives == ("Sparkling water",)
        assert "Drink water instead" in result.recommendations
        assert result.confidence == 0.95

        _name, category, base, query = engine.enrichment.calls[0]
        assert category == "food"
        assert base["score"] == result.score
        assert query == "Is it bad?"

        asyncio.run(engine.analyze(data))
        assert len(engine.enrichment.calls) == 1
        # plain and enriched analyses are cached separately
        plain = asyncio.run(engine.analyze(ULTRA))
        assert not plain.enriched

    def test_provider_failure_falls_back_to_base_result(self, engine):
        engine.enrichment = FakeEnrichment(error=EnrichmentUnavailable("quota", "rate limited", 429))
        data = dict(ULTRA, enrich=True)
        result = asyncio.run(engine.analyze(data))
        assert not result.enriched
        assert result.status == STATUS_OK
        assert result.score == asyncio.run(engine.analyze(ULTRA)).score

        asyncio.run(engine.analyze(data))
        assert len(engine.enrichment.calls) == 2


def test_analyze_intensity_is_cached(engine):
    data = {"ingredients": ["huile de palme", "sirop de glucose", "maltodextrine"]}
    first = asyncio.run(engine.analyze_intensity(data))
    second = asyncio.run(engine.analyze_intensity(data))
    assert first == second
    assert first.level >= 4
    assert engine.cache_stats()["hits"] == 1


def test_analyze_intensity_without_ingredients_is_not_cached(engine):
    first = asyncio.run(engine.analyze_intensity({"productName": "Mystère"}))
    second = asyncio.run(engine.analyze_intensity({"productName": "Mystère", "ingredients": []}))
    assert first.insufficient_data
    assert first == second
    stats = engine.cache_stats()
    assert (stats["hits"], stats["misses"], stats["computations"]) == (0, 0, 0)
    assert not asyncio.run(engine.analyze_intensity({"ingredients": ["sucre"]})).insufficient_data


def test_analyze_label(engine, monkeypatch):
    monkeypatch.setattr(ocr, "extract_ingredients_text", lambda image: "eau, sucre, E150d, E466, arôme artificiel")
    result = asyncio.run(engine.analyze_label(object(), product_name="Soda caramel", category="food"))
    assert result.details["tier"] == 4
    assert result == asyncio.run(engine.analyze(ULTRA))


def test_module_level_entry_points(engine, monkeypatch):
    monkeypatch.setattr(engine_module, "_engine", engine)
    assert engine_module.get_engine() is engine
    result = asyncio.run(engine_module.analyze(ULTRA))
    assert result.category == "food"
    assert asyncio.run(engine_module.invalidate("analysis:*")) == 1
