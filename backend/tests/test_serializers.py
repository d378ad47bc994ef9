import pytest

from scoring.calculators import insufficient_data_result
from scoring.engine import parse_request
from scoring.errors import InvalidCategory, resolve_category
from scoring.intensity import analyze_intensity
from scoring.serializers import AnalysisResultSerializer, AnalyzeRequestSerializer, IntensityResultSerializer


class TestRequestFields:

    def test_name_precedence(self):
        request = parse_request({"productName": "", "product_name": "Second", "name": "Third"})
        assert request.product_name == "Second"

    def test_ingredient_source_precedence(self):
        request = parse_request({"ingredients": [], "ingredients_text": "eau, sel", "inci": "AQUA"})
        assert request.tokens == ("eau", "sel")
        assert request.raw_ingredients == ("eau, sel",)

    def test_composition_is_last_resort(self):
        request = parse_request({"composition": "Citric acid; Sodium carbonate"})
        assert request.tokens == ("citric acid", "sodium carbonate")

    def test_defaults(self):
        request = parse_request({})
        assert request.product_name == ""
        assert request.category is None
        assert request.tokens == ()
        assert request.enrich is False
        assert request.barcode is None

    def test_query_aliases(self):
        request = parse_request({"enrich": "true", "user_query": "safe for kids?"})
        assert request.enrich is True
        assert request.user_query == "safe for kids?"


class TestCategory:

    @pytest.mark.parametrize("value", [None, "", "  ", "auto", "AUTO"])
    def test_detect_when_not_declared(self, value):
        assert resolve_category(value) is None

    def test_normalized(self):
        assert resolve_category(" Cosmetics ") == "cosmetics"

    def test_invalid(self):
        with pytest.raises(InvalidCategory) as excinfo:
            resolve_category("banana")
        assert excinfo.value.get_codes() == {"category": ["invalid_category"]}

    def test_serializer_reports_category_error(self):
        serializer = AnalyzeRequestSerializer(data={"category": "banana"})
        assert not serializer.is_valid()
        assert "category" in serializer.errors


def test_result_serializer_shape():
    data = AnalysisResultSerializer(insufficient_data_result("food")).data
    assert data["score"] == 50
    assert data["status"] == "insufficient_data"
    assert data["breakdown"]["base"] == 100
    assert data["breakdown"]["penalties"][0]["points"] == 50
    assert data["category"] == "food"


def test_intensity_serializer_shape():
    data = IntensityResultSerializer(analyze_intensity(["huile de palme", "sucre"])).data
    assert data["level"] >= 1
    assert data["detected_methods"] == ["intensive refining"]
    assert set(data["nutrient_impact"]) == {
        "vitamin_loss", "mineral_retention", "protein_denaturation",
        "fiber_degradation", "antioxidant_loss", "glycemic_increase",
    }
