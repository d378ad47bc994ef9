# backend/scoring/serializers.py
from rest_framework import serializers

from .errors import resolve_category
from .schemas import AnalysisRequest
from .utils import first_non_empty, normalize_ingredients


class IngredientsField(serializers.Field):
    """Accepts free text or a list of strings; keeps it as given."""

    default_error_messages = {
        "invalid": "Expected a string or a list of strings.",
    }

    def to_internal_value(self, data):
        if data is None or isinstance(data, str):
            return data
        if isinstance(data, (list, tuple)) and all(isinstance(i, (str, int, float)) or i is None for i in data):
            return [str(i) for i in data if i is not None]
        self.fail("invalid")

    def to_representation(self, value):
        return value


class AnalyzeRequestSerializer(serializers.Serializer):
    # product name, in precedence order
    productName = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    product_name = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    category = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    # ingredient sources, in precedence order
    ingredients = IngredientsField(required=False, allow_null=True)
    ingredients_text = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    inci = IngredientsField(required=False, allow_null=True)
    composition = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    barcode = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    enrich = serializers.BooleanField(required=False, default=False)
    userQuery = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    user_query = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_category(self, value):
        # InvalidCategory is a ValidationError; the engine re-raises it as such
        return resolve_category(value)

    def to_request(self) -> AnalysisRequest:
        d = self.validated_data
        raw = first_non_empty(d.get("ingredients"), d.get("ingredients_text"), d.get("inci"), d.get("composition"))
        tokens = normalize_ingredients(raw)
        if raw is None:
            raw_list = []
        elif isinstance(raw, str):
            raw_list = [raw]
        else:
            raw_list = list(raw)
        return AnalysisRequest(
            product_name=(first_non_empty(d.get("productName"), d.get("product_name"), d.get("name"), default="")).strip(),
            category=d.get("category"),
            tokens=tuple(tokens),
            raw_ingredients=tuple(raw_list),
            barcode=first_non_empty(d.get("barcode")),
            enrich=bool(d.get("enrich")),
            user_query=first_non_empty(d.get("userQuery"), d.get("user_query")),
        )


# =========================
# ------ Result shape -----
# =========================

class PenaltySerializer(serializers.Serializer):
    reason = serializers.CharField()
    points = serializers.IntegerField()
    severity = serializers.ChoiceField(choices=["low", "medium", "high"])


class BonusSerializer(serializers.Serializer):
    reason = serializers.CharField()
    points = serializers.IntegerField()


class BreakdownSerializer(serializers.Serializer):
    base = serializers.IntegerField()
    penalties = PenaltySerializer(many=True)
    bonuses = BonusSerializer(many=True)


class AnalysisResultSerializer(serializers.Serializer):
    score = serializers.IntegerField(min_value=0, max_value=100)
    grade = serializers.CharField()
    breakdown = BreakdownSerializer()
    recommendations = serializers.ListField(child=serializers.CharField())
    sources = serializers.ListField(child=serializers.CharField())
    confidence = serializers.FloatField()
    category = serializers.CharField(allow_null=True)
    status = serializers.CharField()
    details = serializers.DictField()
    alternatives = serializers.ListField(child=serializers.CharField())
    enriched = serializers.BooleanField()


class NutrientImpactSerializer(serializers.Serializer):
    vitamin_loss = serializers.IntegerField()
    mineral_retention = serializers.IntegerField()
    protein_denaturation = serializers.IntegerField()
    fiber_degradation = serializers.IntegerField()
    antioxidant_loss = serializers.IntegerField()
    glycemic_increase = serializers.IntegerField()


class IntensityResultSerializer(serializers.Serializer):
    level = serializers.IntegerField(min_value=1, max_value=5)
    detected_methods = serializers.ListField(child=serializers.CharField())
    detected_markers = serializers.ListField(child=serializers.CharField())
    nutrient_impact = NutrientImpactSerializer()
    confidence = serializers.FloatField()
    impact = serializers.CharField()
    recommendations = serializers.ListField(child=serializers.CharField())
    insufficient_data = serializers.BooleanField()
