"""
Lexicon matching and marker detection per category.
"""
from dataclasses import replace

from scoring.lexicons import ADDITIVE_NAMES, DEFAULT_LEXICONS
from scoring.markers import additives_by_severity, count_kind, detect_markers, extract_additives
from scoring.schemas import (
    ADDITIVE,
    HAZARD_ALLERGEN,
    HAZARD_AQUATIC,
    HAZARD_ENDOCRINE,
    INDUSTRIAL,
    NATURAL,
    SUSPICIOUS,
)


class TestLexicon:

    def test_longest_term_wins(self):
        term, _ = DEFAULT_LEXICONS.industrial.find("sirop de glucose-fructose")
        assert term == "sirop de glucose-fructose"

    def test_plural_forms_match(self):
        assert DEFAULT_LEXICONS.food_natural.find("pommes")[0] == "pomme"
        assert DEFAULT_LEXICONS.food_natural.find("noisettes")[0] == "noisette"

    def test_terms_match_whole_words_only(self):
        assert DEFAULT_LEXICONS.suspicious.find("colourless") is None
        assert "bht" in DEFAULT_LEXICONS.endocrine
        assert "bhtx2" not in DEFAULT_LEXICONS.endocrine

    def test_lexicon_set_defaults_to_shared_tables(self):
        assert DEFAULT_LEXICONS.additive_names is ADDITIVE_NAMES
        custom = replace(DEFAULT_LEXICONS, high_risk_additives=frozenset({"E999"}))
        assert custom.additive_names is ADDITIVE_NAMES
        assert custom.additive_names["E102"] == "Tartrazine"


class TestAdditives:

    def test_codes_are_canonicalized_and_deduplicated(self):
        assert extract_additives("E 150d, e-621, INS 621, E330") == ["E150D", "E621", "E330"]

    def test_no_false_positive_inside_words(self):
        assert extract_additives("vitamine b12, eau") == []
        assert extract_additives("") == []


class TestFoodMarkers:

    def test_scenario_markers(self):
        markers = detect_markers(["eau", "sucre", "e150d", "e466", "arôme artificiel"], "food")
        assert count_kind(markers, ADDITIVE) == 2
        assert count_kind(markers, INDUSTRIAL) == 1
        assert count_kind(markers, NATURAL) == 1
        assert count_kind(markers, SUSPICIOUS) == 1

        high, medium, low = additives_by_severity(markers)
        assert high == ["E150D"]
        assert medium == []
        assert low == ["E466"]

    def test_additive_reported_once(self):
        markers = detect_markers(["e330", "e330 (acide citrique)"], "food")
        assert [m.value for m in markers if m.kind == ADDITIVE] == ["E330"]

    def test_industrial_ingredient_is_not_natural(self):
        markers = detect_markers(["isolat de protéines de lait"], "food")
        assert count_kind(markers, INDUSTRIAL) == 1
        assert count_kind(markers, NATURAL) == 0

    def test_additive_label_comes_from_names_table(self):
        markers = detect_markers(["e330"], "food")
        assert markers[0].label == DEFAULT_LEXICONS.additive_names.get("E330")


def test_cosmetics_markers():
    markers = detect_markers(["aqua", "glycerin", "bht", "limonene"], "cosmetics")
    endocrine = [m for m in markers if m.kind == HAZARD_ENDOCRINE]
    allergens = [m for m in markers if m.kind == HAZARD_ALLERGEN]
    assert [(m.value, m.severity) for m in endocrine] == [("bht", "medium")]
    assert [(m.value, m.severity) for m in allergens] == [("limonene", "high")]
    assert count_kind(markers, NATURAL) == 2


def test_detergents_markers():
    markers = detect_markers(["sodium laureth sulfate", "decyl glucoside", "phosphates", "citric acid"], "detergents")
    hazards = {m.value: m.severity for m in markers if m.kind == HAZARD_AQUATIC}
    # decyl glucoside is fully biodegradable and is not a hazard
    assert hazards == {"sodium laureth sulfate": "medium", "phosphate": "high"}
    assert count_kind(markers, NATURAL) == 1
