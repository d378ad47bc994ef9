# backend/scoring/cosmetics.py
from __future__ import annotations

from typing import Optional, Sequence

from .conf import CosmeticsWeights, get_weights
from .lexicons import DEFAULT_LEXICONS, LexiconSet
from .markers import count_kind, detect_markers, of_kind
from .schemas import HAZARD_ALLERGEN, HAZARD_ENDOCRINE, NATURAL, CosmeticsPayload, Marker
from .utils import clamp, round_half_up


def hazard_score(endocrine: Sequence[Marker], allergens: Sequence[Marker],
                 weights: Optional[CosmeticsWeights] = None) -> float:
    """Continuous 0-3 risk estimate from weighted endocrine and allergen hits, one decimal."""
    w = weights or get_weights().cosmetics
    s = sum(w.endocrine_severity.get(m.severity, 0.0) for m in endocrine)
    s += sum(w.allergen_severity.get(m.severity, 0.0) for m in allergens)
    return round(clamp(s, 0.0, w.hazard_max), 1)


def naturality_score(tokens: Sequence[str], markers: Sequence[Marker]) -> int:
    if not tokens:
        return 0
    return round_half_up(100.0 * count_kind(markers, NATURAL) / len(tokens))


def analyze_cosmetics(tokens: Sequence[str], markers: Optional[Sequence[Marker]] = None,
                      weights: Optional[CosmeticsWeights] = None,
                      lexicons: LexiconSet = DEFAULT_LEXICONS) -> CosmeticsPayload:
    if markers is None:
        markers = detect_markers(tokens, "cosmetics", lexicons)
    endocrine = of_kind(markers, HAZARD_ENDOCRINE)
    allergens = of_kind(markers, HAZARD_ALLERGEN)

    beneficial = []
    for token in tokens:
        hit = lexicons.beneficial.find(token)
        if hit and hit[0] not in beneficial:
            beneficial.append(hit[0])

    return CosmeticsPayload(
        hazard_score=hazard_score(endocrine, allergens, weights),
        endocrine=tuple(endocrine),
        allergens=tuple(allergens),
        naturality_score=naturality_score(tokens, markers),
        beneficial=tuple(beneficial),
    )
