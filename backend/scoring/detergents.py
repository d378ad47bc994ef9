# backend/scoring/detergents.py
"""
Environmental figures for household detergents: aquatic toxicity (0-10),
biodegradability (%) and VOC emissions (0-10), read off the surfactant,
hazardous-compound, eco-ingredient and VOC tables.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from .conf import DetergentsWeights, get_weights
from .lexicons import DEFAULT_LEXICONS, LexiconSet
from .markers import detect_markers, of_kind
from .schemas import HAZARD_AQUATIC, DetergentsPayload, Marker
from .utils import clamp, mean, round_half_up

# (upper bound of VOC share in %, emission score)
VOC_BANDS = ((5, 2), (10, 4), (20, 6), (30, 8))


def voc_emissions(voc_count: int, token_count: int) -> int:
    if not token_count or not voc_count:
        return 0
    pct = 100.0 * voc_count / token_count
    for upper, points in VOC_BANDS:
        if pct < upper:
            return points
    return 10


def analyze_detergents(tokens: Sequence[str], markers: Optional[Sequence[Marker]] = None,
                       product_name: str = "", weights: Optional[DetergentsWeights] = None,
                       lexicons: LexiconSet = DEFAULT_LEXICONS) -> DetergentsPayload:
    w = weights or get_weights().detergents
    if markers is None:
        markers = detect_markers(tokens, "detergents", lexicons)

    toxicities: List[float] = []
    biodegradability: List[float] = []
    eco_count = voc_count = 0
    for token in tokens:
        surf = lexicons.surfactants.find(token)
        if surf:
            biodeg, tox = surf[1]
            toxicities.append(tox)
            biodegradability.append(biodeg)
        haz = lexicons.aquatic.find(token)
        if haz:
            toxicities.append(haz[1][0])
            biodegradability.append(w.hazardous_biodegradability)
        if lexicons.eco_ingredients.find(token):
            eco_count += 1
            biodegradability.append(100)
        if lexicons.voc.find(token):
            voc_count += 1

    aquatic = mean(toxicities)
    if aquatic is None:
        aquatic = w.default_aquatic_toxicity
    if tokens and eco_count > len(tokens) / 2:
        aquatic -= w.eco_majority_relief
    aquatic = round(clamp(aquatic, 0.0, 10.0), 1)

    biodeg = mean(biodegradability)
    biodeg_pct = w.default_biodegradability if biodeg is None else round_half_up(biodeg)

    label_text = " ".join([product_name.lower(), *tokens])
    labels = tuple(term for term, _v in lexicons.eco_labels.find_all(label_text))

    return DetergentsPayload(
        aquatic_toxicity=aquatic,
        biodegradability=int(clamp(biodeg_pct, 0, 100)),
        voc_emissions=voc_emissions(voc_count, len(tokens)),
        hazards=tuple(of_kind(markers, HAZARD_AQUATIC)),
        eco_labels=labels,
    )
