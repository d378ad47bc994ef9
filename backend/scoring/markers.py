# backend/scoring/markers.py
from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple

from .lexicons import DEFAULT_LEXICONS, LexiconSet
from .schemas import (
    ADDITIVE,
    HAZARD_ALLERGEN,
    HAZARD_AQUATIC,
    HAZARD_ENDOCRINE,
    INDUSTRIAL,
    NATURAL,
    SUSPICIOUS,
    Marker,
)

# E/INS additive codes like: E621, e-621, E 150d, INS150d, ins 621
E_INS_RE = re.compile(
    r"""
    (?<![a-z0-9])
    (?:e|ins)\s*[-\s]?
    (?P<code>\d{3,4}[a-z]?)
    (?![a-z0-9])
    """,
    re.I | re.X,
)

# Surfactants below this biodegradability are reported as persistent
PERSISTENT_SURFACTANT_BELOW = 90

# =========================
# ---- Additive Logic -----
# =========================

def extract_additives(text: str) -> List[str]:
    """
    Additive codes found in text, canonicalized to E-form ("INS 150d" -> "E150D"),
    deduplicated, in order of appearance.
    """
    if not text:
        return []
    seen, res = set(), []
    for m in E_INS_RE.finditer(text):
        code = "E" + m.group("code").upper()
        if code not in seen:
            seen.add(code)
            res.append(code)
    return res


def additive_severity(code: str, lexicons: LexiconSet = DEFAULT_LEXICONS) -> str:
    if code in lexicons.high_risk_additives:
        return "high"
    if code in lexicons.medium_risk_additives:
        return "medium"
    return "low"


def _hazard_severity(toxicity: int) -> str:
    if toxicity >= 7:
        return "high"
    if toxicity >= 4:
        return "medium"
    return "low"


# =========================
# ---- Marker scanning ----
# =========================

def _food_markers(token: str, lx: LexiconSet) -> Iterable[Marker]:
    for code in extract_additives(token):
        yield Marker(ADDITIVE, code, additive_severity(code, lx), lx.additive_names.get(code))
    hit = lx.industrial.find(token)
    if hit:
        yield Marker(INDUSTRIAL, token, hit[1], hit[0])
    hit = lx.food_natural.find(token)
    if hit and not lx.industrial.find(token):
        yield Marker(NATURAL, token, "low", hit[0])
    hit = lx.suspicious.find(token)
    if hit:
        yield Marker(SUSPICIOUS, token, "low", hit[0])


def _cosmetics_markers(token: str, lx: LexiconSet) -> Iterable[Marker]:
    hit = lx.endocrine.find(token)
    if hit:
        yield Marker(HAZARD_ENDOCRINE, hit[0], hit[1])
    hit = lx.allergens.find(token)
    if hit:
        yield Marker(HAZARD_ALLERGEN, hit[0], hit[1])
    hit = lx.cosmetic_natural.find(token)
    if hit:
        yield Marker(NATURAL, token, "low", hit[0])


def _detergents_markers(token: str, lx: LexiconSet) -> Iterable[Marker]:
    hit = lx.aquatic.find(token)
    if hit:
        toxicity, severity = hit[1]
        yield Marker(HAZARD_AQUATIC, hit[0], severity, f"aquatic toxicity {toxicity}/10")
    hit = lx.surfactants.find(token)
    if hit:
        biodeg, toxicity = hit[1]
        if biodeg < PERSISTENT_SURFACTANT_BELOW:
            yield Marker(HAZARD_AQUATIC, hit[0], _hazard_severity(toxicity), f"persistent surfactant ({biodeg}% biodegradable)")
    hit = lx.eco_ingredients.find(token)
    if hit:
        yield Marker(NATURAL, token, "low", hit[0])


_SCANNERS = {
    "food": _food_markers,
    "cosmetics": _cosmetics_markers,
    "detergents": _detergents_markers,
}


def detect_markers(tokens: Sequence[str], category: str = "food",
                   lexicons: LexiconSet = DEFAULT_LEXICONS) -> List[Marker]:
    """
    Scan normalized tokens for the markers relevant to a category.

    Output keeps detection order; a (kind, value) pair is reported once.
    """
    scan = _SCANNERS[category]
    seen, out = set(), []
    for token in tokens:
        for marker in scan(token, lexicons):
            key = (marker.kind, marker.value)
            if key not in seen:
                seen.add(key)
                out.append(marker)
    return out


# =========================
# ------- Counting --------
# =========================

def of_kind(markers: Iterable[Marker], *kinds: str) -> List[Marker]:
    return [m for m in markers if m.kind in kinds]


def count_kind(markers: Iterable[Marker], kind: str) -> int:
    return sum(1 for m in markers if m.kind == kind)


def additives_by_severity(markers: Iterable[Marker]) -> Tuple[List[str], List[str], List[str]]:
    high: List[str] = []
    medium: List[str] = []
    low: List[str] = []
    for m in markers:
        if m.kind != ADDITIVE:
            continue
        {"high": high, "medium": medium}.get(m.severity, low).append(m.value)
    return high, medium, low
