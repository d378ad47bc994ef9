# backend/scoring/utils.py
from __future__ import annotations

import math
import re
from typing import Any, Iterable, List, Optional, Union

# =========================
# --------- Regex ---------
# =========================

DASH_RANGE = r"[\u2010-\u2015]"  # fancy dashes -> '-'

# "Ingrédients :", "INGREDIENTS:", "Composition:", "INCI:" at the start of a field
LABEL_PREFIX_RE = re.compile(r"^\s*(?:ingr[ée]dients?|composition|inci)\s*:\s*", re.I)

# "(12%)", "12 %", "3,5%"
PERCENT_RE = re.compile(r"\(\s*\d{1,3}(?:[.,]\d+)?\s*%\s*\)|\b\d{1,3}(?:[.,]\d+)?\s*%")

# =========================
# ---- Text Utilities -----
# =========================

def norm(s: str) -> str:
    if not s:
        return ""
    s = s.replace("\n", " ").replace("\u00a0", " ").replace("\u2019", "'")
    s = re.sub(DASH_RANGE, "-", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def find_section(text: str, start_keys: List[str], end_keys: List[str]) -> str:
    """
    Slice the part of a label between the first start key and the next end key.
    Returns "" when no start key is present.
    """
    t = norm(text)
    if not t:
        return ""
    start_re = re.compile(r"(?i)" + r"|".join([re.escape(k).replace(r"\ ", r"\s*") for k in start_keys]))
    m = start_re.search(t)
    if not m:
        return ""
    start = m.end()
    end = len(t)
    for k in end_keys:
        mm = re.search(r"(?i)" + re.escape(k).replace(r"\ ", r"\s*"), t[start:])
        if mm:
            end = min(end, start + mm.start())
    return t[start:end].strip(" :.-")


def split_top_level(s: str, separators: str = ",;") -> List[str]:
    """
    Split on separators that are not inside parentheses or brackets. A
    comma between two digits is a decimal comma ("12,5%") and is kept.
    """
    parts, buf, depth = [], [], 0
    for i, ch in enumerate(s):
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        decimal = ch == "," and 0 < i < len(s) - 1 and s[i - 1].isdigit() and s[i + 1].isdigit()
        if ch in separators and depth == 0 and not decimal:
            part = "".join(buf).strip()
            if part:
                parts.append(part)
            buf = []
        else:
            buf.append(ch)
    last = "".join(buf).strip()
    if last:
        parts.append(last)
    return parts


def _clean_token(raw: str) -> str:
    t = PERCENT_RE.sub(" ", raw)
    t = norm(t).strip(" .;:*_-")
    return t.lower()


def normalize_ingredients(raw: Union[str, Iterable[Any], None]) -> List[str]:
    """
    Canonical ordered tokens from a free-text ingredient field or a list.

    Free text is split on top-level ',' and ';' so that
    "chocolat (sucre, cacao)" stays one token. List entries are taken as
    given. Tokens are trimmed, lowercased, stripped of percentages; empty
    entries are dropped. Absent input yields [].
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = split_top_level(LABEL_PREFIX_RE.sub("", norm(raw)))
    else:
        parts = [str(item) for item in raw if item is not None]

    tokens: List[str] = []
    for part in parts:
        tok = _clean_token(part)
        if tok:
            tokens.append(tok)
    return tokens


# =========================
# ---- Field resolution ---
# =========================

def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def first_non_empty(*candidates: Any, default: Any = None) -> Any:
    """
    Return the first candidate that carries data.

    Precedence is argument order. None, blank strings and empty
    collections are skipped; 0 and False count as data.
    """
    for c in candidates:
        if not is_empty(c):
            return c
    return default


# =========================
# ------- Numbers ---------
# =========================

def round_half_up(x: float) -> int:
    # round() is banker's rounding; scores use half-up (4.5 -> 5)
    return int(math.floor(x + 0.5))


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def mean(values: Iterable[float]) -> Optional[float]:
    vals = list(values)
    if not vals:
        return None
    return sum(vals) / len(vals)
