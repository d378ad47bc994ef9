# backend/scoring/enrichment.py
"""
Optional enrichment of a base analysis by an external LLM provider
(OpenAI-compatible ``/chat/completions``, DeepSeek by default).

The provider is best-effort and untrusted: every failure is raised as
EnrichmentUnavailable with a reason, and the orchestrator falls back to the
base result.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .conf import enrichment_settings
from .errors import EnrichmentUnavailable

logger = logging.getLogger(__name__)

SYSTEM_PROMPTS = {
    "food": "You are a nutritionist expert in the NOVA classification and EFSA additive assessments.",
    "cosmetics": "You are a dermatologist expert in INCI ingredient safety.",
    "detergents": "You are an environmental chemist expert in REACH and detergent ecotoxicity.",
}

RESPONSE_FORMAT = """Reply with ONLY a JSON object (no extra text):
{
  "insights": ["short factual insight", ...],
  "recommendations": ["concrete action for the consumer", ...],
  "alternatives": ["healthier or greener alternative product type", ...],
  "confidence": number between 0 and 1
}"""

JSON_OBJECT_RE = re.compile(r"\{.*\}", re.S)
RETRY_STATUSES = (500, 502, 503, 504)


@dataclass(frozen=True)
class Enrichment:
    insights: tuple = ()
    recommendations: tuple = ()
    alternatives: tuple = ()
    confidence: Optional[float] = None


def _str_list(x: Any) -> tuple:
    if not isinstance(x, list):
        return ()
    return tuple(str(i).strip() for i in x if isinstance(i, (str, int, float)) and str(i).strip())


def parse_enrichment(text: str) -> Enrichment:
    """Read the first JSON object out of the provider's reply."""
    m = JSON_OBJECT_RE.search(text or "")
    if not m:
        raise EnrichmentUnavailable("parse", "no JSON object in provider reply")
    try:
        data = json.loads(m.group(0))
    except ValueError as exc:
        raise EnrichmentUnavailable("parse", f"invalid JSON in provider reply: {exc}") from exc
    if not isinstance(data, dict):
        raise EnrichmentUnavailable("parse", "provider reply is not an object")

    confidence = data.get("confidence")
    try:
        confidence = max(0.0, min(1.0, float(confidence))) if confidence is not None else None
    except (TypeError, ValueError):
        confidence = None

    return Enrichment(
        insights=_str_list(data.get("insights")),
        recommendations=_str_list(data.get("recommendations")),
        alternatives=_str_list(data.get("alternatives")),
        confidence=confidence,
    )


def build_messages(product_name: str, category: str, base_analysis: Dict[str, Any],
                   user_query: Optional[str] = None) -> List[Dict[str, str]]:
    lines = [
        f"Product: {product_name or 'unknown'}",
        f"Category: {category}",
        f"Base analysis: {json.dumps(base_analysis, ensure_ascii=False)}",
    ]
    if user_query:
        lines.append(f"Question: {user_query}")
    lines.append("Enrich this analysis with insights, recommendations and alternatives.")
    return [
        {"role": "system", "content": SYSTEM_PROMPTS.get(category, SYSTEM_PROMPTS["food"]) + "\n" + RESPONSE_FORMAT},
        {"role": "user", "content": "\n".join(lines)},
    ]


class EnrichmentClient:
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 model: Optional[str] = None, temperature: Optional[float] = None,
                 max_tokens: Optional[int] = None, timeout: Optional[float] = None,
                 retries: int = 1):
        conf = enrichment_settings()
        self.api_key = api_key if api_key is not None else conf.api_key
        self.base_url = (base_url or conf.base_url).rstrip("/")
        self.model = model or conf.model
        self.temperature = conf.temperature if temperature is None else temperature
        self.max_tokens = max_tokens or conf.max_tokens
        self.timeout = timeout or conf.timeout
        self.retries = retries

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _post(self, messages: List[Dict[str, str]]) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        for attempt in range(self.retries + 1):
            try:
                r = requests.post(f"{self.base_url}/chat/completions", json=payload,
                                  headers=headers, timeout=self.timeout)
            except requests.Timeout as exc:
                raise EnrichmentUnavailable("timeout", str(exc)) from exc
            except requests.RequestException as exc:
                if attempt < self.retries:
                    time.sleep(0.4 * (attempt + 1))
                    continue
                raise EnrichmentUnavailable("http", str(exc)) from exc

            if r.status_code in (401, 403):
                raise EnrichmentUnavailable("auth", "provider rejected the API key", r.status_code)
            if r.status_code == 429:
                # metered: never retried
                raise EnrichmentUnavailable("quota", "provider quota or rate limit reached", r.status_code)
            if r.status_code in RETRY_STATUSES and attempt < self.retries:
                time.sleep(0.4 * (attempt + 1))
                continue
            if r.status_code != 200:
                raise EnrichmentUnavailable("http", f"provider returned HTTP {r.status_code}", r.status_code)

            try:
                data = r.json()
                return data["choices"][0]["message"]["content"] or ""
            except (ValueError, KeyError, IndexError, TypeError) as exc:
                raise EnrichmentUnavailable("parse", f"unexpected provider payload: {exc}") from exc
        raise EnrichmentUnavailable("http", "provider unavailable after retries")

    def enrich_sync(self, product_name: str, category: str, base_analysis: Dict[str, Any],
                    user_query: Optional[str] = None) -> Enrichment:
        if not self.enabled:
            raise EnrichmentUnavailable("disabled", "no enrichment API key configured")
        content = self._post(build_messages(product_name, category, base_analysis, user_query))
        return parse_enrichment(content)

    async def enrich(self, product_name: str, category: str, base_analysis: Dict[str, Any],
                     user_query: Optional[str] = None) -> Enrichment:
        """Run the blocking HTTP call off the event loop under a hard timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.enrich_sync, product_name, category, base_analysis, user_query),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise EnrichmentUnavailable("timeout", f"no answer within {self.timeout}s") from exc
