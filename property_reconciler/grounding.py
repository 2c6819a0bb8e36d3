"""
AI-grounded property lookup using OpenAI structured output.

The model acts as a web-search-backed research assistant and returns a
provider-agnostic fact sheet (address, zoning, valuation, schools, walk
score, flood zone). Its answers are never trusted on their own: they enter
reconciliation as one more low-priority source.

Design:
  - JSON mode enforced (structured output, not free text)
  - No API key → a failed fetch, not an exception
  - Model name comes from settings (PROPERTY_GROUNDING_MODEL)
"""

from __future__ import annotations

import json
import logging
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from .config import Settings, load_settings
from .models import DataSource, SourceFetchResult
from .sources import build_fact_record

logger = logging.getLogger(__name__)


# ─── System Prompt ───────────────────────────────────────────────────

SYSTEM_PROMPT = """\
You are a real-estate research assistant with access to public web sources.
Look up the property at the given address and report what public records
and reputable listing sites say about it.

CRITICAL RULES:
1. Report only facts you can attribute to a public source.
2. Do not estimate or invent values for fields you cannot find — use null.
3. Numbers must be plain numbers (no $ sign, no commas, no units).

Return a JSON object with these exact keys:
{
    "address": "full formatted address or null",
    "zoning": "zoning code (e.g. SF-3, R-1) or null",
    "year_built": number or null,
    "property_type": "string or null",
    "sqft": number or null,
    "lot_size": "lot size with unit, e.g. '0.25 acres', or null",
    "bedrooms": number or null,
    "bathrooms": number or null,
    "estimated_value": number or null,
    "school_district": "string or null",
    "schools": [{"name": str, "rating": number, "distance": str, "type": str}],
    "walk_score": number or null,
    "flood_zone": "FEMA flood zone code (e.g. X, AE) or null"
}
"""


class GroundingSourceAdapter:
    """Source adapter backed by an OpenAI chat completion."""

    source = DataSource.GOOGLE_GROUNDING

    def __init__(self, settings: Settings | None = None, client: Any | None = None):
        self.settings = settings or load_settings()
        self._client = client

    def _get_client(self) -> Any | None:
        if self._client is None and self.settings.openai_api_key:
            self._client = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._client

    async def fetch(self, address: str) -> SourceFetchResult:
        client = self._get_client()
        if client is None:
            logger.info("No OPENAI_API_KEY set — skipping grounded lookup")
            return SourceFetchResult(
                source=self.source, success=False, error="OpenAI API key not configured"
            )

        try:
            response = await client.chat.completions.create(
                model=self.settings.grounding_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Property address: {address}"},
                ],
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
            if content is None:
                return SourceFetchResult(
                    source=self.source, success=False, error="Grounded lookup returned empty content"
                )
            data = json.loads(content)
        except (OpenAIError, json.JSONDecodeError) as e:
            logger.error("Grounded lookup failed: %s", e)
            return SourceFetchResult(source=self.source, success=False, error=str(e))

        payload = {k: v for k, v in data.items() if v is not None} if isinstance(data, dict) else {}
        if not payload:
            return SourceFetchResult(
                source=self.source, success=False, error="Grounded lookup found no facts"
            )

        logger.info("Grounded lookup succeeded (%d fields)", len(payload))
        return SourceFetchResult(
            source=self.source, success=True, record=build_fact_record(self.source, payload)
        )
