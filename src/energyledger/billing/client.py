"""Client for the external text-generation service used by bill analysis."""

import json
from typing import Any

import httpx
import structlog

from energyledger.config import BillingSettings
from energyledger.errors import ServiceError

log = structlog.get_logger()

MESSAGES_PATH = "/v1/messages"

ANOMALY_PROMPT = """Analyze this energy usage data for anomalies.

Use robust statistics (MAD, IQR), change point detection and the hourly and
daily baselines to find readings that deviate from expected usage. Consider
time of day, day of week and season when judging each deviation.

Usage Data:
{data}

Respond with JSON only, using this structure:
{{
  "anomalies": [{{
    "timestamp": string,
    "type": "spike" | "drop" | "pattern" | "trend",
    "severity": "low" | "medium" | "high",
    "expectedValue": number,
    "actualValue": number,
    "potentialCauses": string[],
    "confidence": number,
    "impact": {{"cost": number, "efficiency": number}},
    "context": {{"timeOfDay": string, "dayOfWeek": string, "seasonality": string}}
  }}]
}}"""

RECOMMENDATION_PROMPT = """Based on this energy analysis data, generate actionable
cost saving recommendations.

Estimate savings with confidence, give a phased implementation plan, and rank
each recommendation by impact and implementation risk.

Analysis Data:
{data}

Respond with JSON only, using this structure:
{{
  "recommendations": [{{
    "title": string,
    "description": string,
    "estimatedSavings": number,
    "implementationCost": number,
    "paybackPeriod": number,
    "priority": "low" | "medium" | "high",
    "confidence": number,
    "implementationSteps": string[],
    "roi": number,
    "mlInsights": {{
      "keyFactors": string[],
      "sensitivityAnalysis": [{{"factor": string, "impact": number}}],
      "riskProfile": {{"level": "low" | "medium" | "high", "factors": string[]}}
    }}
  }}]
}}"""


class TextGenerationClient:
    """Client for the messages endpoint of the text-generation service."""

    def __init__(
        self,
        settings: BillingSettings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings or BillingSettings()
        self._client = httpx.Client(
            base_url=self.settings.base_url,
            timeout=self.settings.timeout,
            transport=transport,
            headers={
                "x-api-key": self.settings.api_key,
                "anthropic-version": self.settings.api_version,
                "content-type": "application/json",
            },
        )

    def analyze(self, prompt: str) -> str:
        """Send a single-turn prompt and return the text of the reply.

        Raises:
            ServiceError: On transport failures, non-2xx responses, or a
                reply without a leading text block
        """
        body = {
            "model": self.settings.model,
            "max_tokens": self.settings.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.settings.temperature,
        }

        try:
            response = self._client.post(MESSAGES_PATH, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            log.warning("text_service_error", error=str(e))
            raise ServiceError(f"text service request failed: {e}") from e
        except ValueError as e:
            raise ServiceError("text service returned invalid JSON") from e

        return self._parse_response(data)

    def _parse_response(self, data: Any) -> str:
        try:
            block = data["content"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise ServiceError("text service reply has no content") from e

        if not isinstance(block, dict) or block.get("type") != "text":
            return ""
        return str(block.get("text", ""))

    def detect_anomalies(self, usage_data: dict[str, Any]) -> str:
        prompt = ANOMALY_PROMPT.format(data=json.dumps(usage_data, indent=2))
        return self.analyze(prompt)

    def generate_recommendations(self, analysis_data: dict[str, Any]) -> str:
        prompt = RECOMMENDATION_PROMPT.format(data=json.dumps(analysis_data, indent=2))
        return self.analyze(prompt)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TextGenerationClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
