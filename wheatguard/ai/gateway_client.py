from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import requests


logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = """You are an expert agricultural pathologist specializing in wheat diseases.
Analyze the provided image and determine:
1. Whether this is a wheat leaf photo
2. If it is a wheat leaf, identify any disease present

You MUST respond with a valid JSON object (no markdown, no extra text) in this exact format:
{
  "isWheatLeaf": boolean,
  "disease": {
    "name": string or null,
    "severity": "Low" | "Medium" | "High" | null,
    "confidence": number (0-100) or null,
    "treatment": string or null,
    "prevention": string or null
  },
  "message": string (explanation if not a wheat leaf, or brief description of findings)
}

Known wheat diseases to look for:
- Leaf Rust (orange-brown pustules on leaves)
- Stem Rust (reddish-brown pustules on stems)
- Powdery Mildew (white powdery coating)
- Septoria Leaf Blotch (tan lesions with dark borders)
- Yellow Rust/Stripe Rust (yellow stripes on leaves)
- Fusarium Head Blight (bleached heads with pink/orange spores)
- Tan Spot (tan oval lesions)
- Take-All (blackened roots, stunted plants)

If the image is NOT a wheat leaf (e.g., person, animal, sky, random object, other plants), set isWheatLeaf to false and provide a helpful message.

If the wheat leaf appears healthy with no visible disease, set disease.name to "Healthy" with appropriate confidence."""

USER_PROMPT = "Analyze this image for wheat disease detection:"


class GatewayError(RuntimeError):
    """Raised when the AI gateway cannot produce a usable verdict."""

    status_code: int = 500
    public_message: str = "Failed to analyze image"


class GatewayRateLimited(GatewayError):
    status_code = 429
    public_message = "Rate limit exceeded. Please try again in a moment."


class GatewayQuotaExceeded(GatewayError):
    status_code = 402
    public_message = "AI service quota exceeded."


class GatewayEmptyResponse(GatewayError):
    public_message = "No analysis result received"


class GatewayParseError(GatewayError):
    public_message = "Failed to parse analysis result"


@dataclass
class VisionGatewayClient:
    """Send a leaf photo to an OpenAI-compatible vision gateway and parse its verdict."""

    api_key: str
    model: str = "google/gemini-2.5-flash"
    base_url: str = "https://ai.gateway.lovable.dev/v1"
    timeout: float = 60.0

    def analyze(self, image_data_url: str) -> dict[str, Any]:
        if not self.api_key:
            raise GatewayError("AI gateway API key is required to analyze images")

        payload = self._build_payload(image_data_url)
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        response_data = self._send_request(url, payload)
        content = self._extract_message_content(response_data)
        logger.info("AI gateway response content: %s", content)
        return self._parse_message(content)

    def _send_request(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = requests.post(
                url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"Failed to reach AI gateway: {exc}") from exc

        if not response.ok:
            logger.error(
                "AI gateway error status=%s body=%s", response.status_code, response.text
            )
            if response.status_code == 429:
                raise GatewayRateLimited("AI gateway rate limit exceeded")
            if response.status_code == 402:
                raise GatewayQuotaExceeded("AI gateway quota exceeded")
            raise GatewayError(f"AI gateway returned status {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError("AI gateway response body was not JSON") from exc

    def _build_payload(self, image_data_url: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": USER_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_data_url}},
                    ],
                },
            ],
        }

    def _extract_message_content(self, data: dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content or not isinstance(content, str):
            logger.error("No content in AI gateway response: %s", data)
            raise GatewayEmptyResponse("AI gateway returned no message content")
        return content

    def _parse_message(self, message: str) -> dict[str, Any]:
        # Models sometimes wrap the object in markdown fences.
        match = _JSON_BLOCK.search(message)
        if match is None:
            raise GatewayParseError("No JSON found in AI gateway response")
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise GatewayParseError("AI gateway response was not valid JSON") from exc


__all__ = [
    "GatewayEmptyResponse",
    "GatewayError",
    "GatewayParseError",
    "GatewayQuotaExceeded",
    "GatewayRateLimited",
    "VisionGatewayClient",
]
