from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Dict

import requests

from .image_payload import to_data_url


@dataclass
class WheatGuardHttpClient:
    base_url: str
    timeout: float = 30.0
    session: requests.Session = field(default_factory=requests.Session)

    def detect(self, image_bytes: bytes, filename: str | None = None) -> Dict[str, Any]:
        payload = {
            "image_base64": base64.b64encode(image_bytes).decode("ascii"),
            "filename": filename,
        }
        return self._post("/v1/detect", payload)

    def analyze(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> Dict[str, Any]:
        payload = {"imageBase64": to_data_url(image_bytes, mime_type)}
        return self._post("/v1/analyze-wheat-disease", payload)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(
                f"{self.base_url.rstrip('/')}{path}",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as exc:  # pragma: no cover - network conditions
            raise RuntimeError("Timed out waiting for WheatGuard response") from exc
        except requests.RequestException as exc:
            raise RuntimeError(f"Failed to call WheatGuard API: {exc}") from exc


__all__ = ["WheatGuardHttpClient"]
