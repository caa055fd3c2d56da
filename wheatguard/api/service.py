from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from ..ai import GateDecision, LeafGate
from ..ai.picker import DiseasePicker
from .image_payload import decode_image_base64


logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


class ImageTooLarge(ValueError):
    pass


@dataclass
class DetectionService:
    """Gate an uploaded photo and, when it looks like a leaf, attach a mock diagnosis."""

    gate: LeafGate
    picker: DiseasePicker
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES

    async def process_upload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        image_b64: str = payload["image_base64"]
        try:
            image_bytes = decode_image_base64(image_b64)
        except ValueError as exc:
            logger.warning("Failed to decode image payload: %s", exc)
            raise

        logger.info(
            "Running detection filename=%s image_bytes=%d",
            payload.get("filename"),
            len(image_bytes),
        )
        return await self.detect(image_bytes)

    async def detect(self, image_bytes: bytes) -> Dict[str, Any]:
        if not image_bytes:
            raise ValueError("Image payload is empty")
        if len(image_bytes) > self.max_image_bytes:
            raise ImageTooLarge(
                f"Image too large. Maximum size is {self.max_image_bytes // (1024 * 1024)}MB"
            )

        decision: GateDecision = await self.gate.classify(image_bytes)
        result: Dict[str, Any] = {
            "accepted": decision.accepted,
            "analyzed": decision.analyzed,
            "code": decision.code.value if decision.code is not None else None,
            "reason": decision.reason,
            "disease": None,
            "reproducible": None,
        }
        if not decision.accepted:
            logger.info("Detection rejected code=%s", result["code"])
            return result

        picked = self.picker.pick(image_bytes)
        result["disease"] = picked.record.to_dict()
        result["reproducible"] = picked.reproducible
        logger.info(
            "Detection complete disease=%s confidence=%.1f analyzed=%s",
            picked.record.name,
            picked.record.confidence,
            decision.analyzed,
        )
        return result


__all__ = ["DetectionService", "ImageTooLarge", "DEFAULT_MAX_IMAGE_BYTES"]
