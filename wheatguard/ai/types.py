from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol


TOO_UNCLEAR_MESSAGE = (
    "Image is too unclear. Please upload a sharp, close-up wheat leaf photo."
)
NOT_LEAF_MESSAGE = (
    "This doesn't look like a close-up wheat leaf photo. Please upload a clear "
    "wheat leaf image (close-up), not a field/sky/people/object photo."
)


class RejectionCode(str, Enum):
    IMAGE_TOO_UNCLEAR = "image_too_unclear"
    NOT_LEAF_LIKE = "not_leaf_like"


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of one leaf-likeness check.

    ``analyzed`` is False when the image could not be decoded; such decisions
    are always accepted and carry no reason.
    """

    accepted: bool
    reason: str | None = None
    code: RejectionCode | None = None
    analyzed: bool = True

    @classmethod
    def accept(cls, *, analyzed: bool = True) -> "GateDecision":
        return cls(accepted=True, analyzed=analyzed)

    @classmethod
    def reject(cls, code: RejectionCode, reason: str) -> "GateDecision":
        return cls(accepted=False, reason=reason, code=code)


@dataclass(frozen=True)
class DiseaseRecord:
    name: str
    severity: Severity
    confidence: float
    treatment: str
    prevention: str

    def with_confidence(self, confidence: float) -> "DiseaseRecord":
        return replace(self, confidence=confidence)

    def to_dict(self) -> dict[str, object]:
        return {
            "disease_name": self.name,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "treatment": self.treatment,
            "prevention": self.prevention,
        }


class LeafGate(Protocol):
    async def classify(self, image_bytes: bytes) -> GateDecision: ...


__all__ = [
    "DiseaseRecord",
    "GateDecision",
    "LeafGate",
    "NOT_LEAF_MESSAGE",
    "RejectionCode",
    "Severity",
    "TOO_UNCLEAR_MESSAGE",
]
