from __future__ import annotations

import hashlib
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Protocol

from .catalog import DiseaseCatalog
from .types import DiseaseRecord


logger = logging.getLogger(__name__)

# Confidence jitter applied around each record's base value, in percentage points.
JITTER_SPAN: float = 3.0


@dataclass(frozen=True)
class Selection:
    index: int
    jitter: float
    reproducible: bool = True


class RecordSelector(Protocol):
    def select(self, image_bytes: bytes, count: int) -> Selection: ...


@dataclass(frozen=True)
class ContentHashSelector:
    """Derive the catalog index and jitter from the SHA-256 of the image."""

    def select(self, image_bytes: bytes, count: int) -> Selection:
        digest = hashlib.sha256(image_bytes).digest()
        index = digest[0] % count
        jitter = (digest[1] / 255) * (2 * JITTER_SPAN) - JITTER_SPAN
        return Selection(index=index, jitter=jitter)


@dataclass
class RandomSelector:
    """Uniform random choice; results are not reproducible across uploads."""

    rng: random.Random = field(default_factory=random.Random)

    def select(self, image_bytes: bytes, count: int) -> Selection:
        index = self.rng.randrange(count)
        jitter = self.rng.random() * (2 * JITTER_SPAN) - JITTER_SPAN
        return Selection(index=index, jitter=jitter, reproducible=False)


def default_selector() -> RecordSelector:
    try:
        hashlib.new("sha256")
    except ValueError:
        logger.warning(
            "SHA-256 unavailable; mock detections fall back to random selection"
        )
        return RandomSelector()
    return ContentHashSelector()


@dataclass(frozen=True)
class PickResult:
    record: DiseaseRecord
    reproducible: bool


def round_half_up(value: float, digits: int = 1) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


@dataclass
class DiseasePicker:
    """Map image bytes onto one catalog record with a small confidence jitter."""

    catalog: DiseaseCatalog
    selector: RecordSelector | None = None

    def pick(self, image_bytes: bytes) -> PickResult:
        selector = self.selector or default_selector()
        selection = selector.select(image_bytes, len(self.catalog))
        base = self.catalog[selection.index]
        confidence = round_half_up(base.confidence + selection.jitter)
        logger.debug(
            "Picked disease=%s base=%.1f jitter=%.3f reproducible=%s",
            base.name,
            base.confidence,
            selection.jitter,
            selection.reproducible,
        )
        return PickResult(
            record=base.with_confidence(confidence),
            reproducible=selection.reproducible,
        )


__all__ = [
    "ContentHashSelector",
    "DiseasePicker",
    "JITTER_SPAN",
    "PickResult",
    "RandomSelector",
    "RecordSelector",
    "Selection",
    "default_selector",
    "round_half_up",
]
