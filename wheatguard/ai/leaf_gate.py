from __future__ import annotations

import asyncio
import io
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable

from PIL import Image

from .types import (
    NOT_LEAF_MESSAGE,
    TOO_UNCLEAR_MESSAGE,
    GateDecision,
    RejectionCode,
)


logger = logging.getLogger(__name__)

_DECODE_EXECUTOR = ThreadPoolExecutor(max_workers=4)
_RESAMPLE = Image.Resampling.NEAREST


@dataclass(frozen=True)
class GateThresholds:
    """Empirically tuned cut-offs for the leaf-likeness heuristic."""

    min_considered: int = 400
    min_leaf_score: float = 0.42
    min_green_score: float = 0.26
    max_blue_score: float = 0.25
    max_neutral_score: float = 0.7


@dataclass
class ScanAccumulator:
    considered: int = 0
    leaf_like: int = 0
    green_dominant: int = 0
    blue_like: int = 0
    neutral_like: int = 0

    def ratios(self) -> tuple[float, float, float, float]:
        if self.considered <= 0:
            return 0.0, 0.0, 0.0, 0.0
        total = float(self.considered)
        return (
            self.leaf_like / total,
            self.green_dominant / total,
            self.blue_like / total,
            self.neutral_like / total,
        )


def rgb_to_hsv(r: float, g: float, b: float) -> tuple[float, float, float]:
    """Convert normalized RGB to (hue degrees, saturation, value)."""
    high = max(r, g, b)
    low = min(r, g, b)
    d = high - low

    h = 0.0
    if d != 0:
        if high == r:
            h = math.fmod((g - b) / d, 6)
        elif high == g:
            h = (b - r) / d + 2
        else:
            h = (r - g) / d + 4
        h *= 60
        if h < 0:
            h += 360

    s = 0.0 if high == 0 else d / high
    return h, s, high


def scan_pixels(pixels: Iterable[tuple[int, int, int, int]]) -> ScanAccumulator:
    """Count leaf evidence over 8-bit RGBA samples."""
    acc = ScanAccumulator()
    for red, green, blue, alpha in pixels:
        if alpha / 255 < 0.8:
            continue
        r = red / 255
        g = green / 255
        b = blue / 255
        h, s, v = rgb_to_hsv(r, g, b)

        if v < 0.08:
            continue
        acc.considered += 1

        if v > 0.92 and s < 0.12:
            acc.neutral_like += 1

        leaf_hue = 15 <= h <= 165
        rust_hue = h <= 40 or h >= 340
        blue_hue = 190 <= h <= 260

        if blue_hue and s > 0.18 and v > 0.2:
            acc.blue_like += 1

        if g > r * 1.08 and g > b * 1.08 and s > 0.12 and v > 0.12:
            acc.green_dominant += 1

        if (leaf_hue and s > 0.14 and v > 0.12) or (
            rust_hue and s > 0.22 and v > 0.12
        ):
            acc.leaf_like += 1
    return acc


def _iter_rgba(raw: bytes) -> Iterable[tuple[int, int, int, int]]:
    for offset in range(0, len(raw) - 3, 4):
        yield raw[offset], raw[offset + 1], raw[offset + 2], raw[offset + 3]


@dataclass
class LeafLikenessGate:
    """Reject uploads that are clearly not close-up leaf photos.

    The image is downscaled to a small canvas and its pixels are bucketed by
    hue, saturation and brightness. Undecodable input is accepted unanalyzed.
    """

    canvas_size: tuple[int, int] = (96, 96)
    thresholds: GateThresholds = field(default_factory=GateThresholds)

    async def classify(self, image_bytes: bytes) -> GateDecision:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_DECODE_EXECUTOR, self.evaluate, image_bytes)

    def evaluate(self, image_bytes: bytes) -> GateDecision:
        raw = self._decode(image_bytes)
        if raw is None:
            return GateDecision.accept(analyzed=False)
        return self.decide(scan_pixels(_iter_rgba(raw)))

    def decide(self, acc: ScanAccumulator) -> GateDecision:
        limits = self.thresholds
        if acc.considered < limits.min_considered:
            logger.info(
                "Leaf gate rejected unclear image considered=%d minimum=%d",
                acc.considered,
                limits.min_considered,
            )
            return GateDecision.reject(
                RejectionCode.IMAGE_TOO_UNCLEAR, TOO_UNCLEAR_MESSAGE
            )

        leaf_score, green_score, blue_score, neutral_score = acc.ratios()
        ok = (
            (leaf_score >= limits.min_leaf_score or green_score >= limits.min_green_score)
            and blue_score <= limits.max_blue_score
            and neutral_score <= limits.max_neutral_score
        )
        logger.debug(
            "Leaf gate scores leaf=%.3f green=%.3f blue=%.3f neutral=%.3f considered=%d ok=%s",
            leaf_score,
            green_score,
            blue_score,
            neutral_score,
            acc.considered,
            ok,
        )
        if not ok:
            return GateDecision.reject(RejectionCode.NOT_LEAF_LIKE, NOT_LEAF_MESSAGE)
        return GateDecision.accept()

    def _decode(self, image_bytes: bytes) -> bytes | None:
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                # JPEG decodes at a reduced DCT scale; no-op for other formats.
                img.draft("RGB", self.canvas_size)
                # Nearest sampling commutes with the per-pixel mode conversion,
                # so shrink first and convert only the canvas.
                with img.resize(self.canvas_size, _RESAMPLE) as small:
                    with small.convert("RGBA") as rgba:
                        return rgba.tobytes()
        except Exception:
            logger.debug("Leaf gate could not decode image; accepting", exc_info=True)
            return None


__all__ = [
    "GateThresholds",
    "LeafLikenessGate",
    "ScanAccumulator",
    "rgb_to_hsv",
    "scan_pixels",
]
