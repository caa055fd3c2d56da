from __future__ import annotations

import asyncio
import io
import unittest
from unittest.mock import patch

from PIL import Image

from wheatguard.ai.leaf_gate import (
    GateThresholds,
    LeafLikenessGate,
    ScanAccumulator,
    rgb_to_hsv,
    scan_pixels,
)
from wheatguard.ai.types import NOT_LEAF_MESSAGE, TOO_UNCLEAR_MESSAGE, RejectionCode


def _png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def _solid(color: tuple[int, ...], mode: str = "RGB", size: tuple[int, int] = (200, 200)) -> bytes:
    return _png(Image.new(mode, size, color=color))


def _half_green() -> bytes:
    img = Image.new("RGB", (200, 200), color=(128, 128, 128))
    img.paste((40, 180, 40), (0, 0, 100, 200))
    return _png(img)


class RgbToHsvTests(unittest.TestCase):
    def test_primary_hues(self) -> None:
        self.assertEqual(rgb_to_hsv(1.0, 0.0, 0.0), (0.0, 1.0, 1.0))
        h, s, v = rgb_to_hsv(0.0, 1.0, 0.0)
        self.assertAlmostEqual(h, 120.0)
        h, s, v = rgb_to_hsv(0.0, 0.0, 1.0)
        self.assertAlmostEqual(h, 240.0)

    def test_negative_hue_wraps_into_range(self) -> None:
        h, s, v = rgb_to_hsv(1.0, 0.0, 0.5)
        self.assertAlmostEqual(h, 330.0)
        self.assertAlmostEqual(s, 1.0)
        self.assertAlmostEqual(v, 1.0)

    def test_grey_has_zero_hue_and_saturation(self) -> None:
        self.assertEqual(rgb_to_hsv(0.5, 0.5, 0.5), (0.0, 0.0, 0.5))
        self.assertEqual(rgb_to_hsv(0.0, 0.0, 0.0), (0.0, 0.0, 0.0))

    def test_sky_blue_lands_in_blue_band(self) -> None:
        h, s, v = rgb_to_hsv(100 / 255, 180 / 255, 240 / 255)
        self.assertTrue(190 <= h <= 260)
        self.assertGreater(s, 0.18)
        self.assertGreater(v, 0.2)


class ScanPixelsTests(unittest.TestCase):
    def test_transparent_and_dark_pixels_are_not_considered(self) -> None:
        acc = scan_pixels([(40, 180, 40, 0), (5, 5, 5, 255), (40, 180, 40, 210)])
        self.assertEqual(acc.considered, 1)
        self.assertEqual(acc.leaf_like, 1)
        self.assertEqual(acc.green_dominant, 1)

    def test_near_white_counts_as_considered_and_neutral(self) -> None:
        acc = scan_pixels([(250, 250, 250, 255)])
        self.assertEqual(acc.considered, 1)
        self.assertEqual(acc.neutral_like, 1)
        self.assertEqual(acc.leaf_like, 0)

    def test_rust_patch_counts_as_leaf_evidence(self) -> None:
        acc = scan_pixels([(200, 40, 60, 255)])
        self.assertEqual(acc.leaf_like, 1)
        self.assertEqual(acc.green_dominant, 0)

    def test_sub_counters_never_exceed_considered(self) -> None:
        pixels = [(r, g, b, 255) for r in range(0, 256, 51) for g in range(0, 256, 51) for b in range(0, 256, 51)]
        acc = scan_pixels(pixels)
        self.assertLessEqual(acc.considered, len(pixels))
        for value in (acc.leaf_like, acc.green_dominant, acc.blue_like, acc.neutral_like):
            self.assertLessEqual(value, acc.considered)


class DecisionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.gate = LeafLikenessGate()

    def test_threshold_boundaries_are_inclusive(self) -> None:
        decision = self.gate.decide(ScanAccumulator(considered=1000, leaf_like=420))
        self.assertTrue(decision.accepted)
        decision = self.gate.decide(
            ScanAccumulator(considered=1000, green_dominant=260, blue_like=250, neutral_like=700)
        )
        self.assertTrue(decision.accepted)

    def test_blue_excess_rejects_even_with_leaf_evidence(self) -> None:
        decision = self.gate.decide(
            ScanAccumulator(considered=1000, leaf_like=900, blue_like=251)
        )
        self.assertFalse(decision.accepted)
        self.assertEqual(decision.code, RejectionCode.NOT_LEAF_LIKE)

    def test_too_few_pixels_is_unclear(self) -> None:
        decision = self.gate.decide(ScanAccumulator(considered=399, leaf_like=399))
        self.assertFalse(decision.accepted)
        self.assertEqual(decision.code, RejectionCode.IMAGE_TOO_UNCLEAR)
        self.assertEqual(decision.reason, TOO_UNCLEAR_MESSAGE)


def test_green_leaf_close_up_is_accepted() -> None:
    decision = asyncio.run(LeafLikenessGate().classify(_half_green()))
    assert decision.accepted
    assert decision.analyzed
    assert decision.reason is None


def test_uniform_grey_is_not_leaf_rather_than_unclear() -> None:
    decision = asyncio.run(LeafLikenessGate().classify(_solid((128, 128, 128))))
    assert not decision.accepted
    assert decision.code is RejectionCode.NOT_LEAF_LIKE
    assert decision.reason == NOT_LEAF_MESSAGE


def test_sky_blue_is_rejected() -> None:
    decision = asyncio.run(LeafLikenessGate().classify(_solid((100, 180, 240))))
    assert not decision.accepted
    assert decision.code is RejectionCode.NOT_LEAF_LIKE


def test_transparent_image_is_too_unclear() -> None:
    img = Image.new("RGBA", (200, 200), color=(0, 0, 0, 0))
    img.paste((40, 180, 40, 255), (0, 0, 2, 2))
    decision = asyncio.run(LeafLikenessGate().classify(_png(img)))
    assert not decision.accepted
    assert decision.code is RejectionCode.IMAGE_TOO_UNCLEAR


def test_near_black_image_is_too_unclear() -> None:
    decision = asyncio.run(LeafLikenessGate().classify(_solid((5, 5, 5))))
    assert decision.code is RejectionCode.IMAGE_TOO_UNCLEAR


def test_white_background_is_rejected() -> None:
    decision = asyncio.run(LeafLikenessGate().classify(_solid((255, 255, 255))))
    assert decision.code is RejectionCode.NOT_LEAF_LIKE


def test_undecodable_bytes_fail_open() -> None:
    decision = asyncio.run(LeafLikenessGate().classify(b"definitely not an image"))
    assert decision.accepted
    assert not decision.analyzed
    assert decision.code is None


def test_palette_gif_is_decoded() -> None:
    img = Image.new("RGB", (120, 120), color=(40, 180, 40)).convert("P")
    buf = io.BytesIO()
    img.save(buf, format="GIF")
    decision = asyncio.run(LeafLikenessGate().classify(buf.getvalue()))
    assert decision.accepted
    assert decision.analyzed


def test_custom_thresholds_are_honoured() -> None:
    gate = LeafLikenessGate(thresholds=GateThresholds(min_considered=100_000))
    decision = gate.evaluate(_half_green())
    assert decision.code is RejectionCode.IMAGE_TOO_UNCLEAR


def test_small_canvas_limits_considered_pixels() -> None:
    gate = LeafLikenessGate(canvas_size=(10, 10))
    decision = gate.evaluate(_solid((40, 180, 40)))
    assert decision.code is RejectionCode.IMAGE_TOO_UNCLEAR


def test_large_jpeg_is_shrunk_before_conversion() -> None:
    img = Image.new("RGB", (2400, 1800), color=(40, 180, 40))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=85)
    gate = LeafLikenessGate()

    converted_sizes: list[tuple[int, int]] = []
    original_convert = Image.Image.convert

    def recording_convert(self, *args, **kwargs):
        converted_sizes.append(self.size)
        return original_convert(self, *args, **kwargs)

    with patch.object(Image.Image, "convert", recording_convert):
        raw = gate._decode(buf.getvalue())

    assert raw is not None
    assert len(raw) == 96 * 96 * 4
    assert converted_sizes
    assert all(w <= 96 and h <= 96 for w, h in converted_sizes)
    assert gate.evaluate(buf.getvalue()).accepted


if __name__ == "__main__":
    unittest.main()
