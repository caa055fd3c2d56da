import base64
import io
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient
from PIL import Image

from wheatguard.ai.gateway_client import (
    GatewayEmptyResponse,
    GatewayError,
    GatewayParseError,
    GatewayQuotaExceeded,
    GatewayRateLimited,
)
from wheatguard.ai.picker import Selection
from wheatguard.api.server import create_app


def _encode_image(color: tuple[int, int, int], fmt: str = "PNG") -> str:
    img = Image.new("RGB", (160, 160), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return base64.b64encode(buf.getvalue()).decode("ascii")


class _FixedSelector:
    def select(self, image_bytes: bytes, count: int) -> Selection:
        return Selection(index=1, jitter=-1.0)


class _StubGateway:
    def __init__(self, result: dict | None = None, error: Exception | None = None) -> None:
        self.api_key = "stub-key"
        self.model = "stub-model"
        self.result = result
        self.error = error
        self.calls: list[str] = []

    def analyze(self, image_data_url: str) -> dict:
        self.calls.append(image_data_url)
        if self.error is not None:
            raise self.error
        return self.result or {}


class DetectRouteTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self.tmp.name)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _client(self, **kwargs) -> TestClient:
        app = create_app(root_dir=self.tmp_path / "dashboard", **kwargs)
        return TestClient(app)

    def test_health(self) -> None:
        with self._client() as client:
            response = client.get("/health")
        self.assertEqual(response.json(), {"status": "ok"})

    def test_leaf_photo_receives_diagnosis(self) -> None:
        with self._client(selector=_FixedSelector()) as client:
            response = client.post(
                "/v1/detect",
                json={"image_base64": _encode_image((40, 180, 40)), "filename": "leaf.png"},
            )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["accepted"])
        self.assertTrue(data["analyzed"])
        self.assertTrue(data["reproducible"])
        self.assertEqual(data["disease"]["disease_name"], "Stem Rust")
        self.assertEqual(data["disease"]["severity"], "High")
        self.assertAlmostEqual(data["disease"]["confidence"], 87.3)

    def test_same_upload_gives_same_diagnosis(self) -> None:
        image_b64 = _encode_image((60, 170, 50))
        with self._client() as client:
            first = client.post("/v1/detect", json={"image_base64": image_b64}).json()
            second = client.post("/v1/detect", json={"image_base64": image_b64}).json()
        self.assertEqual(first["disease"], second["disease"])

    def test_non_leaf_photo_is_rejected_without_diagnosis(self) -> None:
        with self._client() as client:
            response = client.post(
                "/v1/detect", json={"image_base64": _encode_image((100, 180, 240))}
            )
        data = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertFalse(data["accepted"])
        self.assertEqual(data["code"], "not_leaf_like")
        self.assertIn("close-up wheat leaf", data["reason"])
        self.assertIsNone(data["disease"])

    def test_data_url_payload_is_accepted(self) -> None:
        data_url = "data:image/png;base64," + _encode_image((40, 180, 40))
        with self._client() as client:
            response = client.post("/v1/detect", json={"image_base64": data_url})
        self.assertTrue(response.json()["accepted"])

    def test_undecodable_image_fails_open(self) -> None:
        payload = base64.b64encode(b"plain text, not pixels").decode("ascii")
        with self._client() as client:
            response = client.post("/v1/detect", json={"image_base64": payload})
        data = response.json()
        self.assertTrue(data["accepted"])
        self.assertFalse(data["analyzed"])
        self.assertIsNotNone(data["disease"])

    def test_invalid_base64_is_bad_request(self) -> None:
        with self._client() as client:
            response = client.post("/v1/detect", json={"image_base64": "***not base64***"})
        self.assertEqual(response.status_code, 400)

    def test_oversized_image_is_rejected(self) -> None:
        with self._client(max_image_bytes=16) as client:
            response = client.post(
                "/v1/detect", json={"image_base64": _encode_image((40, 180, 40))}
            )
        self.assertEqual(response.status_code, 413)


class AnalyzeRouteTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self.tmp.name)
        self.data_url = "data:image/jpeg;base64," + _encode_image((40, 180, 40), "JPEG")

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _post(self, gateway, body) -> "tuple[int, dict]":
        app = create_app(root_dir=self.tmp_path / "dashboard", gateway=gateway)
        with TestClient(app) as client:
            response = client.post("/v1/analyze-wheat-disease", json=body)
        return response.status_code, response.json()

    def test_successful_verdict_is_relayed(self) -> None:
        verdict = {"isWheatLeaf": True, "disease": {"name": "Healthy"}, "message": "ok"}
        gateway = _StubGateway(result=verdict)
        status, data = self._post(gateway, {"imageBase64": self.data_url})
        self.assertEqual(status, 200)
        self.assertEqual(data, verdict)
        self.assertEqual(gateway.calls, [self.data_url])

    def test_missing_image(self) -> None:
        status, data = self._post(_StubGateway(), {})
        self.assertEqual(status, 400)
        self.assertEqual(data["error"], "No image provided")

    def test_non_string_image(self) -> None:
        status, data = self._post(_StubGateway(), {"imageBase64": 42})
        self.assertEqual(status, 400)
        self.assertEqual(data["error"], "Invalid image format: expected string")

    def test_unsupported_format(self) -> None:
        status, data = self._post(_StubGateway(), {"imageBase64": "data:image/bmp;base64,AAAA"})
        self.assertEqual(status, 400)
        self.assertIn("Supported formats", data["error"])

    def test_unconfigured_gateway(self) -> None:
        status, data = self._post(None, {"imageBase64": self.data_url})
        self.assertEqual(status, 500)
        self.assertEqual(data["error"], "AI service not configured")

    def test_gateway_errors_map_to_status_codes(self) -> None:
        status, data = self._post(
            _StubGateway(error=GatewayRateLimited("busy")), {"imageBase64": self.data_url}
        )
        self.assertEqual(status, 429)
        self.assertEqual(data["error"], "Rate limit exceeded. Please try again in a moment.")

        status, data = self._post(
            _StubGateway(error=GatewayQuotaExceeded("quota")), {"imageBase64": self.data_url}
        )
        self.assertEqual(status, 402)
        self.assertEqual(data["error"], "AI service quota exceeded.")

    def test_gateway_failures_surface_public_messages(self) -> None:
        cases = [
            (GatewayError("upstream 503"), "Failed to analyze image"),
            (GatewayEmptyResponse("no content"), "No analysis result received"),
            (GatewayParseError("no JSON object"), "Failed to parse analysis result"),
        ]
        for error, message in cases:
            with self.subTest(error=type(error).__name__):
                status, data = self._post(
                    _StubGateway(error=error), {"imageBase64": self.data_url}
                )
                self.assertEqual(status, 500)
                self.assertEqual(data, {"error": message})

    def test_oversized_request_is_rejected_before_reading_body(self) -> None:
        gateway = _StubGateway(result={"isWheatLeaf": True})
        app = create_app(root_dir=self.tmp_path / "dashboard", gateway=gateway)
        with TestClient(app) as client:
            response = client.post(
                "/v1/analyze-wheat-disease",
                content=b"{}",
                headers={
                    "content-type": "application/json",
                    "content-length": str(16 * 1024 * 1024),
                },
            )
        self.assertEqual(response.status_code, 413)
        self.assertEqual(response.json(), {"error": "Request too large. Maximum size is 10MB"})
        self.assertEqual(gateway.calls, [])

    def test_malformed_json_body_is_bad_request(self) -> None:
        gateway = _StubGateway(result={"isWheatLeaf": True})
        app = create_app(root_dir=self.tmp_path / "dashboard", gateway=gateway)
        with TestClient(app) as client:
            response = client.post(
                "/v1/analyze-wheat-disease",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "No image provided"})
        self.assertEqual(gateway.calls, [])


if __name__ == "__main__":
    unittest.main()
