from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Sequence

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .image_payload import MAX_REQUEST_BYTES, validate_image_data_url
from .schemas import AnalyzeRequest, DetectionRequest, DetectionResponse
from .service import DEFAULT_MAX_IMAGE_BYTES, DetectionService, ImageTooLarge
from ..ai import LeafGate
from ..ai.catalog import DiseaseCatalog, default_catalog
from ..ai.gateway_client import GatewayError, VisionGatewayClient
from ..ai.leaf_gate import LeafLikenessGate
from ..ai.picker import DiseasePicker, RecordSelector
from ..dashboard.storage import FileSystemDashboardStore
from ..web import register_dashboards


logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    root_dir: Path | None = None,
    gate: LeafGate | None = None,
    catalog: DiseaseCatalog | None = None,
    selector: RecordSelector | None = None,
    gateway: VisionGatewayClient | None = None,
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    cors_origins: Sequence[str] = ("*",),
) -> FastAPI:
    root = root_dir or Path("data/dashboard")
    dashboard_store = FileSystemDashboardStore(root=root)
    selected_gate = gate or LeafLikenessGate()
    disease_catalog = catalog or default_catalog()
    picker = DiseasePicker(catalog=disease_catalog, selector=selector)
    service = DetectionService(
        gate=selected_gate,
        picker=picker,
        max_image_bytes=max_image_bytes,
    )

    app = FastAPI(title="WheatGuard API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.gate = selected_gate
    app.state.catalog = disease_catalog
    app.state.picker = picker
    app.state.service = service
    app.state.gateway = gateway
    app.state.dashboard_store = dashboard_store

    logger.info(
        "API server initialised gate=%s catalog=%d selector=%s gateway=%s dashboard_root=%s",
        selected_gate.__class__.__name__,
        len(disease_catalog),
        selector.__class__.__name__ if selector is not None else "auto",
        "configured" if gateway is not None else "none",
        dashboard_store.root,
    )

    @app.get("/health", response_model=dict[str, str])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/detect", response_model=DetectionResponse)
    async def detect(request: DetectionRequest) -> DetectionResponse:
        logger.info(
            "Detect request filename=%s payload_chars=%d",
            request.filename,
            len(request.image_base64 or ""),
        )
        try:
            result = await service.process_upload(request.model_dump())
        except ImageTooLarge as exc:
            raise HTTPException(status_code=413, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return DetectionResponse(**result)

    @app.post("/v1/analyze-wheat-disease")
    async def analyze_wheat_disease(request: Request) -> JSONResponse:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_BYTES:
            return _error(413, "Request too large. Maximum size is 10MB")

        try:
            body: Any = await request.json()
        except ValueError:
            return _error(400, "No image provided")
        payload = AnalyzeRequest.model_validate(body if isinstance(body, dict) else {})

        error = validate_image_data_url(payload.image_base64)
        if error is not None:
            return _error(400, error)

        client: VisionGatewayClient | None = app.state.gateway
        if client is None or not client.api_key:
            logger.error("AI gateway API key is not configured")
            return _error(500, "AI service not configured")

        logger.info("Analyzing wheat image via AI gateway model=%s", client.model)
        try:
            result = await asyncio.to_thread(client.analyze, payload.image_base64)
        except GatewayError as exc:
            logger.error("AI gateway analysis failed: %s", exc)
            return _error(exc.status_code, exc.public_message)
        except Exception as exc:  # pragma: no cover - surfaced via HTTP
            logger.exception("Unexpected error in analyze-wheat-disease: %s", exc)
            return _error(500, str(exc) or "Unknown error")

        logger.info("Analysis result: %s", result)
        return JSONResponse(content=result)

    register_dashboards(app)

    return app


__all__ = ["create_app"]
