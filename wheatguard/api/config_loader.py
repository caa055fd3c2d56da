"""JSON configuration for the WheatGuard server.

Configuration lives in ``config/wheatguard.json`` (see
``config/wheatguard.example.json``). Every key is optional; anything missing
keeps the default declared on the dataclasses below. Secrets are never stored
in the file, only the names of the environment variables that hold them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from ..ai.leaf_gate import GateThresholds

logger = logging.getLogger(__name__)


@dataclass
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class StorageSettings:
    dashboard_root: str = "data/dashboard"


@dataclass
class ThresholdSettings:
    min_considered: int = 400
    min_leaf_score: float = 0.42
    min_green_score: float = 0.26
    max_blue_score: float = 0.25
    max_neutral_score: float = 0.7

    def to_thresholds(self) -> GateThresholds:
        return GateThresholds(
            min_considered=int(self.min_considered),
            min_leaf_score=float(self.min_leaf_score),
            min_green_score=float(self.min_green_score),
            max_blue_score=float(self.max_blue_score),
            max_neutral_score=float(self.max_neutral_score),
        )


@dataclass
class DetectionSettings:
    max_image_bytes: int = 10 * 1024 * 1024
    canvas_width: int = 96
    canvas_height: int = 96
    thresholds: ThresholdSettings = field(default_factory=ThresholdSettings)


@dataclass
class GatewaySettings:
    api_key_env: str = "LOVABLE_API_KEY"
    model: str = "google/gemini-2.5-flash"
    base_url: str = "https://ai.gateway.lovable.dev/v1"
    timeout: float = 60.0


@dataclass
class AppConfig:
    server: ServerSettings = field(default_factory=ServerSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    gateway: GatewaySettings = field(default_factory=GatewaySettings)


def _apply(target: Any, data: Any, section: str) -> None:
    if not isinstance(data, dict):
        if data is not None:
            logger.warning("Ignoring non-object config section %s", section)
        return
    known = {f.name: f for f in fields(target)}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %s.%s", section, key)
            continue
        current = getattr(target, key)
        if hasattr(current, "__dataclass_fields__"):
            _apply(current, value, f"{section}.{key}")
        else:
            setattr(target, key, value)


def load_config(path: str | Path | None) -> AppConfig:
    """Load configuration from ``path``; ``None`` returns the defaults.

    Raises ``FileNotFoundError`` for a missing file and ``ValueError`` for
    malformed JSON so the caller can decide whether to fall back.
    """
    config = AppConfig()
    if path is None:
        return config

    config_path = Path(path)
    content = config_path.read_text(encoding="utf-8")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root in {config_path} must be an object")

    for section in ("server", "storage", "detection", "gateway"):
        _apply(getattr(config, section), data.get(section), section)
    logger.info("Loaded configuration from %s", config_path)
    return config


__all__ = [
    "AppConfig",
    "DetectionSettings",
    "GatewaySettings",
    "ServerSettings",
    "StorageSettings",
    "ThresholdSettings",
    "load_config",
]
