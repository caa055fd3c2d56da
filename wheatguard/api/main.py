from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from .config_loader import AppConfig, load_config
from .server import create_app
from ..ai.gateway_client import VisionGatewayClient
from ..ai.leaf_gate import LeafLikenessGate

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser with minimal CLI flags.

    Most configuration is loaded from config/wheatguard.json.
    CLI flags are only for quick overrides.
    """
    parser = argparse.ArgumentParser(
        description="Run the WheatGuard API server",
        epilog="Configuration is loaded from config/wheatguard.json. "
               "CLI arguments override config file settings."
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/wheatguard.json",
        help="Path to JSON configuration file (default: config/wheatguard.json)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Override server host (default: from config file)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override server port (default: from config file)"
    )
    return parser


def build_gateway(cfg: AppConfig) -> VisionGatewayClient | None:
    key = os.environ.get(cfg.gateway.api_key_env)
    if not key:
        logger.warning(
            "Environment variable %s is not set; /v1/analyze-wheat-disease will report the AI service as not configured",
            cfg.gateway.api_key_env,
        )
        return None
    return VisionGatewayClient(
        api_key=key,
        model=cfg.gateway.model,
        base_url=cfg.gateway.base_url,
        timeout=cfg.gateway.timeout,
    )


def main() -> None:
    load_dotenv()
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s"
        )
    args = build_parser().parse_args()

    config_path = Path(args.config)
    try:
        cfg = load_config(config_path if config_path.exists() else None)
    except Exception as exc:
        logger.error("Failed to load configuration %s: %s", config_path, exc)
        sys.exit(1)
    if not config_path.exists():
        logger.info(
            "Configuration file %s not found; using defaults. Copy config/wheatguard.example.json to get started",
            config_path,
        )

    if args.host:
        cfg.server.host = args.host
    if args.port:
        cfg.server.port = args.port

    logger.info("Server configuration: %s:%d", cfg.server.host, cfg.server.port)
    logger.info("Dashboard root: %s", cfg.storage.dashboard_root)

    gate = LeafLikenessGate(
        canvas_size=(cfg.detection.canvas_width, cfg.detection.canvas_height),
        thresholds=cfg.detection.thresholds.to_thresholds(),
    )
    app = create_app(
        Path(cfg.storage.dashboard_root),
        gate=gate,
        gateway=build_gateway(cfg),
        max_image_bytes=cfg.detection.max_image_bytes,
        cors_origins=cfg.server.cors_origins,
    )

    try:
        uvicorn.run(
            app,
            host=cfg.server.host,
            port=cfg.server.port,
            log_level="info",
            timeout_graceful_shutdown=1,
        )
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received during shutdown")


if __name__ == "__main__":
    main()
