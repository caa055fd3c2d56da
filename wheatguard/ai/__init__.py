from __future__ import annotations

from .types import DiseaseRecord, GateDecision, LeafGate, RejectionCode, Severity

__all__ = [
    "DiseaseRecord",
    "GateDecision",
    "LeafGate",
    "RejectionCode",
    "Severity",
    "LeafLikenessGate",
    "GateThresholds",
    "DiseaseCatalog",
    "DiseasePicker",
    "VisionGatewayClient",
]


def __getattr__(name: str):
    if name in {"LeafLikenessGate", "GateThresholds"}:
        from . import leaf_gate

        return getattr(leaf_gate, name)
    if name == "DiseaseCatalog":
        from .catalog import DiseaseCatalog

        return DiseaseCatalog
    if name == "DiseasePicker":
        from .picker import DiseasePicker

        return DiseasePicker
    if name == "VisionGatewayClient":
        from .gateway_client import VisionGatewayClient

        return VisionGatewayClient
    raise AttributeError(f"module 'wheatguard.ai' has no attribute {name!r}")
