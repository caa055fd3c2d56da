from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DetectionRequest(BaseModel):
    image_base64: str = Field(..., description="Base64 encoded image or data URL")
    filename: str | None = Field(default=None, description="Original upload name")


class DiseaseModel(BaseModel):
    disease_name: str
    severity: str
    confidence: float
    treatment: str
    prevention: str


class DetectionResponse(BaseModel):
    accepted: bool
    analyzed: bool
    code: str | None = None
    reason: str | None = None
    disease: DiseaseModel | None = None
    reproducible: bool | None = None


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_base64: Any = Field(default=None, alias="imageBase64")


class DiseaseReportPayload(BaseModel):
    symptoms: str = Field(..., description="Farmer's description of the symptoms")
    location: str = ""
    ai_prediction: Optional[str] = None
    ai_confidence: Optional[float] = Field(default=None, ge=0, le=100)
    severity: Optional[str] = None


class StatusUpdatePayload(BaseModel):
    status: str


class ResearchUpdatePayload(BaseModel):
    title: str
    disease_report_id: Optional[str] = None
    disease_name: Optional[str] = None
    symptoms: Optional[str] = None
    cause: Optional[str] = None
    treatment: Optional[str] = None
    preventive_measures: Optional[str] = None


__all__ = [
    "AnalyzeRequest",
    "DetectionRequest",
    "DetectionResponse",
    "DiseaseModel",
    "DiseaseReportPayload",
    "ResearchUpdatePayload",
    "StatusUpdatePayload",
]
