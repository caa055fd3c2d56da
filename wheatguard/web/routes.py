from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from ..api.schemas import (
    DiseaseReportPayload,
    ResearchUpdatePayload,
    StatusUpdatePayload,
)
from ..dashboard.storage import FileSystemDashboardStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["dashboard"])

_ALLOWED_ROLES = {"farmer", "researcher"}
_FARMER_UPDATE_LIMIT = 10


@dataclass(frozen=True)
class UserIdentity:
    user_id: str
    role: str


def current_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> UserIdentity:
    user_id = (x_user_id or "").strip()
    role = (x_user_role or "").strip().lower()
    if not user_id or role not in _ALLOWED_ROLES:
        raise HTTPException(status_code=401, detail="Authenticated user required")
    return UserIdentity(user_id=user_id, role=role)


def _require_role(role: str):
    def dependency(identity: UserIdentity = Depends(current_identity)) -> UserIdentity:
        if identity.role != role:
            raise HTTPException(status_code=403, detail=f"{role.capitalize()} access only")
        return identity

    return dependency


require_farmer = _require_role("farmer")
require_researcher = _require_role("researcher")


def _store(request: Request) -> FileSystemDashboardStore:
    store = getattr(request.app.state, "dashboard_store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Dashboard storage unavailable")
    return store


@router.get("/farmer/reports")
async def farmer_reports(
    request: Request, identity: UserIdentity = Depends(require_farmer)
) -> List[dict[str, Any]]:
    reports = _store(request).list_reports(farmer_id=identity.user_id)
    return [report.to_dict() for report in reports]


@router.post("/farmer/reports", status_code=201)
async def submit_report(
    payload: DiseaseReportPayload,
    request: Request,
    identity: UserIdentity = Depends(require_farmer),
) -> dict[str, Any]:
    try:
        report = _store(request).submit_report(
            identity.user_id,
            payload.symptoms,
            payload.location,
            ai_prediction=payload.ai_prediction,
            ai_confidence=payload.ai_confidence,
            severity=payload.severity,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return report.to_dict()


@router.get("/farmer/updates")
async def farmer_updates(
    request: Request, identity: UserIdentity = Depends(require_farmer)
) -> List[dict[str, Any]]:
    updates = _store(request).list_updates(
        verified_only=True, limit=_FARMER_UPDATE_LIMIT
    )
    return [update.to_dict() for update in updates]


@router.get("/researcher/reports")
async def researcher_reports(
    request: Request,
    status: Optional[str] = Query(default=None),
    identity: UserIdentity = Depends(require_researcher),
) -> List[dict[str, Any]]:
    try:
        reports = _store(request).list_reports(status=status)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return [report.to_dict() for report in reports]


@router.get("/researcher/stats")
async def researcher_stats(
    request: Request, identity: UserIdentity = Depends(require_researcher)
) -> dict[str, int]:
    return _store(request).report_stats()


@router.post("/researcher/reports/{report_id}/status")
async def update_report_status(
    report_id: str,
    payload: StatusUpdatePayload,
    request: Request,
    identity: UserIdentity = Depends(require_researcher),
) -> dict[str, Any]:
    try:
        report = _store(request).update_report_status(report_id, payload.status)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Report not found") from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    logger.info(
        "Researcher %s marked report %s as %s",
        identity.user_id,
        report_id,
        report.status.value,
    )
    return report.to_dict()


@router.post("/researcher/updates", status_code=201)
async def publish_update(
    payload: ResearchUpdatePayload,
    request: Request,
    identity: UserIdentity = Depends(require_researcher),
) -> dict[str, Any]:
    try:
        update = _store(request).publish_update(
            identity.user_id,
            payload.title,
            disease_report_id=payload.disease_report_id or None,
            disease_name=payload.disease_name,
            symptoms=payload.symptoms,
            cause=payload.cause,
            treatment=payload.treatment,
            preventive_measures=payload.preventive_measures,
        )
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Linked report not found") from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return update.to_dict()


@router.get("/researcher/updates")
async def researcher_updates(
    request: Request, identity: UserIdentity = Depends(require_researcher)
) -> List[dict[str, Any]]:
    updates = _store(request).list_updates(researcher_id=identity.user_id)
    return [update.to_dict() for update in updates]


__all__ = ["router", "UserIdentity", "current_identity"]
