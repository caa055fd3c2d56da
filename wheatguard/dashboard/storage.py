from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional


logger = logging.getLogger(__name__)


class ReportStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    VERIFIED = "verified"
    RESOLVED = "resolved"

    @classmethod
    def parse(cls, value: "str | ReportStatus") -> "ReportStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(status.value for status in cls)
            raise ValueError(f"Unknown report status {value!r}; expected one of {allowed}") from exc


@dataclass(frozen=True)
class DiseaseReport:
    id: str
    farmer_id: str
    symptoms: str
    location: str
    status: ReportStatus
    created_at: datetime
    ai_prediction: str | None = None
    ai_confidence: float | None = None
    severity: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        payload["created_at"] = self.created_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiseaseReport":
        confidence = data.get("ai_confidence")
        return cls(
            id=str(data["id"]),
            farmer_id=str(data["farmer_id"]),
            symptoms=str(data.get("symptoms", "")),
            location=str(data.get("location") or ""),
            status=ReportStatus.parse(data.get("status", ReportStatus.PENDING)),
            created_at=_parse_timestamp(data.get("created_at")),
            ai_prediction=data.get("ai_prediction"),
            ai_confidence=float(confidence) if confidence is not None else None,
            severity=data.get("severity"),
        )


@dataclass(frozen=True)
class ResearchUpdate:
    id: str
    researcher_id: str
    title: str
    is_verified: bool
    created_at: datetime
    disease_report_id: str | None = None
    disease_name: str | None = None
    symptoms: str | None = None
    cause: str | None = None
    treatment: str | None = None
    preventive_measures: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = self.created_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResearchUpdate":
        return cls(
            id=str(data["id"]),
            researcher_id=str(data["researcher_id"]),
            title=str(data.get("title", "")),
            is_verified=bool(data.get("is_verified", False)),
            created_at=_parse_timestamp(data.get("created_at")),
            disease_report_id=data.get("disease_report_id"),
            disease_name=data.get("disease_name"),
            symptoms=data.get("symptoms"),
            cause=data.get("cause"),
            treatment=data.get("treatment"),
            preventive_measures=data.get("preventive_measures"),
        )


class FileSystemDashboardStore:
    """Store dashboard rows as one JSON document per record."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._reports_dir = root / "disease_reports"
        self._updates_dir = root / "research_updates"
        self._reports_dir.mkdir(parents=True, exist_ok=True)
        self._updates_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def submit_report(
        self,
        farmer_id: str,
        symptoms: str,
        location: str = "",
        *,
        ai_prediction: str | None = None,
        ai_confidence: float | None = None,
        severity: str | None = None,
        created_at: datetime | None = None,
    ) -> DiseaseReport:
        if not symptoms or not symptoms.strip():
            raise ValueError("Symptoms are required to submit a report")
        report = DiseaseReport(
            id=_new_id(),
            farmer_id=farmer_id,
            symptoms=symptoms.strip(),
            location=(location or "").strip(),
            status=ReportStatus.PENDING,
            created_at=_utc(created_at),
            ai_prediction=ai_prediction,
            ai_confidence=ai_confidence,
            severity=severity,
        )
        with self._lock:
            self._write(self._reports_dir, report.id, report.to_dict())
        logger.info("Disease report submitted id=%s farmer=%s", report.id, farmer_id)
        return report

    def get_report(self, report_id: str) -> DiseaseReport:
        with self._lock:
            return DiseaseReport.from_dict(self._read(self._reports_dir, report_id))

    def list_reports(
        self,
        farmer_id: str | None = None,
        status: "str | ReportStatus | None" = None,
    ) -> List[DiseaseReport]:
        wanted = ReportStatus.parse(status) if status is not None else None
        with self._lock:
            reports = [DiseaseReport.from_dict(data) for data in self._iter(self._reports_dir)]
        if farmer_id is not None:
            reports = [report for report in reports if report.farmer_id == farmer_id]
        if wanted is not None:
            reports = [report for report in reports if report.status is wanted]
        reports.sort(key=lambda report: report.created_at, reverse=True)
        return reports

    def update_report_status(
        self, report_id: str, status: "str | ReportStatus"
    ) -> DiseaseReport:
        new_status = ReportStatus.parse(status)
        with self._lock:
            report = DiseaseReport.from_dict(self._read(self._reports_dir, report_id))
            updated = replace(report, status=new_status)
            self._write(self._reports_dir, report_id, updated.to_dict())
        logger.info(
            "Report status updated id=%s %s -> %s",
            report_id,
            report.status.value,
            new_status.value,
        )
        return updated

    def publish_update(
        self,
        researcher_id: str,
        title: str,
        *,
        disease_report_id: str | None = None,
        disease_name: str | None = None,
        symptoms: str | None = None,
        cause: str | None = None,
        treatment: str | None = None,
        preventive_measures: str | None = None,
        created_at: datetime | None = None,
    ) -> ResearchUpdate:
        if not title or not title.strip():
            raise ValueError("A title is required to publish an update")
        if disease_report_id is not None:
            # Fail before writing anything if the linked report is unknown.
            self.get_report(disease_report_id)
        update = ResearchUpdate(
            id=_new_id(),
            researcher_id=researcher_id,
            title=title.strip(),
            is_verified=True,
            created_at=_utc(created_at),
            disease_report_id=disease_report_id,
            disease_name=_blank_to_none(disease_name),
            symptoms=_blank_to_none(symptoms),
            cause=_blank_to_none(cause),
            treatment=_blank_to_none(treatment),
            preventive_measures=_blank_to_none(preventive_measures),
        )
        with self._lock:
            self._write(self._updates_dir, update.id, update.to_dict())
        logger.info(
            "Research update published id=%s researcher=%s report=%s",
            update.id,
            researcher_id,
            disease_report_id,
        )
        if disease_report_id is not None:
            self.update_report_status(disease_report_id, ReportStatus.VERIFIED)
        return update

    def list_updates(
        self,
        researcher_id: str | None = None,
        *,
        verified_only: bool = False,
        limit: int | None = None,
    ) -> List[ResearchUpdate]:
        with self._lock:
            updates = [ResearchUpdate.from_dict(data) for data in self._iter(self._updates_dir)]
        if researcher_id is not None:
            updates = [update for update in updates if update.researcher_id == researcher_id]
        if verified_only:
            updates = [update for update in updates if update.is_verified]
        updates.sort(key=lambda update: update.created_at, reverse=True)
        if limit is not None:
            updates = updates[: max(0, limit)]
        return updates

    def report_stats(self) -> Dict[str, int]:
        reports = self.list_reports()
        stats = {status.value: 0 for status in ReportStatus}
        for report in reports:
            stats[report.status.value] += 1
        stats["total"] = len(reports)
        return stats

    def _write(self, directory: Path, record_id: str, payload: Dict[str, Any]) -> None:
        path = directory / f"{record_id}.json"
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp_path.replace(path)

    def _read(self, directory: Path, record_id: str) -> Dict[str, Any]:
        path = directory / f"{_safe_id(record_id)}.json"
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise KeyError(record_id) from exc

    def _iter(self, directory: Path) -> Iterator[Dict[str, Any]]:
        for path in sorted(directory.glob("*.json")):
            try:
                yield json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable dashboard record %s", path)


def _new_id() -> str:
    return uuid.uuid4().hex


def _safe_id(record_id: str) -> str:
    candidate = str(record_id)
    if not candidate or not all(ch.isalnum() or ch in "-_" for ch in candidate):
        raise KeyError(record_id)
    return candidate


def _utc(value: datetime | None) -> datetime:
    return (value or datetime.now(tz=timezone.utc)).astimezone(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


__all__ = [
    "DiseaseReport",
    "FileSystemDashboardStore",
    "ReportStatus",
    "ResearchUpdate",
]
