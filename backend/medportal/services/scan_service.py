"""Radiologist MRI scan intake and listing."""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog

from medportal.auth import Session
from medportal.exceptions import PortalError, RecordNotFound
from medportal.fixtures import DEMO_SCANS, is_demo_user
from medportal.notifications import Notifier
from medportal.schemas.scan import ScanCreate
from medportal.store import RecordStore

logger = structlog.get_logger(__name__)


class ScanService:
    def __init__(self, store: RecordStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or Notifier()

    def _uses_fixture(self, session: Session) -> bool:
        return is_demo_user(session) or not self.store.is_configured

    async def list_scans(self, session: Session, limit: int = 50) -> list[dict]:
        """Scans newest first, each carrying its patient's name and condition."""
        if self._uses_fixture(session):
            return [dict(s) for s in DEMO_SCANS][:limit]

        scans = await self.store.select("mri_scans", order_by=[("created_at", True)], limit=limit)
        patients: dict[str, Optional[dict]] = {}
        for scan in scans:
            patient_id = scan.get("patient_id")
            if patient_id and patient_id not in patients:
                patients[patient_id] = await self.store.get("patients", patient_id)
            patient = patients.get(patient_id) or {}
            scan["patient_name"] = patient.get("name")
            scan["patient_condition"] = patient.get("condition")
        return scans

    async def create_scan(self, session: Session, data: ScanCreate) -> dict:
        values = {
            "patient_id": data.patient_id,
            "radiologist_id": session.id,
            "image_url": data.image_url,
            "scan_date": data.scan_date,
            "scan_type": data.scan_type,
            "notes": data.notes,
            "ai_processed": False,
        }
        if self._uses_fixture(session):
            scan = dict(values, id=f"demo-scan-{uuid.uuid4().hex[:8]}")
            scan["scan_date"] = data.scan_date.isoformat()
            scan["created_at"] = datetime.now(timezone.utc).isoformat()
            logger.info("scan_uploaded_demo", scan_id=scan["id"])
            self.notifier.success("Scan Uploaded", "Demo scan added. Changes are not saved.")
            return scan

        try:
            if data.patient_id and await self.store.get("patients", data.patient_id) is None:
                raise RecordNotFound(f"Patient '{data.patient_id}' not found")
            scan = await self.store.insert("mri_scans", values)
        except PortalError as e:
            logger.warning("scan_upload_failed", reason=e.reason)
            self.notifier.failure("Upload Failed", "Failed to upload scan. Please try again.")
            raise
        logger.info("scan_uploaded", scan_id=scan["id"], radiologist_id=session.id)
        self.notifier.success("Scan Uploaded", "MRI scan uploaded successfully.")
        return scan
