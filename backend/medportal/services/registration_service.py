"""Receptionist patient registration."""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog

from medportal.auth import Session
from medportal.exceptions import PortalError, RegistrationFailed
from medportal.fixtures import DEMO_PATIENTS, is_demo_user
from medportal.notifications import Notifier
from medportal.schemas.patient import PatientRegistrationCreate
from medportal.store import RecordStore

logger = structlog.get_logger(__name__)

PATIENT_FIELDS = (
    "name",
    "email",
    "date_of_birth",
    "gender",
    "contact_number",
    "address",
    "condition",
    "medical_history",
    "appointment_date",
    "status",
    "needs_scan",
    "assigned_doctor_id",
)


class PatientRegistrationService:
    def __init__(self, store: RecordStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or Notifier()

    async def register_patient(self, session: Session, data: PatientRegistrationCreate) -> dict:
        """Insert the patient, then the registration record naming who registered them."""
        values = {field: getattr(data, field) for field in PATIENT_FIELDS}
        values["name"] = values["name"].strip()
        values["status"] = data.status.value
        if is_demo_user(session) or not self.store.is_configured:
            patient = dict(values, id=f"demo-patient-{uuid.uuid4().hex[:8]}", profile_id=None)
            for key in ("date_of_birth", "appointment_date"):
                patient[key] = patient[key].isoformat()
            patient["created_at"] = datetime.now(timezone.utc).isoformat()
            logger.info("patient_registered_demo", patient_id=patient["id"])
            self.notifier.success("Patient Registered", "Demo patient added. Changes are not saved.")
            return patient

        try:
            patient = await self.store.insert("patients", values)
        except PortalError as e:
            logger.warning("patient_registration_failed", reason=e.reason, registered_by=session.id)
            self.notifier.failure("Registration Failed", "Failed to register patient. Please try again.")
            raise RegistrationFailed("Failed to register patient", e.details) from e

        try:
            await self.store.insert(
                "patient_registrations",
                {
                    "patient_id": patient["id"],
                    "registered_by": session.id,
                    "notes": data.registration_notes,
                },
            )
        except PortalError as e:
            # The patient row stands; only the registration trail is missing.
            logger.error("patient_registration_record_failed", patient_id=patient["id"], reason=e.reason)

        logger.info("patient_registered", patient_id=patient["id"], registered_by=session.id)
        self.notifier.success("Patient Registered", f"{patient['name']} has been registered successfully.")
        return patient

    async def list_patients(self, session: Session, needs_scan: Optional[bool] = None, limit: int = 50) -> list[dict]:
        if is_demo_user(session) or not self.store.is_configured:
            rows = [dict(p) for p in DEMO_PATIENTS]
            if needs_scan is not None:
                rows = [p for p in rows if p["needs_scan"] is needs_scan]
            return rows[:limit]
        eq = {} if needs_scan is None else {"needs_scan": needs_scan}
        return await self.store.select("patients", eq=eq, order_by=[("created_at", True)], limit=limit)
