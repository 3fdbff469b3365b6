from typing import Optional

from fastapi import APIRouter, Depends, Query

from medportal.auth import Session
from medportal.authorization import require_roles
from medportal.roles import Role
from medportal.schemas.patient import PatientListResponse, PatientRegistrationCreate, PatientResponse
from medportal.services.registration_service import PatientRegistrationService
from medportal.store import RecordStore, get_store

router = APIRouter()


@router.get("", response_model=PatientListResponse)
async def list_patients(
    needs_scan: Optional[bool] = Query(None, description="Only patients awaiting (or not awaiting) a scan"),
    limit: int = Query(50, ge=1, le=200),
    session: Session = Depends(require_roles(Role.RECEPTIONIST, Role.RADIOLOGIST)),
    store: RecordStore = Depends(get_store),
):
    rows = await PatientRegistrationService(store).list_patients(session, needs_scan=needs_scan, limit=limit)
    return PatientListResponse(patients=[PatientResponse(**row) for row in rows], total=len(rows))


@router.post("", status_code=201)
async def register_patient(
    body: PatientRegistrationCreate,
    session: Session = Depends(require_roles(Role.RECEPTIONIST)),
    store: RecordStore = Depends(get_store),
):
    """Register a patient; open dashboards refresh through the change feed."""
    service = PatientRegistrationService(store)
    patient = await service.register_patient(session, body)
    return {
        "success": True,
        "patient": PatientResponse(**patient),
        "notifications": [n.to_dict() for n in service.notifier.drain()],
    }
