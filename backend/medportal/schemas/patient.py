from pydantic import BaseModel, Field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class PatientStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    WAITING = "Waiting"


class PatientRegistrationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    date_of_birth: date
    gender: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    condition: str = Field(..., min_length=1)
    medical_history: Optional[str] = None
    appointment_date: date
    status: PatientStatus = PatientStatus.SCHEDULED
    needs_scan: bool = False
    assigned_doctor_id: Optional[str] = None
    registration_notes: Optional[str] = None


class PatientResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    condition: Optional[str] = None
    medical_history: Optional[str] = None
    status: Optional[str] = None
    appointment_date: Optional[date] = None
    assigned_doctor_id: Optional[str] = None
    needs_scan: bool = False
    created_at: Optional[datetime] = None


class PatientListResponse(BaseModel):
    patients: list[PatientResponse]
    total: int
