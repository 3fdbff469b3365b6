from pydantic import BaseModel
from typing import Optional


class PatientSummary(BaseModel):
    id: str
    name: str
    condition: Optional[str] = None
    status: Optional[str] = None
    appointment_date: Optional[str] = None


class AppointmentSummary(BaseModel):
    id: str
    patient_name: str
    time: str
    date: str
    type: Optional[str] = None
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None


class StatCardOut(BaseModel):
    title: str
    value: str


class DashboardResponse(BaseModel):
    role: str
    greeting: str
    theme: str
    recent_title: str
    upcoming_title: str
    stat_cards: list[StatCardOut]
    recent_items: list[PatientSummary]
    upcoming_items: list[AppointmentSummary]
    source: str
    reason: Optional[str] = None
    notifications: list[dict] = []
