from sqlalchemy import Column, String, Text, Date, DateTime, Boolean, ForeignKey
from medportal.database import Base
from medportal.models._common import new_id, utcnow


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_id)
    profile_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    name = Column(String(200), nullable=False)
    date_of_birth = Column(Date)
    gender = Column(String(20))
    contact_number = Column(String(50))
    email = Column(String(200))
    address = Column(Text)
    medical_history = Column(Text)
    condition = Column(Text)
    status = Column(String(20), default="Scheduled")  # Scheduled | In Progress | Completed | Waiting
    appointment_date = Column(Date, index=True)
    assigned_doctor_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    needs_scan = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class PatientRegistration(Base):
    __tablename__ = "patient_registrations"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    registered_by = Column(String(36), nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
