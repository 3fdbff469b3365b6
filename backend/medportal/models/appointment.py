from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey
from medportal.database import Base
from medportal.models._common import new_id, utcnow


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    patient_name = Column(String(200), nullable=False)
    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(String(5), nullable=False)  # 24-hour "HH:MM"
    type = Column(String(200))
    status = Column(String(20), default="Scheduled")  # Scheduled | In Progress | Completed | Cancelled
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
