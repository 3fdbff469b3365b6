from sqlalchemy import Column, String, Text, Date, DateTime, Boolean, Float, ForeignKey
from medportal.database import Base
from medportal.models._common import new_id, utcnow


class MriScan(Base):
    __tablename__ = "mri_scans"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), index=True)
    radiologist_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    image_url = Column(Text, nullable=False)
    scan_date = Column(Date)
    scan_type = Column(String(200), nullable=False)
    notes = Column(Text)
    ai_processed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AiResult(Base):
    __tablename__ = "ai_results"

    id = Column(String(36), primary_key=True, default=new_id)
    mri_scan_id = Column(String(36), ForeignKey("mri_scans.id"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), index=True)
    diagnosis = Column(Text, nullable=False)
    confidence_score = Column(Float, nullable=False)
    areas_of_concern = Column(Text)
    recommendations = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
