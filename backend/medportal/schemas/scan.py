from pydantic import BaseModel, Field
from datetime import date
from typing import Optional


class ScanCreate(BaseModel):
    scan_type: str = Field(..., min_length=1)
    scan_date: date
    image_url: str = Field(..., min_length=1)
    patient_id: Optional[str] = None
    notes: Optional[str] = None


class ScanResponse(BaseModel):
    id: str
    patient_id: Optional[str] = None
    radiologist_id: Optional[str] = None
    scan_type: str
    scan_date: Optional[str] = None
    image_url: str
    notes: Optional[str] = None
    ai_processed: bool = False
    patient_name: Optional[str] = None
    patient_condition: Optional[str] = None


class ScanAnalysisResult(BaseModel):
    id: Optional[str] = None
    scan_id: str
    patient_id: Optional[str] = None
    diagnosis: str
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    areas_of_concern: str
    recommendations: str


class AnalysisResponse(BaseModel):
    success: bool = True
    reused: bool = False
    result: Optional[ScanAnalysisResult] = None
    analysis: dict
