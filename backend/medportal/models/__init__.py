from medportal.models.profile import Profile
from medportal.models.patient import Patient, PatientRegistration
from medportal.models.appointment import Appointment
from medportal.models.mri_scan import MriScan, AiResult
from medportal.models.audit_log import AuditLog

__all__ = ["Profile", "Patient", "PatientRegistration", "Appointment", "MriScan", "AiResult",
           "AuditLog"]
