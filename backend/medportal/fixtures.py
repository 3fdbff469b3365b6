"""
Fixed demo accounts and the static per-role dashboard fixture.

The fixture is what dashboards show when the persistence service is not
configured, when the session is a demo session, and when a live query fails.
"""

from dataclasses import dataclass

from medportal.roles import Role


@dataclass(frozen=True)
class DemoAccount:
    id: str
    email: str
    password: str
    role: Role
    name: str
    avatar: str = ""


DEMO_ACCOUNTS: tuple[DemoAccount, ...] = (
    DemoAccount("demo-admin-1", "admin@quantum.med", "admin123", Role.ADMIN, "Admin User"),
    DemoAccount("demo-doctor-1", "doctor@quantum.med", "doctor123", Role.DOCTOR, "Dr. Sarah Johnson"),
    DemoAccount("demo-specialist-1", "specialist@quantum.med", "specialist123", Role.SPECIALIST, "Dr. Robert Chen"),
    DemoAccount("demo-radiologist-4", "radiologist@quantum.med", "radiologist123", Role.RADIOLOGIST, "Dr. Emily Wong"),
    DemoAccount("demo-receptionist-1", "receptionist@quantum.med", "receptionist123", Role.RECEPTIONIST, "Jessica Miller"),
    DemoAccount("demo-patient-user-1", "patient@quantum.med", "patient123", Role.PATIENT, "Michael Brown"),
)

DEMO_ACCOUNT_IDS = frozenset(account.id for account in DEMO_ACCOUNTS)


def is_demo_user(session) -> bool:
    """Demo sessions and the fixed demo accounts always work against sample data,
    even when the demo profiles were seeded into a configured store."""
    return session.is_demo or session.id in DEMO_ACCOUNT_IDS


DEMO_PATIENTS: tuple[dict, ...] = (
    {
        "id": "demo-patient-1",
        "profile_id": "demo-patient-user-1",
        "name": "John Michael Smith",
        "date_of_birth": "1975-03-15",
        "gender": "Male",
        "condition": "Chronic severe headaches with neurological symptoms",
        "status": "Scheduled",
        "appointment_date": "2024-06-03",
        "assigned_doctor_id": "demo-doctor-1",
        "needs_scan": True,
    },
    {
        "id": "demo-patient-2",
        "profile_id": None,
        "name": "Sarah Elizabeth Davis",
        "date_of_birth": "1982-07-22",
        "gender": "Female",
        "condition": "Chronic lower back pain with radiculopathy",
        "status": "In Progress",
        "appointment_date": "2024-06-02",
        "assigned_doctor_id": "demo-doctor-1",
        "needs_scan": True,
    },
    {
        "id": "demo-patient-3",
        "profile_id": None,
        "name": "Michael Robert Johnson",
        "date_of_birth": "1990-11-08",
        "gender": "Male",
        "condition": "Sports-related knee injury with suspected meniscal tear",
        "status": "Completed",
        "appointment_date": "2024-05-28",
        "assigned_doctor_id": "demo-specialist-1",
        "needs_scan": True,
    },
)

DEMO_APPOINTMENTS: tuple[dict, ...] = (
    {
        "id": "demo-appointment-1",
        "patient_id": "demo-patient-1",
        "doctor_id": "demo-doctor-1",
        "patient_name": "John Michael Smith",
        "appointment_date": "2024-06-03",
        "appointment_time": "09:00",
        "type": "Neurology Consultation",
        "status": "Scheduled",
        "notes": "Post-MRI consultation to discuss brain scan findings and treatment plan",
    },
    {
        "id": "demo-appointment-2",
        "patient_id": "demo-patient-2",
        "doctor_id": "demo-doctor-1",
        "patient_name": "Sarah Elizabeth Davis",
        "appointment_date": "2024-06-02",
        "appointment_time": "14:30",
        "type": "Orthopedic Follow-up",
        "status": "In Progress",
        "notes": "Review lumbar MRI results and discuss treatment options",
    },
)

DEMO_SCANS: tuple[dict, ...] = (
    {
        "id": "demo-scan-1",
        "patient_id": "demo-patient-1",
        "radiologist_id": "demo-radiologist-4",
        "scan_type": "Brain MRI T1 with Gadolinium",
        "scan_date": "2024-06-01",
        "image_url": "https://images.unsplash.com/photo-1559757148-5c350d0d3c56?w=800&h=600",
        "notes": "Routine brain MRI for chronic headache evaluation. Patient reports worsening symptoms over 6 months.",
        "ai_processed": True,
        "patient_name": "John Michael Smith",
        "patient_condition": "Chronic severe headaches with neurological symptoms",
    },
    {
        "id": "demo-scan-2",
        "patient_id": "demo-patient-2",
        "radiologist_id": "demo-radiologist-4",
        "scan_type": "Lumbar Spine MRI",
        "scan_date": "2024-05-30",
        "image_url": "https://images.unsplash.com/photo-1576091160399-112ba8d25d1f?w=800&h=600",
        "notes": "MRI lumbar spine without contrast for chronic lower back pain and radicular symptoms.",
        "ai_processed": False,
        "patient_name": "Sarah Elizabeth Davis",
        "patient_condition": "Chronic lower back pain with radiculopathy",
    },
    {
        "id": "demo-scan-3",
        "patient_id": "demo-patient-3",
        "radiologist_id": "demo-radiologist-4",
        "scan_type": "Knee MRI",
        "scan_date": "2024-05-28",
        "image_url": "https://images.unsplash.com/photo-1559757175-0eb30cd8c063?w=800&h=600",
        "notes": "MRI right knee without contrast for suspected meniscal tear and ligament injury assessment.",
        "ai_processed": True,
        "patient_name": "Michael Robert Johnson",
        "patient_condition": "Sports-related knee injury with suspected meniscal tear",
    },
)

DEMO_ANALYSIS = {
    "assessment": "AI analysis completed successfully. High quality scan with good contrast resolution.",
    "abnormalities": "Minor degenerative changes consistent with normal aging process.",
    "diagnosis": "No significant pathology detected",
    "recommendations": "Routine follow-up in 6-12 months if symptoms persist.",
    "follow_up": None,
    "tumor_details": {"tumor_type": None, "size": None, "location": None, "grade": None, "malignancy": None},
    "confidence_score": 0.78,
}


def find_demo_account(email: str, password: str):
    for account in DEMO_ACCOUNTS:
        if account.email == email and account.password == password:
            return account
    return None


def dashboard_fixture(role: Role) -> tuple[list[dict], list[dict]]:
    """Static (recent patients, upcoming appointments) rows for a role."""
    patients = [dict(p) for p in DEMO_PATIENTS]
    appointments = [dict(a) for a in DEMO_APPOINTMENTS]
    if role is Role.RADIOLOGIST:
        return [p for p in patients if p["needs_scan"]], appointments
    if role is Role.PATIENT:
        own = [p for p in patients if p["id"] == "demo-patient-1"]
        return own, [a for a in appointments if a["patient_id"] == "demo-patient-1"]
    return patients, appointments
