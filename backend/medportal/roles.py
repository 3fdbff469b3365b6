from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    SPECIALIST = "specialist"
    RADIOLOGIST = "radiologist"
    RECEPTIONIST = "receptionist"
    PATIENT = "patient"


ALL_ROLES = frozenset(Role)

# Audience of cross-cutting staff features such as messaging.
CLINICAL_STAFF = frozenset({Role.ADMIN, Role.DOCTOR, Role.SPECIALIST, Role.RADIOLOGIST})

CLINICIAN_ROLES = frozenset({Role.DOCTOR, Role.SPECIALIST})


def parse_role(value) -> Role:
    """Coerce a stored role string. Raises ValueError for anything outside the enum."""
    if isinstance(value, Role):
        return value
    return Role(str(value).strip().lower())
