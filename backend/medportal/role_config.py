"""Per-role dashboard configuration: one table instead of per-view branching."""

from dataclasses import dataclass

from medportal.roles import Role


@dataclass(frozen=True)
class StatCard:
    title: str
    value: str

    def to_dict(self) -> dict:
        return {"title": self.title, "value": self.value}


@dataclass(frozen=True)
class RoleDashboard:
    theme: str
    stat_cards: tuple[StatCard, ...]
    recent_title: str = "Recent Patients"
    upcoming_title: str = "Upcoming Appointments"


ROLE_DASHBOARDS: dict[Role, RoleDashboard] = {
    Role.ADMIN: RoleDashboard(
        theme="theme-admin",
        stat_cards=(
            StatCard("Total Users", "254"),
            StatCard("Active Sessions", "42"),
            StatCard("System Logs", "1,245"),
            StatCard("Analytics Score", "98%"),
        ),
    ),
    Role.DOCTOR: RoleDashboard(
        theme="theme-doctor",
        stat_cards=(
            StatCard("Active Patients", "28"),
            StatCard("Today's Appointments", "8"),
            StatCard("Pending Reports", "5"),
            StatCard("New Messages", "12"),
        ),
        recent_title="My Recent Patients",
    ),
    Role.SPECIALIST: RoleDashboard(
        theme="theme-specialist",
        stat_cards=(
            StatCard("Referrals", "15"),
            StatCard("Consultations", "7"),
            StatCard("Recommendations", "22"),
            StatCard("New Messages", "9"),
        ),
        recent_title="Referred Patients",
    ),
    Role.RADIOLOGIST: RoleDashboard(
        theme="theme-radiologist theme-dark",
        stat_cards=(
            StatCard("Pending Scans", "8"),
            StatCard("Completed Analysis", "42"),
            StatCard("AI Diagnoses", "36"),
            StatCard("New Messages", "5"),
        ),
        recent_title="Patients Awaiting Scans",
    ),
    Role.RECEPTIONIST: RoleDashboard(
        theme="theme-receptionist",
        stat_cards=(
            StatCard("Appointments Today", "24"),
            StatCard("Registered Patients", "156"),
            StatCard("New Registrations", "3"),
            StatCard("Messages", "15"),
        ),
    ),
    Role.PATIENT: RoleDashboard(
        theme="theme-patient",
        stat_cards=(
            StatCard("Upcoming Appointments", "2"),
            StatCard("Medical Reports", "8"),
            StatCard("Prescriptions", "3"),
            StatCard("Messages", "4"),
        ),
        recent_title="My Record",
        upcoming_title="My Appointments",
    ),
}
