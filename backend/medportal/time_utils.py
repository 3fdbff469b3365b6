from datetime import date, datetime
from typing import Optional


def format_appointment_time(value: str) -> str:
    """'14:30' -> '2:30 PM'. Anything that is not 24-hour HH:MM comes back unchanged."""
    if not isinstance(value, str):
        return value
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        return value
    hour = parsed.hour % 12 or 12
    suffix = "AM" if parsed.hour < 12 else "PM"
    return f"{hour}:{parsed.minute:02d} {suffix}"


def format_appointment_date(value: str) -> str:
    """'2024-06-03' -> 'Jun 3, 2024'. Malformed dates pass through unmodified."""
    if not isinstance(value, str):
        return value
    try:
        parsed = date.fromisoformat(value.strip()[:10])
    except ValueError:
        return value
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"


def parse_iso_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def greeting_for(hour: int) -> str:
    if hour < 12:
        return "Good morning"
    if hour < 18:
        return "Good afternoon"
    return "Good evening"
