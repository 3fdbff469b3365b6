"""
Dashboard data resolution.

Sources are tried in a fixed order:
  1. live   - role-shaped queries against the persistence service
  2. fixture - static per-role data when the store is unconfigured or the
               session is a demo session
  3. mock   - the same static data when a live query raised
Each fallback logs a named reason. `resolve` never raises to its caller.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import structlog

from medportal.auth import Session
from medportal.config import Settings, get_settings
from medportal.fixtures import dashboard_fixture, is_demo_user
from medportal.notifications import Notifier
from medportal.role_config import ROLE_DASHBOARDS, StatCard
from medportal.roles import CLINICIAN_ROLES, Role
from medportal.schemas.dashboard import AppointmentSummary, PatientSummary
from medportal.session_state import SessionState
from medportal.store import ChangeEvent, RecordStore, Subscription
from medportal.time_utils import format_appointment_date, format_appointment_time, parse_iso_date

logger = structlog.get_logger(__name__)

WATCHED_COLLECTIONS = ("patients", "appointments")


class DataSource(str, Enum):
    LIVE = "live"
    FIXTURE = "fixture"
    MOCK = "mock"


class TierDeclined(Exception):
    """The live tier chose not to run; carries the tier to use instead."""

    def __init__(self, reason: str, source: DataSource = DataSource.FIXTURE):
        self.reason = reason
        self.source = source
        super().__init__(reason)


@dataclass
class DashboardData:
    role: Optional[Role]
    recent_items: list[PatientSummary]
    upcoming_items: list[AppointmentSummary]
    stat_cards: list[StatCard] = field(default_factory=list)
    source: DataSource = DataSource.LIVE
    reason: Optional[str] = None


def to_patient_summary(row: dict) -> PatientSummary:
    return PatientSummary(
        id=str(row["id"]),
        name=row["name"],
        condition=row.get("condition"),
        status=row.get("status"),
        appointment_date=row.get("appointment_date"),
    )


def to_appointment_summary(row: dict) -> AppointmentSummary:
    raw_date = row.get("appointment_date") or ""
    raw_time = row.get("appointment_time") or ""
    return AppointmentSummary(
        id=str(row["id"]),
        patient_name=row.get("patient_name") or "",
        time=format_appointment_time(raw_time),
        date=format_appointment_date(raw_date),
        type=row.get("type"),
        appointment_date=raw_date or None,
        appointment_time=raw_time or None,
    )


def _upcoming_key(row: dict):
    return (str(row.get("appointment_date") or ""), str(row.get("appointment_time") or ""))


class LiveQueryTier:
    """Role-shaped queries. Raises TierDeclined when live data must not be used."""

    def __init__(self, store: RecordStore, page_size: int):
        self.store = store
        self.page_size = page_size

    async def fetch(self, session: Session, today: date) -> tuple[list[dict], list[dict]]:
        if not self.store.is_configured:
            raise TierDeclined("persistence_unconfigured")
        if is_demo_user(session):
            raise TierDeclined("demo_session")

        recent_filter: dict = {}
        upcoming_filter: dict = {}
        recent = None

        if session.role in CLINICIAN_ROLES:
            recent_filter = {"assigned_doctor_id": session.id}
            upcoming_filter = {"doctor_id": session.id}
        elif session.role is Role.RADIOLOGIST:
            recent_filter = {"needs_scan": True}
        elif session.role is Role.PATIENT:
            record = await self._linked_patient(session)
            recent = [record]
            upcoming_filter = {"patient_id": record["id"]}

        if recent is None:
            recent = await self.store.select(
                "patients",
                eq=recent_filter,
                order_by=[("created_at", True)],
                limit=self.page_size,
            )
        upcoming = await self.store.select(
            "appointments",
            eq=upcoming_filter,
            gte={"appointment_date": today.isoformat()},
            order_by=[("appointment_date", False), ("appointment_time", False)],
            limit=self.page_size,
        )
        return recent, upcoming

    async def _linked_patient(self, session: Session) -> dict:
        rows = await self.store.select("patients", eq={"profile_id": session.id}, limit=1)
        if not rows:
            raise TierDeclined("patient_record_unlinked", DataSource.MOCK)
        return rows[0]


class DashboardResolver:
    def __init__(
        self,
        store: RecordStore,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.page_size = self.settings.dashboard_page_size
        self.store = store
        self.live = LiveQueryTier(store, self.page_size)
        self.notifier = notifier or Notifier()

    async def resolve(self, session: Optional[Session], today: Optional[date] = None) -> DashboardData:
        if session is None:
            return DashboardData(role=None, recent_items=[], upcoming_items=[], reason="no_session")
        today = today or date.today()
        try:
            recent, upcoming = await self.live.fetch(session, today)
            return self._build(session, recent, self._only_upcoming(upcoming, today), DataSource.LIVE)
        except TierDeclined as e:
            logger.info(
                "dashboard_tier_fallback",
                tier=e.source.value,
                reason=e.reason,
                role=session.role.value,
            )
            return self._fixture(session, e.source, e.reason)
        except Exception as e:
            logger.warning(
                "dashboard_tier_fallback",
                tier=DataSource.MOCK.value,
                reason="query_failed",
                role=session.role.value,
                error=str(e),
                exc_info=True,
            )
            self.notifier.notify(
                "Data unavailable",
                "Showing sample data while the records service is unreachable.",
            )
            return self._fixture(session, DataSource.MOCK, "query_failed")

    def _only_upcoming(self, rows: list[dict], today: date) -> list[dict]:
        kept = []
        for row in rows:
            day = parse_iso_date(row.get("appointment_date"))
            if day is not None and day >= today:
                kept.append(row)
        return sorted(kept, key=_upcoming_key)

    def _fixture(self, session: Session, source: DataSource, reason: str) -> DashboardData:
        recent, upcoming = dashboard_fixture(session.role)
        return self._build(session, recent, upcoming, source, reason)

    def _build(
        self,
        session: Session,
        recent: list[dict],
        upcoming: list[dict],
        source: DataSource,
        reason: Optional[str] = None,
    ) -> DashboardData:
        return DashboardData(
            role=session.role,
            recent_items=[to_patient_summary(r) for r in recent[: self.page_size]],
            upcoming_items=[to_appointment_summary(a) for a in upcoming[: self.page_size]],
            stat_cards=list(ROLE_DASHBOARDS[session.role].stat_cards),
            source=source,
            reason=reason,
        )


UpdateCallback = Callable[[DashboardData], Union[None, Awaitable[None]]]


class DashboardView:
    """A mounted dashboard: resolves, then re-resolves on every record change.

    Results that arrive after the view closed or after the session changed are
    discarded. Subscriptions are dropped on close and on session change.
    """

    def __init__(
        self,
        resolver: DashboardResolver,
        state: SessionState,
        on_update: Optional[UpdateCallback] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.resolver = resolver
        self.state = state
        self.on_update = on_update
        self._today = today or date.today
        self.data: Optional[DashboardData] = None
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task] = set()
        self._detach_state: Optional[Callable[[], None]] = None
        self._epoch = 0
        self._closed = True

    @property
    def is_open(self) -> bool:
        return not self._closed

    async def open(self) -> Optional[DashboardData]:
        self._closed = False
        self._detach_state = self.state.add_listener(self._on_session_change)
        if self.state.current is not None:
            self._subscribe()
        return await self.refresh()

    async def refresh(self) -> Optional[DashboardData]:
        session = self.state.current
        if self._closed or session is None:
            return None
        ticket = (self._epoch, self.state.generation)
        data = await self.resolver.resolve(session, self._today())
        if self._closed or ticket != (self._epoch, self.state.generation):
            logger.debug("dashboard_result_discarded", role=session.role.value)
            return None
        self.data = data
        if self.on_update is not None:
            result = self.on_update(data)
            if inspect.isawaitable(result):
                await result
        return data

    def close(self) -> None:
        self._closed = True
        self._epoch += 1
        self._unsubscribe()
        if self._detach_state is not None:
            self._detach_state()
            self._detach_state = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _subscribe(self) -> None:
        for collection in WATCHED_COLLECTIONS:
            self._subscriptions.append(self.resolver.store.subscribe(collection, self._on_change))

    def _unsubscribe(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def _schedule_refresh(self) -> None:
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_change(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        logger.debug("dashboard_change_received", collection=event.collection, kind=event.kind)
        self._schedule_refresh()

    def _on_session_change(self, previous: Optional[Session], current: Optional[Session]) -> None:
        if previous == current:
            return
        self._epoch += 1
        self._unsubscribe()
        self.data = None
        if current is not None and not self._closed:
            self._subscribe()
            self._schedule_refresh()
