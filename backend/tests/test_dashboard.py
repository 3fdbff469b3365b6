import asyncio
from datetime import date, timedelta

import pytest

from medportal.fixtures import dashboard_fixture
from medportal.main import seed_demo_profiles
from medportal.notifications import Notifier
from medportal.roles import ALL_ROLES, Role
from medportal.services.dashboard_service import (
    DashboardResolver,
    DashboardView,
    DataSource,
    to_appointment_summary,
    to_patient_summary,
)
from medportal.services.identity_service import IdentityResolver, ProfileIdentityBackend
from medportal.session_state import SessionState
from medportal.session_store import MemorySessionStore

from conftest import TODAY, RaisingStore, make_session, make_settings

ROLES = sorted(ALL_ROLES, key=lambda r: r.value)


def make_resolver(store, **settings):
    return DashboardResolver(store, Notifier(), make_settings(**settings))


async def seed_patient(store, name, **values):
    row = {"name": name, "condition": "Migraine", "status": "Scheduled"}
    row.update(values)
    return await store.insert("patients", row)


async def seed_appointment(store, patient, day, time="09:00", **values):
    row = {
        "patient_id": patient["id"],
        "patient_name": patient["name"],
        "appointment_date": day.isoformat(),
        "appointment_time": time,
        "type": "Consultation",
    }
    row.update(values)
    return await store.insert("appointments", row)


@pytest.mark.parametrize("role", ROLES)
async def test_failing_store_falls_back_to_mock_fixture(role):
    """A query failure never surfaces: the role still gets its sample data."""

    resolver = make_resolver(RaisingStore(RuntimeError("boom")))
    data = await resolver.resolve(make_session(role), TODAY)

    recent, upcoming = dashboard_fixture(role)
    assert data.source is DataSource.MOCK
    assert data.reason == "query_failed"
    assert [p.id for p in data.recent_items] == [p["id"] for p in recent]
    assert [a.id for a in data.upcoming_items] == [a["id"] for a in upcoming]
    assert len(data.stat_cards) == 4


@pytest.mark.parametrize("role", [Role.DOCTOR, Role.PATIENT])
async def test_query_failure_raises_a_notification(role):
    resolver = make_resolver(RaisingStore())
    await resolver.resolve(make_session(role), TODAY)
    assert [n.title for n in resolver.notifier.history] == ["Data unavailable"]


async def test_unconfigured_store_gives_exact_fixture(unconfigured_store):
    resolver = make_resolver(unconfigured_store)
    data = await resolver.resolve(make_session(Role.RECEPTIONIST), TODAY)

    assert data.source is DataSource.FIXTURE
    assert data.reason == "persistence_unconfigured"
    assert [p.name for p in data.recent_items] == [
        "John Michael Smith",
        "Sarah Elizabeth Davis",
        "Michael Robert Johnson",
    ]
    first = data.upcoming_items[0]
    assert (first.patient_name, first.time, first.date, first.type) == (
        "John Michael Smith",
        "9:00 AM",
        "Jun 3, 2024",
        "Neurology Consultation",
    )
    assert data.upcoming_items[1].time == "2:30 PM"


async def test_demo_session_never_hits_the_store():
    store = RaisingStore()
    data = await make_resolver(store).resolve(make_session(Role.DOCTOR, is_demo=True), TODAY)
    assert data.source is DataSource.FIXTURE
    assert data.reason == "demo_session"
    assert store.calls == []


async def test_seeded_demo_doctor_gets_the_fixture(sqlite_store):
    await seed_demo_profiles(sqlite_store)
    await seed_patient(sqlite_store, "Live Patient", assigned_doctor_id="demo-doctor-1")
    identity = IdentityResolver(
        SessionState(),
        ProfileIdentityBackend(sqlite_store),
        session_store=MemorySessionStore(),
        notifier=Notifier(),
        settings=make_settings(),
    )
    session = await identity.authenticate("doctor@quantum.med", "doctor123")
    assert (session.id, session.is_demo) == ("demo-doctor-1", False)

    data = await make_resolver(sqlite_store).resolve(session, TODAY)
    recent, _ = dashboard_fixture(Role.DOCTOR)
    assert data.source is DataSource.FIXTURE
    assert data.reason == "demo_session"
    assert [p.id for p in data.recent_items] == [p["id"] for p in recent]


async def test_no_session_yields_empty_dashboard(unconfigured_store):
    data = await make_resolver(unconfigured_store).resolve(None, TODAY)
    assert data.recent_items == [] and data.upcoming_items == []
    assert data.reason == "no_session"


async def test_upcoming_is_capped_sorted_and_excludes_past(sqlite_store):
    patient = await seed_patient(sqlite_store, "Ada Lovelace")
    await seed_appointment(sqlite_store, patient, TODAY - timedelta(days=1), "08:00")
    for offset in range(10, 0, -1):
        await seed_appointment(sqlite_store, patient, TODAY + timedelta(days=offset % 4), f"{8 + offset:02d}:00")

    data = await make_resolver(sqlite_store).resolve(make_session(Role.ADMIN), TODAY)

    assert data.source is DataSource.LIVE
    assert len(data.upcoming_items) <= 5
    keys = [(a.appointment_date, a.appointment_time) for a in data.upcoming_items]
    assert keys == sorted(keys)
    assert all(date.fromisoformat(a.appointment_date) >= TODAY for a in data.upcoming_items)


async def test_page_size_setting_limits_rows(sqlite_store):
    for i in range(6):
        await seed_patient(sqlite_store, f"Patient {i}")
    data = await make_resolver(sqlite_store, dashboard_page_size=3).resolve(make_session(Role.ADMIN), TODAY)
    assert len(data.recent_items) == 3


async def test_doctor_sees_only_assigned_patients_and_own_appointments(sqlite_store):
    doctor = make_session(Role.DOCTOR, "doc-1")
    mine = await seed_patient(sqlite_store, "Mine", assigned_doctor_id="doc-1")
    theirs = await seed_patient(sqlite_store, "Theirs", assigned_doctor_id="doc-2")
    await seed_appointment(sqlite_store, mine, TODAY, doctor_id="doc-1")
    await seed_appointment(sqlite_store, theirs, TODAY, doctor_id="doc-2")

    data = await make_resolver(sqlite_store).resolve(doctor, TODAY)

    assert [p.name for p in data.recent_items] == ["Mine"]
    assert [a.patient_name for a in data.upcoming_items] == ["Mine"]


async def test_radiologist_sees_patients_needing_scans(sqlite_store):
    await seed_patient(sqlite_store, "Needs scan", needs_scan=True)
    await seed_patient(sqlite_store, "No scan", needs_scan=False)
    data = await make_resolver(sqlite_store).resolve(make_session(Role.RADIOLOGIST), TODAY)
    assert [p.name for p in data.recent_items] == ["Needs scan"]


async def test_patient_sees_own_record_and_appointments(sqlite_store):
    me = make_session(Role.PATIENT, "profile-me")
    record = await seed_patient(sqlite_store, "Me", profile_id="profile-me")
    other = await seed_patient(sqlite_store, "Someone else")
    await seed_appointment(sqlite_store, record, TODAY + timedelta(days=2))
    await seed_appointment(sqlite_store, other, TODAY + timedelta(days=1))

    data = await make_resolver(sqlite_store).resolve(me, TODAY)

    assert data.source is DataSource.LIVE
    assert [p.name for p in data.recent_items] == ["Me"]
    assert [a.patient_name for a in data.upcoming_items] == ["Me"]


async def test_unlinked_patient_falls_back_to_mock(sqlite_store):
    resolver = make_resolver(sqlite_store)
    data = await resolver.resolve(make_session(Role.PATIENT, "nobody"), TODAY)
    assert data.source is DataSource.MOCK
    assert data.reason == "patient_record_unlinked"
    assert resolver.notifier.history == []
    assert [p.id for p in data.recent_items] == ["demo-patient-1"]


def test_summaries_pass_malformed_values_through():
    summary = to_appointment_summary(
        {"id": 1, "patient_name": "X", "appointment_date": "soon", "appointment_time": "noon"}
    )
    assert (summary.date, summary.time) == ("soon", "noon")
    assert to_patient_summary({"id": 7, "name": "Y"}).id == "7"


async def wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def test_live_view_refreshes_on_change_and_tears_down(sqlite_store):
    state = SessionState()
    state.establish(make_session(Role.ADMIN))
    updates = []
    view = DashboardView(make_resolver(sqlite_store), state, on_update=updates.append, today=lambda: TODAY)

    first = await view.open()
    assert first.recent_items == []
    assert sqlite_store.feed.subscriber_count() == 2

    await seed_patient(sqlite_store, "Walk-in")
    await wait_for(lambda: len(updates) == 2)
    assert [p.name for p in updates[-1].recent_items] == ["Walk-in"]

    view.close()
    assert sqlite_store.feed.subscriber_count() == 0
    await seed_patient(sqlite_store, "After close")
    await asyncio.sleep(0.05)
    assert len(updates) == 2


async def test_live_view_drops_stale_result_after_session_change(unconfigured_store):
    state = SessionState()
    state.establish(make_session(Role.DOCTOR))
    resolver = make_resolver(unconfigured_store)
    gate = asyncio.Event()
    real_resolve = resolver.resolve

    async def slow_resolve(session, today=None):
        await gate.wait()
        return await real_resolve(session, today)

    resolver.resolve = slow_resolve
    view = DashboardView(resolver, state, today=lambda: TODAY)
    pending = asyncio.ensure_future(view.open())
    await asyncio.sleep(0)
    assert view.is_open

    state.clear()
    gate.set()
    assert await pending is None
    assert view.data is None
    view.close()


async def test_live_view_unsubscribes_on_sign_out(sqlite_store):
    state = SessionState()
    state.establish(make_session(Role.ADMIN))
    view = DashboardView(make_resolver(sqlite_store), state, today=lambda: TODAY)
    await view.open()
    state.clear()
    assert sqlite_store.feed.subscriber_count() == 0
    assert view.data is None
    view.close()
