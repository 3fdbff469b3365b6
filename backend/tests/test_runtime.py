from datetime import datetime

from medportal.authorization import Decision
from medportal.navigation import Placement
from medportal.roles import Role
from medportal.runtime import PortalRuntime
from medportal.session_store import MemorySessionStore

from conftest import make_session, make_settings


def make_runtime(store, **settings):
    return PortalRuntime(store, make_settings(**settings), session_store=MemorySessionStore())


async def test_runtime_starts_pending_and_resolves_to_login(unconfigured_store):
    runtime = make_runtime(unconfigured_store)
    assert runtime.resolve("/dashboard").decision is Decision.PENDING

    await runtime.identity.resolve_session()
    assert runtime.resolve("/dashboard").location == "/login"
    assert runtime.navigation() == []


async def test_sign_in_sign_out_drives_guard_and_navigation(unconfigured_store):
    runtime = make_runtime(unconfigured_store)
    guard = runtime.guard("/receptionist/patients")
    decisions = []
    guard.observe(decisions.append)

    await runtime.identity.authenticate("receptionist@quantum.med", "receptionist123")
    assert guard.decision is Decision.ALLOW
    assert [e.title for e in runtime.navigation(Placement.SIDEBAR)] == ["Dashboard", "Patients"]

    runtime.identity.end_session()
    assert guard.decision is Decision.REDIRECT_LOGIN
    assert decisions[-1] is Decision.REDIRECT_LOGIN
    assert runtime.notifier.history[-1].title == "Logged Out"


async def test_greeting_uses_first_name(unconfigured_store):
    runtime = make_runtime(unconfigured_store)
    assert runtime.greeting(datetime(2024, 6, 1, 9)) == "Good morning"
    await runtime.adopt(make_session(Role.PATIENT, is_demo=True, name="Michael Brown"))
    assert runtime.greeting(datetime(2024, 6, 1, 19)) == "Good evening, Michael"


async def test_runtime_uses_file_session_store_when_configured(tmp_path, unconfigured_store):
    path = tmp_path / "session.json"
    runtime = PortalRuntime(unconfigured_store, make_settings(session_file=str(path)))
    await runtime.identity.authenticate("admin@quantum.med", "admin123")
    assert path.exists()
