"""
Single-writer session container for one application instance.

Every component reads the session through `current` / `pending`. Only the
identity resolver calls the mutators; guards and dashboard views register
listeners and re-evaluate on each change.
"""

from typing import Callable, Optional

import structlog

from medportal.auth import Session

logger = structlog.get_logger(__name__)

Listener = Callable[[Optional[Session], Optional[Session]], None]


class SessionState:
    def __init__(self):
        self._session: Optional[Session] = None
        self._pending = True
        self._listeners: list[Listener] = []
        self._generation = 0

    @property
    def current(self) -> Optional[Session]:
        return self._session

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def generation(self) -> int:
        """Bumped on every session transition; lets async work detect staleness."""
        return self._generation

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # Mutators: identity resolver only.

    def begin_resolution(self) -> None:
        self._pending = True
        self._notify(self._session, self._session)

    def settle(self) -> None:
        """End a pending phase without changing the session (e.g. failed sign-in)."""
        if self._pending:
            self._pending = False
            self._notify(self._session, self._session)

    def establish(self, session: Session) -> None:
        previous = self._session
        self._session = session
        self._pending = False
        self._generation += 1
        self._notify(previous, session)

    def clear(self) -> None:
        previous = self._session
        self._session = None
        self._pending = False
        self._generation += 1
        self._notify(previous, None)

    def _notify(self, previous: Optional[Session], current: Optional[Session]) -> None:
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception:
                logger.exception("session_listener_failed")
