"""Durable session mirror for same-device resume."""

import json
import os
from pathlib import Path
from typing import Optional

import structlog

from medportal.auth import Session

logger = structlog.get_logger(__name__)


class MemorySessionStore:
    def __init__(self, session: Optional[Session] = None):
        self._session = session

    def load(self) -> Optional[Session]:
        return self._session

    def save(self, session: Session) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStore:
    """Keeps the last session as JSON on disk. A corrupt file counts as no session."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[Session]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Session.from_dict(data)
        except (OSError, ValueError) as e:
            logger.warning("session_file_unreadable", path=str(self.path), error=str(e))
            return None

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(session.to_dict()), encoding="utf-8")
        os.replace(tmp, self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
