"""
Persistence service boundary.

`RecordStore` exposes the record collections the portal reads and writes
(profiles, patients, appointments, mri_scans, ai_results,
patient_registrations) as plain dict rows with equality filters, a range
filter, ordering and a row limit. Writes publish to a `ChangeFeed` so open
dashboards can re-resolve.
"""

from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Optional

import structlog
from fastapi import Request
from sqlalchemy import Date, DateTime, select
from sqlalchemy.exc import DBAPIError, IntegrityError

from medportal.config import Settings
from medportal.database import Database
from medportal.exceptions import RecordConflict, ServiceUnavailable
from medportal.models import (
    AiResult,
    Appointment,
    AuditLog,
    MriScan,
    Patient,
    PatientRegistration,
    Profile,
)

logger = structlog.get_logger(__name__)

COLLECTIONS = {
    "profiles": Profile,
    "patients": Patient,
    "appointments": Appointment,
    "mri_scans": MriScan,
    "ai_results": AiResult,
    "patient_registrations": PatientRegistration,
    "audit_logs": AuditLog,
}


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    kind: str  # "insert" | "update" | "delete"
    record_id: Optional[str] = None


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(self, feed: "ChangeFeed", collection: str, callback: ChangeCallback):
        self._feed = feed
        self.collection = collection
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False


class ChangeFeed:
    """In-process change notifications per collection ("any change" scope)."""

    def __init__(self):
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, collection: str, callback: ChangeCallback) -> Subscription:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")
        subscription = Subscription(self, collection, callback)
        self._subscribers[collection].append(subscription)
        return subscription

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscribers.get(event.collection, ())):
            try:
                subscription.callback(event)
            except Exception:
                logger.exception(
                    "change_subscriber_failed",
                    collection=event.collection,
                    kind=event.kind,
                )

    def subscriber_count(self, collection: Optional[str] = None) -> int:
        if collection is not None:
            return len(self._subscribers.get(collection, ()))
        return sum(len(subs) for subs in self._subscribers.values())

    def _remove(self, subscription: Subscription) -> None:
        subs = self._subscribers.get(subscription.collection, [])
        if subscription in subs:
            subs.remove(subscription)


def _serialize(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def row_to_dict(obj) -> dict:
    return {column.name: _serialize(getattr(obj, column.name)) for column in obj.__table__.columns}


def _coerce(model, field: str, value):
    column = model.__table__.columns.get(field)
    if column is None:
        raise ValueError(f"Unknown field '{field}' on {model.__tablename__}")
    if isinstance(value, str) and value:
        if isinstance(column.type, DateTime):
            return datetime.fromisoformat(value)
        if isinstance(column.type, Date):
            return date.fromisoformat(value[:10])
    return value


class RecordStore:
    def __init__(self, database: Optional[Database], feed: Optional[ChangeFeed] = None):
        self._database = database
        self.feed = feed or ChangeFeed()

    @classmethod
    def from_settings(cls, settings: Settings, feed: Optional[ChangeFeed] = None) -> "RecordStore":
        database = Database(settings.database_url) if settings.persistence_configured else None
        return cls(database, feed)

    @property
    def is_configured(self) -> bool:
        return self._database is not None

    @property
    def database(self) -> Optional[Database]:
        return self._database

    @asynccontextmanager
    async def _session(self, operation: str):
        if self._database is None:
            raise ServiceUnavailable("persistence service not configured", {"operation": operation})
        try:
            async with self._database.session() as session:
                yield session
        except IntegrityError as e:
            raise RecordConflict(f"{operation} rejected by constraint", {"error": str(e.orig)}) from e
        except (DBAPIError, OSError) as e:
            raise ServiceUnavailable(f"persistence service error during {operation}", {"error": str(e)}) from e

    @staticmethod
    def _model(collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection '{collection}'") from None

    async def select(
        self,
        collection: str,
        eq: Optional[dict] = None,
        gte: Optional[dict] = None,
        order_by: Iterable[tuple[str, bool]] = (),
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Filter by equality and lower bound, order by (field, descending) pairs, limit rows."""
        model = self._model(collection)
        query = select(model)
        for field, value in (eq or {}).items():
            value = _coerce(model, field, value)
            query = query.where(getattr(model, field) == value)
        for field, value in (gte or {}).items():
            value = _coerce(model, field, value)
            query = query.where(getattr(model, field) >= value)
        for field, descending in order_by:
            _coerce(model, field, None)
            column = getattr(model, field)
            query = query.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            query = query.limit(limit)

        async with self._session(f"select {collection}") as session:
            result = await session.execute(query)
            return [row_to_dict(obj) for obj in result.scalars().all()]

    async def get(self, collection: str, record_id: str) -> Optional[dict]:
        model = self._model(collection)
        async with self._session(f"get {collection}") as session:
            obj = await session.get(model, record_id)
            return row_to_dict(obj) if obj else None

    async def insert(self, collection: str, values: dict) -> dict:
        model = self._model(collection)
        data = {key: _coerce(model, key, value) for key, value in values.items()}
        async with self._session(f"insert {collection}") as session:
            obj = model(**data)
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            row = row_to_dict(obj)
        self.feed.publish(ChangeEvent(collection, "insert", row.get("id")))
        return row

    async def update(self, collection: str, record_id: str, values: dict) -> Optional[dict]:
        model = self._model(collection)
        async with self._session(f"update {collection}") as session:
            obj = await session.get(model, record_id)
            if obj is None:
                return None
            for key, value in values.items():
                setattr(obj, key, _coerce(model, key, value))
            await session.commit()
            await session.refresh(obj)
            row = row_to_dict(obj)
        self.feed.publish(ChangeEvent(collection, "update", record_id))
        return row

    def subscribe(self, collection: str, callback: ChangeCallback) -> Subscription:
        return self.feed.subscribe(collection, callback)

    async def create_schema(self) -> None:
        if self._database is not None:
            await self._database.create_all()

    async def close(self) -> None:
        if self._database is not None:
            await self._database.dispose()


def get_store(request: Request) -> RecordStore:
    """FastAPI dependency returning the application's store."""
    return request.app.state.store
