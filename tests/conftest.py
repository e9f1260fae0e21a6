from datetime import datetime, timedelta, timezone
from typing import Dict

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import EventNotFound, StorageError, total_pages, utcnow
from main import create_app
from model import Event, EventIn, PaginatedEvents


class InMemoryEventRepository:
    """Same contract as ``database.EventRepository``, backed by a dict."""

    def __init__(self):
        self.rows: Dict[int, Event] = {}
        self._next_id = 1

    def list_events(self, page, page_size):
        ordered = sorted(self.rows.values(), key=lambda e: (e.created_at, e.id), reverse=True)
        start = (page - 1) * page_size
        return PaginatedEvents(
            page=page,
            page_size=page_size,
            total_items=len(ordered),
            total_pages=total_pages(len(ordered), page_size),
            data=ordered[start:start + page_size],
        )

    def get_event(self, event_id):
        if event_id not in self.rows:
            raise EventNotFound(event_id)
        return self.rows[event_id]

    def create_event(self, event: EventIn):
        now = utcnow()
        created = Event(id=self._next_id, created_at=now, updated_at=now, **event.model_dump())
        self.rows[created.id] = created
        self._next_id += 1
        return created

    def update_event(self, event_id, event: EventIn):
        current = self.get_event(event_id)
        updated_at = max(utcnow(), current.updated_at + timedelta(microseconds=1))
        updated = Event(id=event_id, created_at=current.created_at, updated_at=updated_at, **event.model_dump())
        self.rows[event_id] = updated
        return updated

    def delete_event(self, event_id):
        if self.rows.pop(event_id, None) is None:
            raise EventNotFound(event_id)


class BrokenEventRepository:
    """Every call fails the way a lost MySQL connection would."""

    message = "2013 (HY000): Lost connection to MySQL server during query"

    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise StorageError(self.message)
        return _fail


def future(days=1, hours=0):
    return datetime.now(timezone.utc) + timedelta(days=days, hours=hours)


def event_payload(**overrides):
    start = future(days=7)
    payload = {
        "title": "Team offsite",
        "description": "Quarterly planning",
        "location": "Berlin",
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=3)).isoformat(),
        "created_by": "alice@example.com",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def repository():
    return InMemoryEventRepository()


@pytest.fixture
def client(repository):
    app = create_app(Settings(), repository=repository)
    with TestClient(app) as test_client:
        yield test_client
