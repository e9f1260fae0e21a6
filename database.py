import logging
import math
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, Tuple

import mysql.connector  # type: ignore
from mysql.connector import pooling  # type: ignore

from config import Settings
from model import Event, EventIn, PaginatedEvents, as_utc

logger = logging.getLogger(__name__)

EVENT_COLUMNS = """
    id, title, description, location, start_time, end_time,
    created_by, created_at, updated_at
"""

EVENTS_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS events (
        id INT AUTO_INCREMENT PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        description TEXT NULL,
        location VARCHAR(255) NOT NULL,
        start_time DATETIME(6) NOT NULL,
        end_time DATETIME(6) NOT NULL,
        created_by VARCHAR(255) NOT NULL,
        created_at DATETIME(6) NOT NULL,
        updated_at DATETIME(6) NOT NULL,
        INDEX idx_events_created_at (created_at)
    )
"""


class EventNotFound(LookupError):
    """No row matched the given event id."""

    def __init__(self, event_id: int):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class StorageError(RuntimeError):
    """A database call failed; the message is the driver's error text."""


# ----------------------
# Pool
# ----------------------
def create_pool(settings: Settings) -> pooling.MySQLConnectionPool:
    return pooling.MySQLConnectionPool(
        pool_name="event_service",
        pool_size=settings.db_pool_size,
        pool_reset_session=True,
        host=settings.db_host,
        port=settings.db_port,
        user=settings.db_user,
        password=settings.db_password,
        database=settings.db_name,
        autocommit=False,
    )


# ----------------------
# Helpers
# ----------------------
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db(value: datetime) -> datetime:
    """MySQL DATETIME has no zone; store naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def resolve_page(page: Any, page_size: Any, default_page_size: int = 15,
                 max_page_size: int = 100) -> Tuple[int, int]:
    """Coerce raw query values; anything missing, non-numeric or < 1 falls back to the defaults."""
    size = min(_positive_int(page_size, default_page_size), max_page_size)
    return _positive_int(page, 1), size


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total > 0 else 0


# ----------------------
# Repository
# ----------------------
class EventRepository:
    """CRUD over the ``events`` table.

    ``connect`` returns a DB-API connection (``pool.get_connection`` in
    production). Every operation borrows one connection and closes it, which
    hands it back to the pool. Driver errors surface as ``StorageError``; any
    by-id operation that matches no row raises ``EventNotFound``.
    """

    def __init__(self, connect: Callable[[], Any], pool: Any = None):
        self._connect = connect
        self._pool = pool

    @classmethod
    def from_settings(cls, settings: Settings) -> "EventRepository":
        pool = create_pool(settings)
        logger.info("Connection pool ready for %s@%s:%s/%s (size %s)",
                    settings.db_user, settings.db_host, settings.db_port,
                    settings.db_name, settings.db_pool_size)
        return cls(pool.get_connection, pool=pool)

    def close(self) -> None:
        """Drop the idle pooled connections; borrowed ones close when returned."""
        if self._pool is not None:
            removed = self._pool._remove_connections()
            logger.info("Closed %s pooled connection(s)", removed)
            self._pool = None

    @contextmanager
    def _cursor(self) -> Iterator[Tuple[Any, Any]]:
        try:
            cnx = self._connect()
        except mysql.connector.Error as exc:
            raise StorageError(str(exc)) from exc
        cur = None
        try:
            cur = cnx.cursor(dictionary=True)
            yield cnx, cur
        except mysql.connector.Error as exc:
            self._rollback(cnx)
            raise StorageError(str(exc)) from exc
        except Exception:
            self._rollback(cnx)
            raise
        finally:
            if cur is not None:
                cur.close()
            cnx.close()

    @staticmethod
    def _rollback(cnx: Any) -> None:
        try:
            cnx.rollback()
        except mysql.connector.Error as exc:
            logger.warning("Rollback failed: %s", exc)

    # ----------------------
    # Maintenance
    # ----------------------
    def ping(self) -> None:
        with self._cursor() as (_, cur):
            cur.execute("SELECT 1 AS ok")
            cur.fetchone()

    def create_schema(self) -> None:
        with self._cursor() as (cnx, cur):
            cur.execute(EVENTS_TABLE_DDL)
            cnx.commit()

    # ----------------------
    # CRUD
    # ----------------------
    def list_events(self, page: int, page_size: int) -> PaginatedEvents:
        with self._cursor() as (_, cur):
            cur.execute("SELECT COUNT(*) AS total FROM events")
            count_row = cur.fetchone()
            total = int(count_row["total"]) if count_row else 0

            offset = (page - 1) * page_size
            rows = []
            # Pages past the end skip the query; huge offsets overflow MySQL's LIMIT range.
            if offset < total:
                cur.execute(f"""
                    SELECT {EVENT_COLUMNS}
                    FROM events
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s OFFSET %s
                """, (page_size, offset))
                rows = cur.fetchall()

        return PaginatedEvents(
            page=page,
            page_size=page_size,
            total_items=total,
            total_pages=total_pages(total, page_size),
            data=[Event.from_row(row) for row in rows],
        )

    def get_event(self, event_id: int) -> Event:
        with self._cursor() as (_, cur):
            cur.execute(f"SELECT {EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,))
            row = cur.fetchone()
        if not row:
            raise EventNotFound(event_id)
        return Event.from_row(row)

    def create_event(self, event: EventIn) -> Event:
        now = utcnow()
        with self._cursor() as (cnx, cur):
            cur.execute("""
                INSERT INTO events (title, description, location, start_time, end_time,
                                    created_by, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """, (
                event.title,
                event.description,
                event.location,
                to_db(event.start_time),
                to_db(event.end_time),
                event.created_by,
                to_db(now),
                to_db(now),
            ))
            cnx.commit()
            event_id = cur.lastrowid

        return self._build(event_id, event, created_at=now, updated_at=now)

    def update_event(self, event_id: int, event: EventIn) -> Event:
        """Replace every mutable field of an existing event.

        The current row is locked with ``SELECT ... FOR UPDATE`` so the read of
        ``created_at`` and the write happen in one transaction.
        """
        with self._cursor() as (cnx, cur):
            cur.execute(
                "SELECT created_at, updated_at FROM events WHERE id = %s FOR UPDATE",
                (event_id,),
            )
            current = cur.fetchone()
            if not current:
                raise EventNotFound(event_id)

            created_at = as_utc(current["created_at"])
            previous = as_utc(current["updated_at"])
            updated_at = max(utcnow(), previous + timedelta(microseconds=1))

            cur.execute("""
                UPDATE events
                SET title = %s, description = %s, location = %s, start_time = %s,
                    end_time = %s, created_by = %s, updated_at = %s
                WHERE id = %s
            """, (
                event.title,
                event.description,
                event.location,
                to_db(event.start_time),
                to_db(event.end_time),
                event.created_by,
                to_db(updated_at),
                event_id,
            ))
            cnx.commit()

        return self._build(event_id, event, created_at=created_at, updated_at=updated_at)

    def delete_event(self, event_id: int) -> None:
        with self._cursor() as (cnx, cur):
            cur.execute("DELETE FROM events WHERE id = %s", (event_id,))
            if cur.rowcount == 0:
                raise EventNotFound(event_id)
            cnx.commit()

    @staticmethod
    def _build(event_id: int, event: EventIn, created_at: datetime, updated_at: datetime) -> Event:
        fields: Dict[str, Any] = event.model_dump()
        return Event(id=event_id, created_at=created_at, updated_at=updated_at, **fields)
