"""
Event repository for database operations.
"""
from typing import List, Tuple
from datetime import datetime
import psycopg2

from ...core.db import DatabaseManager
from ...core.exceptions import PersistenceError
from ...core.logging import get_logger
from ...domain.event import Event
from ...matching.similarity import base_name, normalize_name

logger = get_logger(__name__)


class EventRepository:
    """
    Repository for event data operations.

    ``name_key`` and ``venue_key`` are the normalized forms used by the
    unique index that stops two concurrent crawls from creating the same
    event twice. They are written once at creation and not rewritten when
    the display name is corrected.
    """

    TABLE_NAME = "events"

    def __init__(self, db: DatabaseManager):
        self.db = db

    def ensure_table_exists(self):
        """Ensure the events table and its indexes exist."""
        create_table_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.TABLE_NAME} (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name TEXT NOT NULL,
            name_key TEXT NOT NULL,
            date TIMESTAMP NOT NULL,
            venue TEXT NOT NULL,
            venue_key TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT 'Concert',
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (name_key, venue_key, date)
        );
        CREATE INDEX IF NOT EXISTS idx_events_date ON {self.TABLE_NAME} (date);
        CREATE INDEX IF NOT EXISTS idx_events_name ON {self.TABLE_NAME} (name);
        """

        try:
            self.db.execute(create_table_sql)
            logger.info(f"Ensured table {self.TABLE_NAME} exists")
        except psycopg2.Error as e:
            logger.error(f"Failed to create table {self.TABLE_NAME}", error=str(e))
            raise PersistenceError(f"create table {self.TABLE_NAME}", str(e)) from e

    def get_upcoming(self, now: datetime) -> List[Event]:
        """Get events dated at or after ``now``, soonest first."""
        query = f"""
        SELECT id, name, date, venue, category, created_at, updated_at
        FROM {self.TABLE_NAME}
        WHERE date >= %s
        ORDER BY date, id;
        """

        try:
            results = self.db.execute(query, (now,), commit=False)
        except psycopg2.Error as e:
            logger.error("Error retrieving upcoming events", error=str(e))
            raise PersistenceError("find upcoming events", str(e)) from e

        events = [Event.from_dict(dict(row)) for row in results or []]
        logger.debug(f"Retrieved {len(events)} upcoming events from database")
        return events

    def insert(self, name: str, date: datetime, venue: str, category: str) -> Tuple[str, bool]:
        """
        Insert a new event, or return the id of the identical one already stored.

        Returns:
            The ID of the event and whether this call created it
        """
        insert_sql = f"""
        INSERT INTO {self.TABLE_NAME} (name, name_key, date, venue, venue_key, category)
        VALUES (%s, %s, %s, %s, %s, %s)
        ON CONFLICT (name_key, venue_key, date)
        DO UPDATE SET updated_at = {self.TABLE_NAME}.updated_at
        RETURNING id, (xmax = 0) AS inserted;
        """

        params = (
            name,
            normalize_name(base_name(name)),
            date,
            venue,
            normalize_name(venue),
            category,
        )

        try:
            result = self.db.execute(insert_sql, params)
        except psycopg2.Error as e:
            logger.error(f"Error inserting event {name}", error=str(e))
            raise PersistenceError("create event", str(e)) from e

        if not result:
            raise PersistenceError("create event", f"no id returned for {name}")

        event_id = str(result[0]["id"])
        inserted = bool(result[0]["inserted"])
        if inserted:
            logger.info(f"Inserted event with ID {event_id}: {name}")
        else:
            logger.info(f"Event {name} already stored concurrently, reusing ID {event_id}")
        return event_id, inserted

    def update_name(self, event_id: str, name: str) -> None:
        """Correct an event's display name."""
        update_sql = f"""
        UPDATE {self.TABLE_NAME}
        SET name = %s, updated_at = %s
        WHERE id = %s;
        """

        try:
            self.db.execute(update_sql, (name, datetime.now(), event_id))
            logger.info(f"Updated name of event {event_id} to {name}")
        except psycopg2.Error as e:
            logger.error(f"Error updating event with ID {event_id}", error=str(e))
            raise PersistenceError("update event name", str(e)) from e

