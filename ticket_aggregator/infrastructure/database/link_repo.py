"""
Event link repository for database operations.
"""
from typing import List
import psycopg2

from ...core.db import DatabaseManager
from ...core.exceptions import PersistenceError
from ...core.logging import get_logger
from ...domain.link import EventLink

logger = get_logger(__name__)


class LinkRepository:
    """Repository for the per-marketplace purchase links of events."""

    TABLE_NAME = "event_links"

    def __init__(self, db: DatabaseManager):
        self.db = db

    def ensure_table_exists(self):
        """Ensure the event_links table exists."""
        create_table_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.TABLE_NAME} (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_id UUID NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            source TEXT NOT NULL,
            url TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (event_id, source)
        );
        CREATE INDEX IF NOT EXISTS idx_event_links_event_id ON {self.TABLE_NAME} (event_id);
        """

        try:
            self.db.execute(create_table_sql)
            logger.info(f"Ensured table {self.TABLE_NAME} exists")
        except psycopg2.Error as e:
            logger.error(f"Failed to create table {self.TABLE_NAME}", error=str(e))
            raise PersistenceError(f"create table {self.TABLE_NAME}", str(e)) from e

    def get_for_event(self, event_id: str) -> List[EventLink]:
        query = f"""
        SELECT id, event_id, source, url, created_at
        FROM {self.TABLE_NAME} WHERE event_id = %s ORDER BY source;
        """

        try:
            results = self.db.execute(query, (event_id,), commit=False)
        except psycopg2.Error as e:
            logger.error(f"Error retrieving links for event {event_id}", error=str(e))
            raise PersistenceError("find event links", str(e)) from e

        return [EventLink(**dict(row)) for row in results or []]

    def insert(self, event_id: str, source: str, url: str) -> bool:
        """Insert a link; returns False when (event, source) already had one."""
        insert_sql = f"""
        INSERT INTO {self.TABLE_NAME} (event_id, source, url)
        VALUES (%s, %s, %s)
        ON CONFLICT (event_id, source) DO NOTHING
        RETURNING id;
        """

        try:
            result = self.db.execute(insert_sql, (event_id, source, url))
        except psycopg2.Error as e:
            logger.error(f"Error inserting {source} link for event {event_id}", error=str(e))
            raise PersistenceError("insert event link", str(e)) from e

        return bool(result)

    def delete(self, event_id: str, source: str) -> bool:
        delete_sql = f"DELETE FROM {self.TABLE_NAME} WHERE event_id = %s AND source = %s RETURNING id;"

        try:
            result = self.db.execute(delete_sql, (event_id, source))
        except psycopg2.Error as e:
            logger.error(f"Error deleting {source} link for event {event_id}", error=str(e))
            raise PersistenceError("delete event link", str(e)) from e

        return bool(result)
