"""
Ticket listing repository for database operations.
"""
from typing import Iterable, List
import psycopg2
from psycopg2.extras import execute_values

from ...core.db import DatabaseManager
from ...core.exceptions import PersistenceError
from ...core.logging import get_logger
from ...domain.listing import TicketListing

logger = get_logger(__name__)


class ListingRepository:
    """
    Repository for ticket listings.

    Rows are keyed by (event_id, source, listing_key) and are only ever
    inserted or deleted.
    """

    TABLE_NAME = "tickets"

    def __init__(self, db: DatabaseManager):
        self.db = db

    def ensure_table_exists(self):
        """Ensure the tickets table and its indexes exist."""
        create_table_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.TABLE_NAME} (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_id UUID NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            source TEXT NOT NULL,
            listing_key TEXT NOT NULL,
            section TEXT NOT NULL,
            row TEXT,
            price NUMERIC(10, 2) NOT NULL,
            quantity INTEGER NOT NULL DEFAULT 1,
            url TEXT,
            raw_data JSONB,
            date_posted TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (event_id, source, listing_key)
        );
        CREATE INDEX IF NOT EXISTS idx_tickets_event_id ON {self.TABLE_NAME} (event_id);
        CREATE INDEX IF NOT EXISTS idx_tickets_price ON {self.TABLE_NAME} (price);
        """

        try:
            self.db.execute(create_table_sql)
            logger.info(f"Ensured table {self.TABLE_NAME} exists")
        except psycopg2.Error as e:
            logger.error(f"Failed to setup {self.TABLE_NAME} table", error=str(e))
            raise PersistenceError(f"create table {self.TABLE_NAME}", str(e)) from e

    def get_for_event(self, event_id: str, source: str) -> List[TicketListing]:
        """Get the stored listings of one source for an event."""
        query = f"""
        SELECT id, event_id, source, listing_key, section, row, price, quantity,
               url, raw_data, date_posted
        FROM {self.TABLE_NAME}
        WHERE event_id = %s AND source = %s
        ORDER BY price;
        """

        try:
            results = self.db.execute(query, (event_id, source), commit=False)
        except psycopg2.Error as e:
            logger.error(f"Error retrieving {source} listings for event {event_id}", error=str(e))
            raise PersistenceError("find ticket listings", str(e)) from e

        return [TicketListing.from_dict(dict(row)) for row in results or []]

    def batch_insert(self, event_id: str, source: str, listings: Iterable[TicketListing]) -> int:
        """
        Insert listings in one statement, skipping keys already stored.

        Returns:
            Count of inserted listings
        """
        rows = [
            (
                event_id,
                source,
                listing.key,
                listing.section,
                listing.row,
                listing.price,
                listing.quantity,
                listing.url,
                listing.raw_data_json(),
            )
            for listing in listings
        ]
        if not rows:
            return 0

        insert_sql = f"""
        INSERT INTO {self.TABLE_NAME}
        (event_id, source, listing_key, section, row, price, quantity, url, raw_data)
        VALUES %s
        ON CONFLICT (event_id, source, listing_key) DO NOTHING
        RETURNING listing_key;
        """

        try:
            with self.db.cursor(commit=True) as cursor:
                # rowcount only covers the last page; count the returned keys
                inserted = execute_values(cursor, insert_sql, rows, page_size=1000, fetch=True)
                row_count = len(inserted)
        except psycopg2.Error as e:
            logger.error(f"Error batch inserting listings for event {event_id}", error=str(e))
            raise PersistenceError("insert ticket listings", str(e)) from e

        logger.info(f"Batch inserted {row_count} {source} listings for event {event_id}")
        return row_count

    def delete_by_keys(self, event_id: str, source: str, keys: Iterable[str]) -> int:
        """Delete the listings of ``source`` whose keys are given."""
        keys = list(keys)
        if not keys:
            return 0

        delete_sql = f"""
        DELETE FROM {self.TABLE_NAME}
        WHERE event_id = %s AND source = %s AND listing_key = ANY(%s);
        """

        try:
            with self.db.cursor(commit=True) as cursor:
                cursor.execute(delete_sql, (event_id, source, keys))
                row_count = cursor.rowcount
        except psycopg2.Error as e:
            logger.error(f"Error deleting listings for event {event_id}", error=str(e))
            raise PersistenceError("delete ticket listings", str(e)) from e

        logger.info(f"Deleted {row_count} stale {source} listings for event {event_id}")
        return row_count
