"""
PostgreSQL implementation of the event store.
"""
from datetime import datetime
from typing import Iterable, List, Tuple

from ...core.db import DatabaseManager
from ...domain.event import Event
from ...domain.link import EventLink
from ...domain.listing import TicketListing
from .event_repo import EventRepository
from .link_repo import LinkRepository
from .listing_repo import ListingRepository


class PostgresEventStore:
    """``EventStore`` over the events, event_links and tickets tables."""

    def __init__(self, db: DatabaseManager):
        self.db = db
        self.events = EventRepository(db)
        self.links = LinkRepository(db)
        self.listings = ListingRepository(db)

    def ensure_schema(self):
        """Create extensions and tables; parents before children."""
        self.db.initialize()
        self.events.ensure_table_exists()
        self.links.ensure_table_exists()
        self.listings.ensure_table_exists()

    def find_upcoming_events(self, now: datetime) -> List[Event]:
        return self.events.get_upcoming(now)

    def find_event_links(self, event_id: str) -> List[EventLink]:
        return self.links.get_for_event(event_id)

    def find_ticket_listings(self, event_id: str, source: str) -> List[TicketListing]:
        return self.listings.get_for_event(event_id, source)

    def create_event(self, name: str, date: datetime, venue: str, category: str) -> Tuple[str, bool]:
        return self.events.insert(name, date, venue, category)

    def update_event_name(self, event_id: str, name: str) -> None:
        self.events.update_name(event_id, name)

    def insert_event_link(self, event_id: str, source: str, url: str) -> bool:
        return self.links.insert(event_id, source, url)

    def delete_event_link(self, event_id: str, source: str) -> bool:
        return self.links.delete(event_id, source)

    def insert_ticket_listings(self, event_id: str, source: str, listings: Iterable[TicketListing]) -> int:
        return self.listings.batch_insert(event_id, source, listings)

    def delete_ticket_listings(self, event_id: str, source: str, keys: Iterable[str]) -> int:
        return self.listings.delete_by_keys(event_id, source, keys)
