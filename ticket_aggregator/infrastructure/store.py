"""
Persistence interface consumed by the matcher and the reconcilers.
"""
from datetime import datetime
from typing import Iterable, List, Protocol, Tuple

from ..domain.event import Event
from ..domain.link import EventLink
from ..domain.listing import TicketListing


class EventStore(Protocol):
    """
    Everything event resolution needs from the relational store.

    Implementations raise ``PersistenceError`` when a read or write fails.
    """

    def find_upcoming_events(self, now: datetime) -> List[Event]:
        """Events dated at or after ``now``."""
        ...

    def find_event_links(self, event_id: str) -> List[EventLink]:
        ...

    def find_ticket_listings(self, event_id: str, source: str) -> List[TicketListing]:
        ...

    def create_event(self, name: str, date: datetime, venue: str, category: str) -> Tuple[str, bool]:
        """
        Insert an event and return ``(id, created)``.

        When an event with the same normalized name, venue and timestamp
        already exists its id is returned with ``created`` False.
        """
        ...

    def update_event_name(self, event_id: str, name: str) -> None:
        ...

    def insert_event_link(self, event_id: str, source: str, url: str) -> bool:
        """Insert a link; False when one already existed for (event, source)."""
        ...

    def delete_event_link(self, event_id: str, source: str) -> bool:
        ...

    def insert_ticket_listings(self, event_id: str, source: str, listings: Iterable[TicketListing]) -> int:
        """Insert listings, ignoring keys already stored; returns rows written."""
        ...

    def delete_ticket_listings(self, event_id: str, source: str, keys: Iterable[str]) -> int:
        """Delete the listings of ``source`` with the given keys; returns rows removed."""
        ...
