import itertools
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

import pytest

from ticket_aggregator.config.settings import Settings
from ticket_aggregator.core.exceptions import PersistenceError
from ticket_aggregator.domain.event import CandidateEvent, Event
from ticket_aggregator.domain.link import EventLink
from ticket_aggregator.domain.listing import CandidateTicket, TicketListing
from ticket_aggregator.matching.similarity import base_name, normalize_name

FIXED_NOW = datetime(2025, 1, 10, 12, 0)


class InMemoryEventStore:
    """EventStore kept in dictionaries, with the same uniqueness rules as the tables."""

    def __init__(self):
        self.events: Dict[str, Event] = {}
        self.links: Dict[Tuple[str, str], EventLink] = {}
        self.listings: Dict[Tuple[str, str, str], TicketListing] = {}
        self.renames: List[Tuple[str, str]] = []
        self.fail_on: Dict[str, str] = {}
        self._ids = itertools.count(1)

    def _check(self, operation):
        if operation in self.fail_on:
            raise PersistenceError(operation, self.fail_on[operation])

    def add_event(self, name, date, venue, event_id=None, category="Concert") -> Event:
        event_id = event_id or f"evt-{next(self._ids):04d}"
        event = Event(id=event_id, name=name, date=date, venue=venue, category=category)
        self.events[event_id] = event
        return event

    def add_listing(self, event_id, source, key, price=50.0, section="101"):
        listing = TicketListing(event_id=event_id, source=source, key=key, section=section, price=price)
        self.listings[(event_id, source, key)] = listing
        return listing

    def listing_keys(self, event_id, source) -> set:
        return {k for (eid, src, k) in self.listings if eid == event_id and src == source}

    # EventStore

    def find_upcoming_events(self, now: datetime) -> List[Event]:
        self._check("find_upcoming_events")
        upcoming = [event for event in self.events.values() if event.date >= now]
        return sorted(upcoming, key=lambda event: (event.date, event.id))

    def find_event_links(self, event_id: str) -> List[EventLink]:
        self._check("find_event_links")
        return [link for (eid, _), link in self.links.items() if eid == event_id]

    def find_ticket_listings(self, event_id: str, source: str) -> List[TicketListing]:
        self._check("find_ticket_listings")
        return [
            listing for (eid, src, _), listing in self.listings.items()
            if eid == event_id and src == source
        ]

    def create_event(self, name, date, venue, category) -> Tuple[str, bool]:
        self._check("create_event")
        identity = (normalize_name(base_name(name)), normalize_name(venue), date)
        for event in self.events.values():
            if (normalize_name(base_name(event.name)), normalize_name(event.venue), event.date) == identity:
                return event.id, False
        return self.add_event(name, date, venue, category=category).id, True

    def update_event_name(self, event_id, name) -> None:
        self._check("update_event_name")
        self.events[event_id] = self.events[event_id].model_copy(update={"name": name})
        self.renames.append((event_id, name))

    def insert_event_link(self, event_id, source, url) -> bool:
        self._check("insert_event_link")
        if (event_id, source) in self.links:
            return False
        self.links[(event_id, source)] = EventLink(event_id=event_id, source=source, url=url)
        return True

    def delete_event_link(self, event_id, source) -> bool:
        self._check("delete_event_link")
        return self.links.pop((event_id, source), None) is not None

    def insert_ticket_listings(self, event_id, source, listings: Iterable[TicketListing]) -> int:
        self._check("insert_ticket_listings")
        written = 0
        for listing in listings:
            key = (event_id, source, listing.key)
            if key not in self.listings:
                self.listings[key] = listing
                written += 1
        return written

    def delete_ticket_listings(self, event_id, source, keys: Iterable[str]) -> int:
        self._check("delete_ticket_listings")
        removed = 0
        for key in keys:
            if self.listings.pop((event_id, source, key), None) is not None:
                removed += 1
        return removed


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def make_candidate():
    def _make(name="Jamie xx", date="Jan 17 2025 7:00 PM", venue="Aragon Ballroom",
              source="stubhub", link=None, **extra):
        return CandidateEvent(name=name, date=date, venue=venue, source=source, link=link, **extra)
    return _make


@pytest.fixture
def make_ticket():
    def _make(key, source="stubhub", price=75.0, section="Floor", quantity=2, **extra):
        return CandidateTicket(
            listing_id=key, source=source, price=price, section=section, quantity=quantity, **extra
        )
    return _make
