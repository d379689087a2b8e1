"""
Ticket inventory reconciliation for one (event, source) pair.

A fresh scrape is authoritative for its own source: listings it reports that
are not stored yet are inserted, stored listings it no longer reports are
deleted as sold or withdrawn. Listings are identified by their key (listing
id, else url). Price is metadata, so a re-priced listing with a stable key
stays as stored.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from ..config.settings import Settings, get_settings
from ..core.logging import get_logger
from ..domain.listing import CandidateTicket, TicketListing
from ..infrastructure.store import EventStore

logger = get_logger(__name__)


@dataclass
class InventoryDiff:
    """What one reconciliation pass changed."""
    inserted: List[str] = field(default_factory=list)
    retired: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    skipped: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.retired)


class TicketInventoryReconciler:
    """Inserts new listings and retires stale ones, never touching other sources."""

    def __init__(self, store: EventStore, settings: Settings = None):
        self.store = store
        self.settings = settings or get_settings()

    def reconcile(self, event_id: str, source: str, tickets: Iterable[CandidateTicket]) -> InventoryDiff:
        source = source.lower()
        diff = InventoryDiff()

        fresh: Dict[str, CandidateTicket] = {}
        for ticket in tickets:
            if ticket.source != source:
                logger.warning(
                    f"Skipping {ticket.source} listing while reconciling {source}",
                    event_id=event_id, key=ticket.key,
                )
                diff.skipped += 1
                continue
            # First occurrence wins when a page lists the same key twice
            fresh.setdefault(ticket.key, ticket)

        stored_keys = {listing.key for listing in self.store.find_ticket_listings(event_id, source)}

        to_insert: List[TicketListing] = [
            ticket.to_listing(event_id) for key, ticket in fresh.items() if key not in stored_keys
        ]
        if to_insert:
            self.store.insert_ticket_listings(event_id, source, to_insert)
            diff.inserted = [listing.key for listing in to_insert]

        diff.unchanged = [key for key in fresh if key in stored_keys]

        stale = sorted(stored_keys - set(fresh))
        if stale and not fresh and not self.settings.retire_on_empty_scrape:
            logger.warning(
                f"Empty {source} scrape, keeping {len(stale)} stored listings",
                event_id=event_id,
            )
            diff.unchanged.extend(stale)
        elif stale:
            self.store.delete_ticket_listings(event_id, source, stale)
            diff.retired = stale

        logger.info(
            f"Reconciled {source} tickets",
            event_id=event_id,
            inserted=len(diff.inserted),
            retired=len(diff.retired),
            unchanged=len(diff.unchanged),
            skipped=diff.skipped,
        )
        return diff
