"""
Crawl orchestration: from scraped candidates to reconciled events.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from ..config.settings import Settings, get_settings
from ..core.exceptions import AmbiguousMatchError, DateParseError, PersistenceError
from ..core.logging import get_logger
from ..domain.event import CandidateEvent
from ..domain.listing import CandidateTicket
from ..infrastructure.store import EventStore
from ..matching.dates import DateNormalizer, format_timestamp
from ..matching.matcher import EventMatcher
from ..matching.similarity import base_name, normalize_name
from ..reconcile.links import LinkReconciler
from ..reconcile.tickets import InventoryDiff, TicketInventoryReconciler

logger = get_logger(__name__)

MATCHED = "matched"
CREATED = "created"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class ScrapedEvent:
    """
    A candidate plus the listings scraped from its page.

    ``tickets`` is None when the listing page was not scraped at all, which
    is different from a page that was scraped and showed nothing.
    """
    candidate: CandidateEvent
    tickets: Optional[List[CandidateTicket]] = None


@dataclass
class ProcessOutcome:
    """How one candidate was resolved."""
    name: str
    source: str
    status: str
    event_id: Optional[str] = None
    date: Optional[str] = None
    score: Optional[float] = None
    link_created: bool = False
    inventory: Optional[InventoryDiff] = None
    error: Optional[str] = None


@dataclass
class CrawlReport:
    """Outcomes of one batch, in input order."""
    outcomes: List[ProcessOutcome] = field(default_factory=list)
    filtered: int = 0
    duplicates: int = 0

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def event_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for outcome in self.outcomes:
            if outcome.event_id:
                seen.setdefault(outcome.event_id, None)
        return list(seen)

    def summary(self) -> Dict[str, int]:
        return {
            MATCHED: self.count(MATCHED),
            CREATED: self.count(CREATED),
            SKIPPED: self.count(SKIPPED),
            FAILED: self.count(FAILED),
            "filtered": self.filtered,
            "duplicates": self.duplicates,
        }


class EventProcessor:
    """
    Matches and reconciles scraped events one at a time.

    The whole read-decide-write sequence for a candidate runs under a lock,
    so crawls for different marketplaces sharing a processor cannot both
    create the same event.
    """

    def __init__(
        self,
        store: EventStore,
        settings: Settings = None,
        clock: Callable[[], datetime] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock or datetime.now
        self.normalizer = DateNormalizer(self.clock)
        self.matcher = EventMatcher(store, self.settings, self.normalizer, self.clock)
        self.links = LinkReconciler(store)
        self.inventory = TicketInventoryReconciler(store, self.settings)
        self._lock = threading.Lock()

    def is_excluded(self, candidate: CandidateEvent) -> bool:
        """Parking passes, VIP upgrades and similar add-ons are not events."""
        name = (candidate.name or "").lower()
        if not name.strip():
            return True
        return any(keyword in name for keyword in self.settings.excluded_event_keywords)

    def filter_candidates(self, items: Iterable[ScrapedEvent]) -> List[ScrapedEvent]:
        return [item for item in items if not self.is_excluded(item.candidate)]

    def deduplicate(self, items: Iterable[ScrapedEvent]) -> List[ScrapedEvent]:
        """
        Collapse repeats of the same show within one batch.

        Items whose date cannot be read are kept so they fail, and get
        reported, individually.
        """
        unique: Dict[tuple, ScrapedEvent] = {}
        kept: List[ScrapedEvent] = []
        for item in items:
            candidate = item.candidate
            try:
                when = self.normalizer.normalize(candidate.date, candidate.source)
            except DateParseError:
                kept.append(item)
                continue
            key = (candidate.source, normalize_name(base_name(candidate.name)), format_timestamp(when))
            if key in unique:
                continue
            unique[key] = item
            kept.append(item)
        return kept

    def process(self, candidate: CandidateEvent, tickets: Optional[List[CandidateTicket]] = None) -> ProcessOutcome:
        """
        Resolve one candidate and reconcile its link and tickets.

        Errors that concern only this candidate are turned into a skipped or
        failed outcome; nothing is raised for them.
        """
        outcome = ProcessOutcome(name=candidate.name, source=candidate.source, status=FAILED)
        log = logger.bind(name=candidate.name, source=candidate.source)

        try:
            when = self.normalizer.normalize(candidate.date, candidate.source)
        except DateParseError as e:
            log.warning("Could not parse event date, skipping", raw_date=candidate.date, error=str(e))
            outcome.status = SKIPPED
            outcome.error = str(e)
            return outcome
        outcome.date = format_timestamp(when)

        with self._lock:
            try:
                self._resolve(candidate, when, tickets, outcome)
            except AmbiguousMatchError as e:
                log.warning("Ambiguous match, leaving for review", event_ids=e.event_ids, error=str(e))
                outcome.status = SKIPPED
                outcome.error = str(e)
            except PersistenceError as e:
                log.error("Persistence failure, candidate aborted", error=str(e))
                outcome.status = FAILED
                outcome.error = str(e)

        return outcome

    def _resolve(self, candidate, when, tickets, outcome):
        match = self.matcher.find_match(candidate, when=when)

        if match is not None:
            event_id = match.event.id
            outcome.status = MATCHED
            outcome.score = match.score
        else:
            category = candidate.category or self.settings.default_category
            event_id, created = self.store.create_event(candidate.name, when, candidate.venue, category)
            if created:
                outcome.status = CREATED
                logger.info(f"Created new event: {candidate.name}", event_id=event_id, date=outcome.date)
            else:
                # Another writer stored the same event after our snapshot was read
                outcome.status = MATCHED
                logger.info(f"Event already stored by another writer: {candidate.name}", event_id=event_id)
        outcome.event_id = event_id

        if candidate.link:
            outcome.link_created = self.links.ensure_link(event_id, candidate.source, candidate.link).created

        if tickets is not None:
            outcome.inventory = self.inventory.reconcile(event_id, candidate.source, tickets)

    def process_batch(self, items: Iterable[ScrapedEvent]) -> CrawlReport:
        """Process a crawl sequentially; one bad candidate never stops the rest."""
        items = list(items)
        report = CrawlReport()

        wanted = self.filter_candidates(items)
        report.filtered = len(items) - len(wanted)
        unique = self.deduplicate(wanted)
        report.duplicates = len(wanted) - len(unique)

        for item in unique:
            report.outcomes.append(self.process(item.candidate, item.tickets))

        logger.info("Crawl processed", **report.summary())
        return report
