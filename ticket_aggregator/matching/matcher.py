"""
Event identity resolution.

Marketplaces share no event identifier, so a scraped event is tied to a
stored one by a weighted score over three signals:

    score = name_weight * name_score
          + venue_weight * venue_score
          + (date_weight if same day else -min(max_date_penalty, date_penalty_per_day * day_diff))

Name and venue scores come from ``NameSimilarityScorer``; the date term is a
bonus when the calendar day agrees and a capped penalty otherwise, so one
mis-read date cannot veto an otherwise overwhelming name and venue match.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from ..config.settings import Settings, get_settings
from ..core.exceptions import AmbiguousMatchError
from ..core.logging import get_logger
from ..domain.event import CandidateEvent, Event
from ..infrastructure.store import EventStore
from .dates import DateNormalizer, day_difference, has_time_of_day, same_day, same_instant
from .similarity import NameSimilarityScorer, base_name, has_qualifier, venues_overlap

logger = get_logger(__name__)

_TIE_EPSILON = 1e-9


@dataclass
class ScoredEvent:
    """One stored event scored against a candidate."""
    event: Event
    name_score: float
    venue_score: float
    date_match: bool
    day_diff: float
    score: float
    eligible: bool = True
    exact: bool = False

    @property
    def sort_key(self):
        return (-self.score, self.event.id or "")


@dataclass
class MatchResult:
    """The stored event a candidate resolved to."""
    event: Event
    score: float
    has_source_link: bool
    exact: bool = False
    renamed_to: Optional[str] = None


def preferred_name(existing: str, incoming: str) -> Optional[str]:
    """
    Return ``incoming`` when it is a cleaner name than ``existing``, else None.

    Cleaner means free of "(...)"/"[...]" qualifiers while the stored name has
    them, or, both being clean, shorter without collapsing to a stub of three
    characters or fewer.
    """
    if not incoming or incoming == existing:
        return None
    if has_qualifier(incoming):
        return None
    if has_qualifier(existing):
        return incoming
    if len(incoming) < len(existing) and len(incoming) > 3:
        return incoming
    return None


class EventMatcher:
    """
    Resolves scraped candidates against the stored upcoming events.

    Args:
        store: persistence used for the event snapshot, link lookup and renames
        settings: weights and thresholds
        normalizer: date parser; built from ``clock`` when omitted
        clock: returns "now"
    """

    def __init__(
        self,
        store: EventStore,
        settings: Settings = None,
        normalizer: DateNormalizer = None,
        clock: Callable[[], datetime] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock or datetime.now
        self.normalizer = normalizer or DateNormalizer(self.clock)
        self.scorer = NameSimilarityScorer(self.settings.substring_score)

    def score(self, event: Event, name: str, venue: str, when: datetime) -> ScoredEvent:
        """Score one stored event against a candidate's name, venue and normalized date."""
        s = self.settings
        name_score = self.scorer(base_name(event.name), base_name(name))
        venue_score = self.scorer(event.venue, venue)
        date_match = same_day(event.date, when)
        day_diff = day_difference(event.date, when)

        if date_match:
            date_term = s.date_weight
        else:
            date_term = max(-s.max_date_penalty, -s.date_penalty_per_day * day_diff)

        scored = ScoredEvent(
            event=event,
            name_score=name_score,
            venue_score=venue_score,
            date_match=date_match,
            day_diff=day_diff,
            score=s.name_weight * name_score + s.venue_weight * venue_score + date_term,
        )

        if name_score < s.min_name_score or venue_score < s.min_venue_score:
            scored.eligible = False
        elif date_match and has_time_of_day(event.date) and has_time_of_day(when) \
                and not same_instant(event.date, when):
            # Same artist, venue and day but another start time: a second show
            scored.eligible = False

        scored.exact = (
            scored.eligible
            and name_score == 1.0
            and date_match
            and venue_score > s.exact_match_min_venue_score
        )
        return scored

    def rank(self, candidate: CandidateEvent, when: datetime, events: List[Event]) -> List[ScoredEvent]:
        """All eligible events above the threshold, best first."""
        scored = [self.score(event, candidate.name, candidate.venue, when) for event in events]
        for item in scored:
            logger.debug(
                "Match details",
                existing=item.event.name,
                incoming=candidate.name,
                name_score=round(item.name_score, 3),
                venue_score=round(item.venue_score, 3),
                date_match=item.date_match,
                score=round(item.score, 3),
                eligible=item.eligible,
            )
        ranked = [
            item for item in scored
            if item.eligible and (item.exact or item.score > self.settings.match_threshold)
        ]
        return sorted(ranked, key=lambda item: item.sort_key)

    def find_match(
        self,
        candidate: CandidateEvent,
        when: datetime = None,
        events: List[Event] = None,
    ) -> Optional[MatchResult]:
        """
        Find the stored event ``candidate`` refers to.

        Args:
            candidate: scraped event
            when: the candidate's normalized date; parsed from ``candidate.date`` when omitted
            events: snapshot to match against; loaded from the store when omitted

        Returns:
            A MatchResult, or None when the candidate is a new event

        Raises:
            DateParseError: the candidate date is unreadable
            AmbiguousMatchError: distinct events at different venues tie for the best score
        """
        if when is None:
            when = self.normalizer.normalize(candidate.date, candidate.source)
        if events is None:
            start_of_day = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
            events = self.store.find_upcoming_events(start_of_day)

        ranked = self.rank(candidate, when, events)
        if not ranked:
            logger.info(f"No match found for \"{candidate.name}\" at {candidate.venue}")
            return None

        exact = [item for item in ranked if item.exact]
        best = self._pick(candidate, exact or ranked)

        has_source_link = any(
            link.source == candidate.source for link in self.store.find_event_links(best.event.id)
        )
        result = MatchResult(
            event=best.event,
            score=best.score,
            has_source_link=has_source_link,
            exact=best.exact,
        )

        new_name = preferred_name(best.event.name, candidate.name)
        if new_name:
            logger.info(f"Updating event name from \"{best.event.name}\" to \"{new_name}\"", event_id=best.event.id)
            self.store.update_event_name(best.event.id, new_name)
            result.event = best.event.model_copy(update={"name": new_name})
            result.renamed_to = new_name

        logger.info(
            f"Found matching event: \"{result.event.name}\" (score: {best.score:.2f})",
            event_id=best.event.id,
            exact=best.exact,
            has_source_link=has_source_link,
        )
        return result

    @staticmethod
    def _pick(candidate: CandidateEvent, ranked: List[ScoredEvent]) -> ScoredEvent:
        """Take the best entry; refuse to guess between tied events at different venues."""
        top = ranked[0]
        tied = [item for item in ranked if abs(item.score - top.score) < _TIE_EPSILON]
        if len(tied) > 1 and any(not venues_overlap(top.event.venue, item.event.venue) for item in tied[1:]):
            raise AmbiguousMatchError(candidate.name, [item.event.id for item in tied], top.score)
        return top
