"""
Idempotent attachment of marketplace links to events.
"""
from dataclasses import dataclass
from typing import Optional

from ..core.logging import get_logger
from ..infrastructure.store import EventStore

logger = get_logger(__name__)


@dataclass
class LinkOutcome:
    url: str
    created: bool


class LinkReconciler:
    """Keeps at most one link per (event, source); never rewrites an existing one."""

    def __init__(self, store: EventStore):
        self.store = store

    def existing_url(self, event_id: str, source: str) -> Optional[str]:
        for link in self.store.find_event_links(event_id):
            if link.source == source:
                return link.url
        return None

    def ensure_link(self, event_id: str, source: str, url: str) -> LinkOutcome:
        """Insert the link unless the event already has one for ``source``; return the stored url."""
        source = source.lower()
        current = self.existing_url(event_id, source)
        if current is not None:
            logger.debug(f"Link for {source} already exists", event_id=event_id, url=current)
            return LinkOutcome(url=current, created=False)

        created = self.store.insert_event_link(event_id, source, url)
        if not created:
            # Another writer got there between the lookup and the insert
            current = self.existing_url(event_id, source) or url
            return LinkOutcome(url=current, created=False)

        logger.info(f"Added {source} link", event_id=event_id, url=url)
        return LinkOutcome(url=url, created=True)

    def replace_link(self, event_id: str, source: str, url: str) -> LinkOutcome:
        """Swap a stale url for a new one (explicit delete, then insert)."""
        source = source.lower()
        if self.existing_url(event_id, source) == url:
            return LinkOutcome(url=url, created=False)
        self.store.delete_event_link(event_id, source)
        self.store.insert_event_link(event_id, source, url)
        logger.info(f"Replaced {source} link", event_id=event_id, url=url)
        return LinkOutcome(url=url, created=True)
