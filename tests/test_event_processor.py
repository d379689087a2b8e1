from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from ticket_aggregator.services.event_processor import (
    CREATED,
    FAILED,
    MATCHED,
    SKIPPED,
    EventProcessor,
    ScrapedEvent,
)

SHOW = datetime(2025, 1, 17, 19, 0)
STUBHUB_URL = "https://www.stubhub.com/jamie-xx-chicago-tickets/event/1001"
VIVID_URL = "https://www.vividseats.com/jamie-xx-tickets/production/55"


@pytest.fixture
def processor(store, settings, clock):
    return EventProcessor(store, settings, clock)


def test_new_candidate_creates_event_link_and_tickets(processor, store, make_candidate, make_ticket):
    outcome = processor.process(make_candidate(link=STUBHUB_URL), [make_ticket("A"), make_ticket("B")])

    assert outcome.status == CREATED
    assert outcome.date == "2025-01-17 19:00:00"
    assert outcome.link_created
    event = store.events[outcome.event_id]
    assert (event.name, event.venue, event.date, event.category) == ("Jamie xx", "Aragon Ballroom", SHOW, "Concert")
    assert store.links[(outcome.event_id, "stubhub")].url == STUBHUB_URL
    assert store.listing_keys(outcome.event_id, "stubhub") == {"A", "B"}


def test_rerunning_a_crawl_is_idempotent(processor, store, make_candidate, make_ticket):
    batch = [ScrapedEvent(make_candidate(link=STUBHUB_URL), [make_ticket("A"), make_ticket("B")])]

    first = processor.process_batch(batch)
    second = processor.process_batch(batch)

    assert first.summary()[CREATED] == 1
    assert second.summary()[MATCHED] == 1
    assert second.outcomes[0].event_id == first.outcomes[0].event_id
    assert not second.outcomes[0].link_created
    assert not second.outcomes[0].inventory.changed
    assert len(store.events) == 1
    assert len(store.links) == 1
    assert len(store.listings) == 2


def test_two_marketplaces_share_one_event(processor, store, make_candidate):
    stubhub = processor.process(make_candidate(link=STUBHUB_URL))
    vivid = processor.process(make_candidate(
        name="Jamie xx (18+ Event)", date="Jan 17 Fri 7:00pm",
        venue="Byline Bank Aragon Ballroom", source="vividseats", link=VIVID_URL,
    ))

    assert vivid.status == MATCHED
    assert vivid.event_id == stubhub.event_id
    assert len(store.events) == 1
    assert {link.source for link in store.find_event_links(stubhub.event_id)} == {"stubhub", "vividseats"}


def test_tickets_none_leaves_inventory_alone(processor, store, make_candidate):
    event = store.add_event("Jamie xx", SHOW, "Aragon Ballroom")
    store.add_listing(event.id, "stubhub", "A")

    outcome = processor.process(make_candidate(), None)

    assert outcome.inventory is None
    assert store.listing_keys(event.id, "stubhub") == {"A"}


def test_unreadable_date_is_skipped(processor, store, make_candidate):
    outcome = processor.process(make_candidate(date="Date TBA"))

    assert outcome.status == SKIPPED
    assert "Date TBA" in outcome.error
    assert store.events == {}


def test_ambiguous_match_is_skipped(processor, store, make_candidate):
    store.add_event("Jamie xx", SHOW, "The Fillmore")
    store.add_event("Jamie xx", SHOW, "Fillmore Miami Beach")

    outcome = processor.process(make_candidate(venue="Fillmore"))

    assert outcome.status == SKIPPED
    assert len(store.events) == 2


def test_store_failure_does_not_stop_the_batch(processor, store, make_candidate):
    existing = store.add_event("Khruangbin", SHOW, "Thalia Hall")
    store.fail_on["create_event"] = "connection reset"

    report = processor.process_batch([
        ScrapedEvent(make_candidate()),
        ScrapedEvent(make_candidate(name="Khruangbin", venue="Thalia Hall")),
    ])

    assert [outcome.status for outcome in report.outcomes] == [FAILED, MATCHED]
    assert "connection reset" in report.outcomes[0].error
    assert report.outcomes[1].event_id == existing.id


def test_add_ons_are_filtered(processor, make_candidate):
    report = processor.process_batch([
        ScrapedEvent(make_candidate(name="PARKING PASSES ONLY - Jamie xx")),
        ScrapedEvent(make_candidate(name="Jamie xx VIP Package")),
        ScrapedEvent(make_candidate()),
    ])

    assert report.filtered == 2
    assert report.summary()[CREATED] == 1


def test_repeats_within_a_batch_are_collapsed(processor, make_candidate):
    report = processor.process_batch([
        ScrapedEvent(make_candidate()),
        ScrapedEvent(make_candidate(name="Jamie xx (18+ Event)", date="Fri, Jan 17 2025 7:00 PM")),
        ScrapedEvent(make_candidate(date="Jan 18 2025 7:00 PM")),
    ])

    assert report.duplicates == 1
    assert len(report.outcomes) == 2
    assert len(report.event_ids) == 2


def test_concurrent_crawls_create_one_event(processor, store, make_candidate):
    candidates = [
        make_candidate(source="stubhub", link=STUBHUB_URL),
        make_candidate(source="vividseats", date="Jan 17 Fri 7:00pm", link=VIVID_URL),
    ] * 4

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(pool.map(processor.process, candidates))

    assert len(store.events) == 1
    assert {outcome.event_id for outcome in outcomes} == set(store.events)
    assert len(store.links) == 2


def test_event_stored_by_another_writer_is_reported_as_matched(processor, store, make_candidate, monkeypatch):
    existing = store.add_event("Jamie xx", SHOW, "Aragon Ballroom")
    # Snapshot taken before the other writer committed
    monkeypatch.setattr(store, "find_upcoming_events", lambda now: [])

    outcome = processor.process(make_candidate(link=STUBHUB_URL))

    assert outcome.status == MATCHED
    assert outcome.event_id == existing.id
    assert outcome.link_created
    assert len(store.events) == 1
