from datetime import datetime

import pytest
from freezegun import freeze_time

from ticket_aggregator.core.exceptions import DateParseError
from ticket_aggregator.matching.dates import (
    DateNormalizer,
    clean_date_text,
    day_difference,
    format_timestamp,
    has_time_of_day,
    month_number,
    same_day,
    same_instant,
    to_24_hour,
)


@pytest.fixture
def normalizer(clock):
    return DateNormalizer(clock)


def test_stubhub_full_date(normalizer):
    assert normalizer.normalize("Jan 17 2025 7:00 PM", "stubhub") == datetime(2025, 1, 17, 19, 0)


def test_vividseats_weekday_and_glued_meridiem(normalizer):
    assert normalizer.normalize("Jan 17 Fri 7:00pm", "vividseats") == datetime(2025, 1, 17, 19, 0)


def test_vividseats_day_and_hour_run_together(normalizer):
    assert normalizer.normalize("Dec 2510:00pm", "vividseats") == datetime(2025, 12, 25, 22, 0)
    assert normalizer.normalize("Dec 510:00pm", "vividseats") == datetime(2025, 12, 5, 22, 0)


def test_stubhub_day_before_month(normalizer):
    assert normalizer.normalize("25 Dec 10:00 PM", "stubhub") == datetime(2025, 12, 25, 22, 0)


@pytest.mark.parametrize("text", [
    "2025-01-17T19:00:00Z",
    "2025-01-17T19:00:00.000-05:00",
    "2025-01-17 19:00:00",
    "2025-01-17T19:00",
])
def test_iso_strings_keep_wall_clock(normalizer, text):
    assert normalizer.normalize(text) == datetime(2025, 1, 17, 19, 0)


def test_iso_date_only_is_midnight(normalizer):
    assert normalizer.normalize("2025-01-17") == datetime(2025, 1, 17, 0, 0)


def test_decorations_are_ignored(normalizer):
    text = "\U0001f525 Only 3 tickets left Sat, Jan 18 2025 @ 8:30 PM"
    assert normalizer.normalize(text, "stubhub") == datetime(2025, 1, 18, 20, 30)


def test_clean_date_text():
    assert clean_date_text("Fri, Jan 17  7:00PM") == "jan 17 7:00 pm"
    assert clean_date_text("Jan 17Fri7:00pm") == "jan 17 7:00 pm"


def test_same_reading_same_output_across_dialects(normalizer):
    readings = [
        normalizer.normalize_string("Jan 17 2025 7:00 PM", "stubhub"),
        normalizer.normalize_string("Jan 17 Fri 7:00pm", "vividseats"),
        normalizer.normalize_string("2025-01-17T19:00:00Z", "google"),
        normalizer.normalize_string("01/17/2025 7:00 PM"),
        normalizer.normalize_string("Friday, January 17th 2025 at 7 PM"),
    ]
    assert set(readings) == {"2025-01-17 19:00:00"}


def test_normalize_is_deterministic(normalizer):
    text = "Jan 17 Fri 7:00pm"
    assert normalizer.normalize(text, "vividseats") == normalizer.normalize(text, "vividseats")


def test_year_inferred_as_next_occurrence():
    normalizer = DateNormalizer(lambda: datetime(2025, 3, 1, 12, 0))
    assert normalizer.normalize("Jan 17 7:00 PM", "stubhub") == datetime(2026, 1, 17, 19, 0)
    assert normalizer.normalize("Mar 1 7:00 PM", "stubhub") == datetime(2025, 3, 1, 19, 0)
    assert normalizer.normalize("Mar 1 9:00 AM", "stubhub") == datetime(2026, 3, 1, 9, 0)


def test_year_inference_without_time_compares_dates():
    normalizer = DateNormalizer(lambda: datetime(2025, 3, 1, 12, 0))
    assert normalizer.normalize("Mar 1") == datetime(2025, 3, 1, 0, 0)
    assert normalizer.normalize("Feb 28") == datetime(2026, 2, 28, 0, 0)


@freeze_time("2025-06-01 10:00:00")
def test_default_clock_is_now():
    assert DateNormalizer().normalize("Jan 17 7:00 PM", "stubhub") == datetime(2026, 1, 17, 19, 0)


def test_relative_phrases(normalizer):
    assert normalizer.normalize("Today 7:00 PM") == datetime(2025, 1, 10, 19, 0)
    assert normalizer.normalize("Tomorrow, 8 PM") == datetime(2025, 1, 11, 20, 0)
    assert normalizer.normalize("Tomorrow") == datetime(2025, 1, 11, 0, 0)


def test_twelve_hour_edges(normalizer):
    assert normalizer.normalize("Jan 17 2025 12:00 AM") == datetime(2025, 1, 17, 0, 0)
    assert normalizer.normalize("Jan 17 2025 12:30 PM") == datetime(2025, 1, 17, 12, 30)
    assert to_24_hour(7, "pm") == 19
    assert to_24_hour(12, "am") == 0
    assert to_24_hour(19, None) == 19


def test_month_table():
    assert month_number("Jan") == 1
    assert month_number("SEPT") == 9
    assert month_number("december") == 12
    assert month_number("Janx") is None
    assert month_number("Doors") is None


@pytest.mark.parametrize("text", ["Foo 17 2025 7:00 PM", "doors at seven", "17/01/2025", "Feb 30 2025 8:00 PM"])
def test_unparseable_strings_raise(normalizer, text):
    with pytest.raises(DateParseError) as exc_info:
        normalizer.normalize(text, "stubhub")
    assert exc_info.value.text == text
    assert exc_info.value.source == "stubhub"


def test_empty_string_raises(normalizer):
    with pytest.raises(DateParseError):
        normalizer.normalize("   ")


def test_equality_helpers():
    matinee = datetime(2025, 1, 17, 15, 0)
    evening = datetime(2025, 1, 17, 20, 0)
    assert same_day(matinee, evening)
    assert not same_instant(matinee, evening)
    assert same_instant(evening, datetime(2025, 1, 17, 20, 0))
    assert not same_day(evening, datetime(2025, 1, 18, 20, 0))
    assert day_difference(matinee, datetime(2025, 1, 19, 15, 0)) == 2.0
    assert not has_time_of_day(datetime(2025, 1, 17))
    assert format_timestamp(evening) == "2025-01-17 20:00:00"


def test_leap_day_without_year_rolls_to_next_leap_year():
    normalizer = DateNormalizer(lambda: datetime(2027, 12, 1, 12, 0))
    assert normalizer.normalize("Feb 29 8:00 PM", "stubhub") == datetime(2028, 2, 29, 20, 0)
    assert normalizer.normalize("Feb 29") == datetime(2028, 2, 29, 0, 0)


def test_leap_day_in_current_leap_year():
    normalizer = DateNormalizer(lambda: datetime(2028, 1, 5, 12, 0))
    assert normalizer.normalize("Feb 29 8:00 PM", "vividseats") == datetime(2028, 2, 29, 20, 0)


def test_time_before_date(normalizer):
    assert normalizer.normalize("7:00 PM Jan 17 2025") == datetime(2025, 1, 17, 19, 0)
    assert normalizer.normalize("19:30 Jan 17 2025", "stubhub") == datetime(2025, 1, 17, 19, 30)
    assert normalizer.normalize_string("8 pm Jan 17") == "2025-01-17 20:00:00"


def test_bare_number_after_year_is_not_a_time(normalizer):
    assert normalizer.normalize("Jan 17 2025 3 shows") == datetime(2025, 1, 17, 0, 0)


@pytest.mark.parametrize("text", ["Jan 17 2025 25:00", "Jan 17 2025 13:00 PM", "Jan 17 9:75 PM"])
def test_impossible_time_raises_instead_of_dropping_it(normalizer, text):
    with pytest.raises(DateParseError):
        normalizer.normalize(text, "stubhub")


@pytest.mark.parametrize("text", ["2025-02-30T19:00:00", "2025-13-01"])
def test_impossible_iso_dates_raise(normalizer, text):
    with pytest.raises(DateParseError):
        normalizer.normalize(text)
