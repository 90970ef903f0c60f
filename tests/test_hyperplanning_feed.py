"""Unit tests for HyperplanningFeedFetcher."""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import responses
from requests.exceptions import Timeout

from feed.hyperplanning_feed import HyperplanningFeedFetcher
from feed.ical_writer import build_ical_event
from processor.errors import (
    EmptySourceCalendar,
    NotHyperplanningURL,
    SourceUnreachable,
)
from processor.event_rewriter import EventRewriter
from processor.models import FilterContext

FEED_URL = "https://hplanning.example.fr/Telechargements/ical/Edt.ics"

SAMPLE_ICS = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//Index Education//HYPERPLANNING//FR\r\n"
    "BEGIN:VTIMEZONE\r\n"
    "TZID:Europe/Paris\r\n"
    "BEGIN:STANDARD\r\n"
    "DTSTART:19701025T030000\r\n"
    "TZOFFSETFROM:+0200\r\n"
    "TZOFFSETTO:+0100\r\n"
    "END:STANDARD\r\n"
    "END:VTIMEZONE\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:Cours-1-Index-Education\r\n"
    "DTSTAMP:20240110T120000Z\r\n"
    "DTSTART:20240115T080000Z\r\n"
    "DTEND:20240115T100000Z\r\n"
    "SUMMARY:B-INFO-204 - Algorithms - TD\r\n"
    "LOCATION:R101\r\n"
    "DESCRIPTION:Matière : B-INFO-204 - Algorithms\\nSalle : R101\\nType : TD\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:Cours-2-Index-Education\r\n"
    "DTSTAMP:20240110T120000Z\r\n"
    "DTSTART:20240116T140000Z\r\n"
    "DTEND:20240116T160000Z\r\n"
    "SUMMARY:Réunion\r\n"
    "STATUS:CANCELLED\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)


@pytest.fixture
def fetcher():
    return HyperplanningFeedFetcher(timeout=30)


class TestHyperplanningFeedFetcher:
    """Test cases for HyperplanningFeedFetcher class."""

    @responses.activate
    def test_fetch_events_success(self, fetcher):
        """Test successful download and tokenization."""
        responses.add(responses.GET, FEED_URL, body=SAMPLE_ICS, status=200)

        events = fetcher.fetch_events(FEED_URL)

        assert len(events) == 2

        first = events[0]
        assert first.uid == "Cours-1-Index-Education"
        assert first.start == datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc)
        assert first.end == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert first.location == "R101"
        assert first.summary == "B-INFO-204 - Algorithms - TD"
        assert "Matière : B-INFO-204 - Algorithms" in first.description
        assert first.is_cancelled is False

        second = events[1]
        assert second.description is None
        assert second.location is None
        assert second.is_cancelled is True

    def test_rejects_non_hyperplanning_url(self, fetcher):
        with pytest.raises(NotHyperplanningURL):
            fetcher.fetch_events("https://calendar.example.com/feed.ics")

    def test_custom_url_fragment(self):
        fetcher = HyperplanningFeedFetcher(url_fragment="https://edt.example")

        assert fetcher.is_hyperplanning_url("https://edt.example/feed.ics")
        assert not fetcher.is_hyperplanning_url(FEED_URL)

    @responses.activate
    @patch('feed.hyperplanning_feed.time.sleep')
    def test_fetch_events_with_retry_success(self, mock_sleep, fetcher):
        """Test retry logic succeeds after initial failures."""
        responses.add(responses.GET, FEED_URL, body="Server Error", status=500)
        responses.add(responses.GET, FEED_URL, body="Server Error", status=500)
        responses.add(responses.GET, FEED_URL, body=SAMPLE_ICS, status=200)

        events = fetcher.fetch_events(FEED_URL)

        assert len(events) == 2
        assert len(responses.calls) == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @responses.activate
    @patch('feed.hyperplanning_feed.time.sleep')
    def test_all_retries_fail(self, mock_sleep, fetcher):
        """Test that SourceUnreachable is raised when all retries fail."""
        for _ in range(3):
            responses.add(responses.GET, FEED_URL, body="Not Found", status=404)

        with pytest.raises(SourceUnreachable) as exc_info:
            fetcher.fetch_events(FEED_URL)

        assert "404" in exc_info.value.reason
        assert exc_info.value.url == FEED_URL
        assert len(responses.calls) == 3

    @responses.activate
    @patch('feed.hyperplanning_feed.time.sleep')
    def test_timeout(self, mock_sleep, fetcher):
        for _ in range(3):
            responses.add(
                responses.GET, FEED_URL, body=Timeout("Request timed out")
            )

        with pytest.raises(SourceUnreachable) as exc_info:
            fetcher.fetch_events(FEED_URL)

        assert "Request timed out" in exc_info.value.reason

    @responses.activate
    def test_empty_content(self, fetcher):
        responses.add(responses.GET, FEED_URL, body="", status=200)

        with pytest.raises(EmptySourceCalendar):
            fetcher.fetch_events(FEED_URL)

    @responses.activate
    def test_content_without_calendar(self, fetcher):
        responses.add(
            responses.GET, FEED_URL, body="<html>Maintenance</html>", status=200
        )

        with pytest.raises(EmptySourceCalendar):
            fetcher.fetch_events(FEED_URL)

    @responses.activate
    def test_calendar_without_events(self, fetcher):
        body = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nEND:VCALENDAR\r\n"
        responses.add(responses.GET, FEED_URL, body=body, status=200)

        assert fetcher.fetch_events(FEED_URL) == []


DURATION_ICS = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:Cours-3-Index-Education\r\n"
    "DTSTAMP:20240101T000000Z\r\n"
    "DTSTART:20240101T080000Z\r\n"
    "DURATION:PT2H\r\n"
    "SUMMARY:Algorithms\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:Cours-4-Index-Education\r\n"
    "DTSTAMP:20240101T000000Z\r\n"
    "DTSTART:20240102T080000Z\r\n"
    "SUMMARY:Algorithms\r\n"
    "LOCATION:R101\r\n"
    "LOCATION:R102\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)


@responses.activate
def test_duration_event_gets_end(fetcher):
    """Test that DTEND is computed from DTSTART and DURATION."""
    responses.add(responses.GET, FEED_URL, body=DURATION_ICS, status=200)

    events = fetcher.fetch_events(FEED_URL)

    assert events[0].start == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
    assert events[0].end == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert events[1].end is None


@responses.activate
def test_duration_event_renders_dtend(fetcher):
    responses.add(responses.GET, FEED_URL, body=DURATION_ICS, status=200)
    rewriter = EventRewriter()

    raw_event = fetcher.fetch_events(FEED_URL)[0]
    component = build_ical_event(rewriter.rewrite(raw_event, FilterContext()))

    assert component.decoded('DTEND') == datetime(
        2024, 1, 1, 10, 0, tzinfo=timezone.utc
    )


@responses.activate
def test_repeated_property_uses_first_value(fetcher):
    """Test that a repeated LOCATION yields its first value."""
    responses.add(responses.GET, FEED_URL, body=DURATION_ICS, status=200)

    events = fetcher.fetch_events(FEED_URL)

    assert events[1].location == "R101"
