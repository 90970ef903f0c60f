"""Fetcher downloading and tokenizing Hyperplanning iCalendar feeds."""
import logging
import time
from typing import List, Optional

import requests
from icalendar import Calendar

from processor.errors import (
    EmptySourceCalendar,
    NotHyperplanningURL,
    SourceUnreachable,
)
from processor.models import RawEvent

logger = logging.getLogger(__name__)


class HyperplanningFeedFetcher:
    """Fetcher for Hyperplanning calendar exports."""

    HEADERS = {'User-Agent': 'Hyperplanning-Calendar-Cleaner/1.0'}
    URL_FRAGMENT = 'https://hplanning'

    def __init__(
        self,
        timeout: int = 30,
        url_fragment: Optional[str] = None,
        max_retries: int = 3
    ):
        """
        Initialize the feed fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            url_fragment: Text every accepted feed URL must contain
            max_retries: Download attempts before giving up (default: 3)
        """
        self.timeout = timeout
        self.url_fragment = url_fragment or self.URL_FRAGMENT
        self.max_retries = max_retries

    def is_hyperplanning_url(self, url: str) -> bool:
        return self.url_fragment in url

    def fetch_events(self, url: str) -> List[RawEvent]:
        """
        Download a feed and return the events of its first calendar.

        Args:
            url: Hyperplanning iCalendar export URL

        Returns:
            List of RawEvent objects, in feed order

        Raises:
            NotHyperplanningURL: If the URL is not a Hyperplanning one
            SourceUnreachable: If the download fails after all retries
            EmptySourceCalendar: If the content holds no calendar
        """
        if not self.is_hyperplanning_url(url):
            raise NotHyperplanningURL()

        content = self._download(url)
        calendar = self._load_calendar(url, content)
        events = self._parse_events(calendar)

        logger.info(f"Fetched {len(events)} events from feed")
        return events

    def _download(self, url: str) -> bytes:
        """
        Download the feed with retry logic.

        Raises:
            SourceUnreachable: If all retry attempts fail
        """
        base_delay = 1  # seconds

        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Downloading feed (attempt {attempt + 1}/{self.max_retries})"
                )
                response = requests.get(
                    url,
                    headers=self.HEADERS,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.content

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Download failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} download attempts failed. Last error: {e}"
                    )
                    raise SourceUnreachable(url, str(e)) from e

    def _load_calendar(self, url: str, content: bytes) -> Calendar:
        """
        Tokenize the downloaded content and return its first calendar.

        Raises:
            EmptySourceCalendar: If no VCALENDAR can be read from the content
        """
        try:
            components = Calendar.from_ical(content, multiple=True)
        except ValueError as e:
            logger.warning(f"Feed content is not iCalendar: {e}")
            raise EmptySourceCalendar(url) from e

        calendars = [
            component for component in components
            if component.name == 'VCALENDAR'
        ]
        if not calendars:
            raise EmptySourceCalendar(url)

        if len(calendars) > 1:
            logger.info(f"Feed holds {len(calendars)} calendars, using the first")
        return calendars[0]

    def _parse_events(self, calendar: Calendar) -> List[RawEvent]:
        """Convert the VEVENT components of a calendar, skipping the others."""
        events = []

        for component in calendar.subcomponents:
            if component.name != 'VEVENT':
                continue
            try:
                events.append(self._parse_event_component(component))
            except (KeyError, ValueError) as e:
                logger.warning(f"Failed to parse event component: {e}")
                continue

        return events

    def _parse_event_component(self, component) -> RawEvent:
        """
        Parse a single VEVENT component.

        Raises:
            KeyError: If the event has no DTSTART
        """
        status = self._text(component, 'STATUS')
        start = component.decoded('DTSTART')

        if 'DTEND' in component:
            end = component.decoded('DTEND')
        elif 'DURATION' in component:
            end = start + component.decoded('DURATION')
        else:
            end = None

        return RawEvent(
            uid=self._text(component, 'UID') or '',
            start=start,
            end=end,
            location=self._text(component, 'LOCATION'),
            description=self._text(component, 'DESCRIPTION'),
            summary=self._text(component, 'SUMMARY'),
            is_cancelled=status is not None and status.upper() == 'CANCELLED'
        )

    @staticmethod
    def _text(component, name: str) -> Optional[str]:
        value = component.get(name)
        # Repeated properties come back as a list
        if isinstance(value, list):
            value = value[0] if value else None
        return str(value) if value is not None else None
