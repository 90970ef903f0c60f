"""Writer rendering cleaned events as an iCalendar document."""
import datetime as _dt
import logging
from typing import Iterable

from icalendar import Calendar, Event

from processor.models import OutputEvent

logger = logging.getLogger(__name__)

PRODID = '-//Hyperplanning Calendar Cleaner//FR'


def _timestamp(value: _dt.date) -> _dt.datetime:
    """Return a DATE-TIME for DTSTAMP, midnight UTC for all-day values."""
    if isinstance(value, _dt.datetime):
        return value
    return _dt.datetime.combine(value, _dt.time(), tzinfo=_dt.timezone.utc)


def build_ical_event(event: OutputEvent) -> Event:
    """Convert an OutputEvent to a VEVENT component."""
    component = Event()
    component.add('uid', event.uid)
    component.add('dtstamp', _timestamp(event.end or event.start))
    component.add('dtstart', event.start)
    if event.end is not None:
        component.add('dtend', event.end)
    if event.summary is not None:
        component.add('summary', event.summary)
    if event.location is not None:
        component.add('location', event.location)
    if event.description is not None:
        component.add('description', event.description)
    if event.is_cancelled:
        component.add('status', 'CANCELLED')
    return component


def render_calendar(events: Iterable[OutputEvent]) -> bytes:
    """
    Render events as a single VCALENDAR.

    Args:
        events: Events in the order they should appear

    Returns:
        iCalendar document as bytes
    """
    calendar = Calendar()
    calendar.add('prodid', PRODID)
    calendar.add('version', '2.0')

    count = 0
    for event in events:
        calendar.add_component(build_ical_event(event))
        count += 1

    logger.info(f"Rendered calendar with {count} events")
    return calendar.to_ical()
