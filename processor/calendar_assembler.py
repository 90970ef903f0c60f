"""Calendar assembler merging several feeds into one list of events."""
import functools
import logging
from datetime import date
from typing import Callable, List, Optional, Sequence, Set, Tuple

from processor.event_rewriter import EventRewriter
from processor.models import FilterContext, OutputEvent, Preference, RawEvent

logger = logging.getLogger(__name__)

FetchFunction = Callable[[], List[RawEvent]]
Source = Tuple[FetchFunction, FilterContext]
EventIdentity = Tuple[Optional[str], date, Optional[date]]


class CalendarAssembler:
    """Builds the cleaned calendar of one request."""

    def __init__(self, rewriter: Optional[EventRewriter] = None):
        self.rewriter = rewriter or EventRewriter()

    def assemble(
        self,
        sources: Sequence[Source],
        dedup: bool = False
    ) -> List[OutputEvent]:
        """
        Fetch and rewrite every source, in order.

        The first fetch error aborts the whole assembly: nothing is returned
        for the sources already processed.

        Args:
            sources: Ordered (fetch, filter context) pairs
            dedup: Drop events whose title and time range were already seen

        Returns:
            Rewritten events, in source order then feed order

        Raises:
            CalendarError: If any source cannot be fetched
        """
        events = []

        for index, (fetch, context) in enumerate(sources, start=1):
            raw_events = fetch()
            dropped = 0

            for raw_event in raw_events:
                output_event = self.rewriter.rewrite(raw_event, context)
                if output_event is None:
                    dropped += 1
                    continue
                events.append(output_event)

            logger.info(
                f"Source {index}/{len(sources)}: {len(raw_events)} events, "
                f"{dropped} ignored"
            )

        if dedup:
            events = self.deduplicate(events)

        logger.info(f"Assembled calendar with {len(events)} events")
        return events

    def build_calendar(
        self,
        preference: Preference,
        fetch_events: Callable[[str], List[RawEvent]],
        dedup: bool = False
    ) -> List[OutputEvent]:
        """
        Assemble the calendar of a saved preference.

        Args:
            preference: Feeds and their ignore/override rules
            fetch_events: Function downloading and tokenizing one feed URL
            dedup: Whether to suppress duplicates across feeds
        """
        sources = [
            (functools.partial(fetch_events, calendar.url),
             calendar.filter_context())
            for calendar in preference
        ]
        return self.assemble(sources, dedup=dedup)

    def deduplicate(self, events: List[OutputEvent]) -> List[OutputEvent]:
        """Keep the first of the events sharing title, start and end."""
        seen: Set[EventIdentity] = set()
        unique_events = []

        for event in events:
            identity = self.event_identity(event)
            if identity in seen:
                continue
            seen.add(identity)
            unique_events.append(event)

        if len(unique_events) < len(events):
            logger.info(
                f"Removed {len(events) - len(unique_events)} duplicate events"
            )
        return unique_events

    @staticmethod
    def event_identity(event: OutputEvent) -> EventIdentity:
        # uid differs for the same session served by two feeds
        return (event.summary, event.start, event.end)
