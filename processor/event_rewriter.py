"""Event rewriter building display titles from description metadata."""
import html
import logging
from typing import Optional

from processor.description_parser import parse_event_metadata
from processor.models import (
    EventMetadata,
    FilterContext,
    OutputEvent,
    RawEvent,
    SourceKind,
)

logger = logging.getLogger(__name__)

TITLE_SEPARATOR = ' - '


def unescape_html(text: str) -> str:
    """Decode HTML entities such as ``&amp;`` in user supplied text."""
    return html.unescape(text)


class EventRewriter:
    """Rewrites the summary of feed events from their description."""

    def rewrite(
        self,
        event: RawEvent,
        context: FilterContext
    ) -> Optional[OutputEvent]:
        """
        Rewrite a single event according to a feed's filter context.

        Events whose description cannot be parsed are passed through
        unchanged; they are never dropped.

        Args:
            event: Event tokenized from the feed
            context: Ignore set and title overrides of the feed

        Returns:
            Rewritten OutputEvent, or None if the subject is ignored
        """
        if event.description is None:
            return self.pass_through(event)

        metadata = parse_event_metadata(
            event.description, SourceKind.DESCRIPTION
        )
        if metadata is None:
            return self.pass_through(event)

        if metadata.code in context.ignored_codes:
            return None

        return OutputEvent(
            uid=event.uid,
            start=event.start,
            end=event.end,
            location=event.location,
            description=event.description,
            summary=self.display_title(metadata, context),
            is_cancelled=metadata.is_cancelled
        )

    def display_title(
        self,
        metadata: EventMetadata,
        context: FilterContext
    ) -> str:
        """Join the effective title with the memo and session type."""
        override = context.title_overrides.get(metadata.code)
        title = unescape_html(override) if override is not None else metadata.title

        parts = [title]
        if metadata.memo is not None:
            parts.append(metadata.memo)
        if metadata.session_type is not None:
            parts.append(metadata.session_type)
        return TITLE_SEPARATOR.join(parts)

    @staticmethod
    def pass_through(event: RawEvent) -> OutputEvent:
        return OutputEvent(
            uid=event.uid,
            start=event.start,
            end=event.end,
            location=event.location,
            description=event.description,
            summary=event.summary,
            is_cancelled=event.is_cancelled
        )
