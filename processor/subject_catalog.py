"""Catalog of the subjects found in a feed."""
import logging
from typing import Dict, Iterable, Optional

from bs4.dammit import EntitySubstitution

from processor.description_parser import parse_event_metadata
from processor.models import EventMetadata, RawEvent, SourceKind

logger = logging.getLogger(__name__)


def _event_metadata(event: RawEvent) -> Optional[EventMetadata]:
    if event.description is not None:
        metadata = parse_event_metadata(event.description, SourceKind.DESCRIPTION)
        if metadata is not None:
            return metadata
    # Older feeds only carry the metadata in the summary
    if event.summary is not None:
        return parse_event_metadata(event.summary, SourceKind.SUMMARY)
    return None


def collect_subjects(events: Iterable[RawEvent]) -> Dict[str, str]:
    """
    Map every subject code of a feed to its title.

    When a code appears with several titles the shortest one is kept.
    Titles are HTML-escaped for the web interface.

    Args:
        events: Events tokenized from one feed

    Returns:
        Dictionary mapping subject code to escaped title
    """
    subjects: Dict[str, str] = {}

    for event in events:
        metadata = _event_metadata(event)
        if metadata is None:
            continue

        known_title = subjects.get(metadata.code)
        if known_title is None or len(metadata.title) < len(known_title):
            subjects[metadata.code] = metadata.title

    logger.info(f"Found {len(subjects)} distinct subjects")
    return {
        code: EntitySubstitution.substitute_html(title)
        for code, title in subjects.items()
    }
