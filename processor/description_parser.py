"""Parser for the metadata Hyperplanning packs into event descriptions."""
import logging
import re
from typing import List, Optional, Tuple

from processor.models import EventMetadata, SourceKind

logger = logging.getLogger(__name__)

SUBJECT_CODE_PATTERN = re.compile(r'[A-Z]-[A-Z]{4}-[0-9]{3}')

# Lines are separated by an escaped "\n"; icalendar may already have
# turned it into a real line break.
LINE_SEPARATOR = re.compile(r'\\n|\r?\n')
KEY_SEPARATOR = ' : '
SUBJECT_SEPARATOR = ' - '

CANCELLED_KEY = 'ANNULÉ'
SUBJECT_KEY = 'Matière'
ROOM_KEY = 'Salle'
TYPE_KEY = 'Type'
MEMO_KEY = 'Mémo'
GROUP_KEY = 'TD'

CANCELLED_PREFIX = CANCELLED_KEY + KEY_SEPARATOR
SUBJECT_PUBLIC_PATTERN = re.compile(r'<\.[A-Z0-9]+ - [^<]+> [^,-]+,?')


def is_subject_code(value: str) -> bool:
    """Return True if ``value`` is exactly a subject code like A-BCDE-123."""
    return SUBJECT_CODE_PATTERN.fullmatch(value) is not None


def parse_event_metadata(
    raw_text: str,
    source_kind: SourceKind = SourceKind.DESCRIPTION
) -> Optional[EventMetadata]:
    """
    Extract structured metadata from an event description or summary.

    Args:
        raw_text: Raw DESCRIPTION or SUMMARY text of the event
        source_kind: Which of the two fields ``raw_text`` comes from

    Returns:
        EventMetadata, or None when no subject code and title could be found
    """
    if source_kind is SourceKind.SUMMARY:
        return _parse_summary(raw_text)
    return _parse_description(raw_text)


def _split_line(line: str) -> Optional[Tuple[str, str]]:
    key, separator, value = line.partition(KEY_SEPARATOR)
    if not separator:
        return None
    return key.strip(), value


def _parse_description(description: str) -> Optional[EventMetadata]:
    """
    Parse the "key : value" lines of a description.

    Unknown keys are kept in ``extra``; lines without a separator are skipped.
    """
    is_cancelled = False
    code = None
    title = None
    fields = {}
    extra = {}

    for line in LINE_SEPARATOR.split(description):
        pair = _split_line(line)
        if pair is None:
            continue
        key, value = pair

        if key == CANCELLED_KEY:
            is_cancelled = True
        elif key == SUBJECT_KEY:
            candidate, separator, subject_title = value.partition(
                SUBJECT_SEPARATOR
            )
            if not separator:
                continue
            if is_subject_code(candidate):
                code = candidate
            title = subject_title
        elif key == ROOM_KEY:
            fields['room'] = value
        elif key == TYPE_KEY:
            fields['session_type'] = value
        elif key == MEMO_KEY:
            fields['memo'] = value
        elif key == GROUP_KEY:
            fields['group_label'] = value
        else:
            extra[key] = value

    if code is None or title is None:
        return None

    return EventMetadata(
        code=code,
        title=title,
        is_cancelled=is_cancelled,
        extra=extra,
        **fields
    )


def _strip_subject_public(summary: str) -> Tuple[str, List[str]]:
    """
    Remove the "<.GROUP - audience> label," annotations before the title.

    The matches are removed as one space-joined block followed by "- ";
    annotations that are not laid out that way are left in the text.
    """
    subject_public = SUBJECT_PUBLIC_PATTERN.findall(summary)
    if subject_public:
        summary = summary.replace(' '.join(subject_public) + '- ', '')
    return summary, subject_public


def _parse_summary(summary: str) -> Optional[EventMetadata]:
    """Parse an older "CODE - Title - Type" style summary."""
    is_cancelled = False
    if summary.startswith(CANCELLED_PREFIX):
        summary = summary[len(CANCELLED_PREFIX):]
        is_cancelled = True

    summary, subject_public = _strip_subject_public(summary)

    code, separator, remainder = summary.partition(SUBJECT_SEPARATOR)
    if not separator or not is_subject_code(code):
        return None

    title, separator, session_type = remainder.rpartition(SUBJECT_SEPARATOR)
    if not separator:
        logger.debug(f"Summary without session type: {summary!r}")
        return None

    return EventMetadata(
        code=code,
        title=title,
        is_cancelled=is_cancelled,
        session_type=session_type,
        subject_public=subject_public
    )
