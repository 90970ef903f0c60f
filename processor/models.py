"""Data models for calendar event processing."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, FrozenSet, List, Optional


class SourceKind(Enum):
    """Event field the metadata is read from."""
    DESCRIPTION = 'description'
    SUMMARY = 'summary'


@dataclass
class RawEvent:
    """Event as tokenized from a source feed."""
    uid: str
    start: date
    end: Optional[date]
    location: Optional[str]
    description: Optional[str]
    summary: Optional[str]
    is_cancelled: bool = False


@dataclass
class EventMetadata:
    """Structured fields extracted from an event description or summary."""
    code: str
    title: str
    is_cancelled: bool = False
    room: Optional[str] = None
    session_type: Optional[str] = None
    memo: Optional[str] = None
    group_label: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)
    subject_public: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FilterContext:
    """Per-feed filtering and relabeling rules."""
    ignored_codes: FrozenSet[str] = frozenset()
    title_overrides: Dict[str, str] = field(default_factory=dict)


@dataclass
class OutputEvent:
    """Event ready to be written to the cleaned calendar."""
    uid: str
    start: date
    end: Optional[date]
    location: Optional[str]
    description: Optional[str]
    summary: Optional[str]
    is_cancelled: bool = False


@dataclass
class CalendarPreference:
    """One feed of a saved preference, with its ignore and override rules."""
    url: str
    ignore: List[str] = field(default_factory=list)
    subjects: Dict[str, str] = field(default_factory=dict)

    def filter_context(self) -> FilterContext:
        return FilterContext(
            ignored_codes=frozenset(self.ignore),
            title_overrides=dict(self.subjects)
        )


# Ordered list of feeds, as stored under one preference id
Preference = List[CalendarPreference]
