"""Unit tests for the subject catalog."""
from datetime import date

from processor.models import RawEvent
from processor.subject_catalog import collect_subjects


def make_event(description=None, summary=None):
    return RawEvent(
        uid='uid',
        start=date(2024, 1, 15),
        end=None,
        location=None,
        description=description,
        summary=summary
    )


def test_collect_subjects_from_descriptions():
    events = [
        make_event("Matière : B-INFO-204 - Algorithms\\nType : TD"),
        make_event("Matière : C-MATH-101 - Analyse\\nType : CM"),
    ]

    assert collect_subjects(events) == {
        "B-INFO-204": "Algorithms",
        "C-MATH-101": "Analyse",
    }


def test_collect_subjects_keeps_shortest_title():
    events = [
        make_event("Matière : B-INFO-204 - Algorithms and data"),
        make_event("Matière : B-INFO-204 - Algo"),
        make_event("Matière : B-INFO-204 - Algorithms"),
    ]

    assert collect_subjects(events) == {"B-INFO-204": "Algo"}


def test_collect_subjects_falls_back_to_summary():
    """Test that older feeds are read from the summary."""
    events = [
        make_event(summary="ANNULÉ : C-MATH-101 - Analyse - CM"),
        make_event(description="Salle : R101", summary="D-PHYS-300 - Optique - TP"),
    ]

    assert collect_subjects(events) == {
        "C-MATH-101": "Analyse",
        "D-PHYS-300": "Optique",
    }


def test_collect_subjects_escapes_html():
    events = [make_event("Matière : B-INFO-204 - Algo & Structures")]

    assert collect_subjects(events) == {"B-INFO-204": "Algo &amp; Structures"}


def test_collect_subjects_skips_unparsable_events():
    events = [make_event(), make_event("Salle : R101", "Réunion de rentrée")]

    assert collect_subjects(events) == {}
