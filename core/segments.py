"""Structural checks and read-only queries over a multi-city segment set.

The three checks are independent passes. Sequence and chronology are enforced
whenever a segment list is persisted; connectivity is advisory and only runs
when a caller asks for it.
"""
from datetime import date
from typing import Iterable, List, Optional

from core.state import MultiCitySegment

MIN_MULTICITY_SEGMENTS = 2


class SegmentIntegrityError(Exception):
    """Raised when a segment set has a sequence gap, a date out of order, or a broken connection."""

    def __init__(self, rule: str, message: str, position: Optional[int] = None):
        self.rule = rule
        self.position = position
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"rule": self.rule, "position": self.position, "message": str(self)}


def sort_segments(segments: Iterable[MultiCitySegment]) -> List[MultiCitySegment]:
    return sorted(segments, key=lambda s: s.sequence_order)


def _parse(value: str, position: int) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise SegmentIntegrityError(
            "chronology",
            f"Segment {position} has an unreadable departure date: {value!r}",
            position,
        )


def check_sequence(segments: Iterable[MultiCitySegment]) -> None:
    """Sorted sequence_order values must be exactly 1..N."""
    for i, seg in enumerate(sort_segments(segments), start=1):
        if seg.sequence_order != i:
            raise SegmentIntegrityError(
                "sequence",
                f"Invalid segment sequence. Expected sequence order {i}, got {seg.sequence_order}",
                i,
            )


def check_chronology(segments: Iterable[MultiCitySegment]) -> None:
    """Each departure must be strictly later than the one before it."""
    ordered = sort_segments(segments)
    for i in range(1, len(ordered)):
        prev = _parse(ordered[i - 1].departure_date, i)
        current = _parse(ordered[i].departure_date, i + 1)
        if current <= prev:
            raise SegmentIntegrityError(
                "chronology",
                f"Multi-city segment dates must be in chronological order. "
                f"Segment {i + 1} date must be after segment {i} date",
                i + 1,
            )


def check_connectivity(segments: Iterable[MultiCitySegment]) -> None:
    """Each segment must depart from the airport the previous one arrived at."""
    ordered = sort_segments(segments)
    for i in range(1, len(ordered)):
        prev_destination = ordered[i - 1].destination_code
        current_origin = ordered[i].origin_code
        if prev_destination != current_origin:
            raise SegmentIntegrityError(
                "connectivity",
                f"Multi-city segments must connect. Segment {i + 1} origin ({current_origin}) "
                f"must match segment {i} destination ({prev_destination})",
                i + 1,
            )


def check_itinerary(segments: Iterable[MultiCitySegment]) -> None:
    """Full multi-city check: at least two segments, contiguous, chronological and connected."""
    segments = list(segments)
    if len(segments) < MIN_MULTICITY_SEGMENTS:
        raise SegmentIntegrityError(
            "count",
            f"Multi-city trips must have at least {MIN_MULTICITY_SEGMENTS} segments",
        )
    check_sequence(segments)
    check_chronology(segments)
    check_connectivity(segments)


def journey_duration_days(segments: Iterable[MultiCitySegment]) -> int:
    """Days between the first and last departure in sequence order; 0 for one segment or none."""
    ordered = sort_segments(segments)
    if len(ordered) <= 1:
        return 0
    try:
        start = date.fromisoformat(ordered[0].departure_date)
        end = date.fromisoformat(ordered[-1].departure_date)
    except (TypeError, ValueError):
        return 0
    return (end - start).days


def visited_airports(segments: Iterable[MultiCitySegment]) -> List[str]:
    """Distinct airport codes in the order the itinerary first touches them."""
    seen: List[str] = []
    for seg in sort_segments(segments):
        for code in (seg.origin_code, seg.destination_code):
            if code and code not in seen:
                seen.append(code)
    return seen
