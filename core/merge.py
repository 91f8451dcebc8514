"""Merge one turn's extraction into the stored search record.

Field rule: the extracted value wins when it is truthy, otherwise the stored
value is kept, otherwise a default applies. Counts follow the same rule, so
an extracted 0 never overrides a stored count; setting a count to zero has
to go through an explicit parameters update.
"""
import logging
from typing import Any, Dict, List, Optional

from core.state import TRIP_TYPES, ExtractedParams, MultiCitySegment, SearchParameters

logger = logging.getLogger(__name__)

SCALAR_FIELDS = (
    "origin_code",
    "origin_name",
    "destination_code",
    "destination_name",
    "departure_date",
    "return_date",
    "cabin_class",
)

DEFAULTS = {"trip_type": "return", "adults": 1, "children": 0, "infants": 0}


def _pick(new: Any, old: Any, default: Any = None) -> Any:
    if new:
        return new
    if old:
        return old
    return default


def segments_from_extraction(raw_segments: List[Dict[str, Any]]) -> List[MultiCitySegment]:
    """Turn raw extracted legs into segments numbered 1..N in the order given. No validation.

    A missing display name falls back to the airport code.
    """
    segments = []
    for i, raw in enumerate(raw_segments, start=1):
        if not isinstance(raw, dict):
            raw = {}
        segments.append(
            MultiCitySegment(
                sequence_order=i,
                origin_code=raw.get("origin_code"),
                origin_name=raw.get("origin_name") or raw.get("origin_code"),
                destination_code=raw.get("destination_code"),
                destination_name=raw.get("destination_name") or raw.get("destination_code"),
                departure_date=raw.get("departure_date"),
            )
        )
    return segments


def merge_parameters(extracted: ExtractedParams, current: Optional[SearchParameters]) -> SearchParameters:
    """Combine an extraction with the stored record. Never raises and never validates.

    is_complete is always cleared; completeness is recomputed downstream.
    A non-empty extracted segment list replaces the stored set wholesale.
    """
    base = current or SearchParameters()
    trip_type = extracted.trip_type if extracted.trip_type in TRIP_TYPES else None

    merged = SearchParameters(
        id=base.id,
        conversation_id=base.conversation_id,
        trip_type=_pick(trip_type, base.trip_type, DEFAULTS["trip_type"]),
        adults=_pick(extracted.adults, base.adults, DEFAULTS["adults"]),
        children=_pick(extracted.children, base.children, DEFAULTS["children"]),
        infants=_pick(extracted.infants, base.infants, DEFAULTS["infants"]),
        is_complete=False,
    )
    for name in SCALAR_FIELDS:
        setattr(merged, name, _pick(getattr(extracted, name), getattr(base, name)))

    if extracted.multi_city_segments:
        merged.multi_city_segments = segments_from_extraction(extracted.multi_city_segments)
        for seg in merged.multi_city_segments:
            seg.search_params_id = base.id
    else:
        merged.multi_city_segments = list(base.multi_city_segments)

    logger.debug("Merged fields %s into params %s", extracted.supplied_fields(), base.id)
    return merged
