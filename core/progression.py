"""Conversation phase transitions and clarification prompts.

collecting -> confirming -> complete. The machine is not monotonic: any merge
that drops a required field sends the conversation back to collecting.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from core.completeness import completion_percentage, get_missing_fields
from core.state import ExtractedParams, SearchParameters

logger = logging.getLogger(__name__)


class ConversationPhase(str, Enum):
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    COMPLETE = "complete"


FIELD_LABELS = {
    "origin_code": "city or airport you're flying from",
    "destination_code": "city or airport you're flying to",
    "departure_date": "date you'd like to depart",
    "return_date": "date you'd like to fly back",
    "multi_city_segments": "legs of your multi-city trip (each with a from, to and date)",
    "trip_type": "kind of trip (return, one way or multi-city)",
}

CLARIFICATION_TEMPLATE = "To continue your search, could you tell me the {label}?"

# Cities served by more than one commercial airport
MULTI_AIRPORT_CITIES: Dict[str, List[str]] = {
    "london": ["LHR", "LGW", "STN", "LTN", "LCY"],
    "new york": ["JFK", "LGA", "EWR"],
    "tokyo": ["NRT", "HND"],
    "paris": ["CDG", "ORY"],
    "chicago": ["ORD", "MDW"],
}


@dataclass
class ProgressionDecision:
    phase: ConversationPhase
    missing_fields: List[str] = field(default_factory=list)
    completion: int = 0
    prompt: Optional[str] = None


def next_conversation_phase(
    current: Optional[ConversationPhase],
    merged: SearchParameters,
    booking_url_generated: bool = False,
) -> ConversationPhase:
    """Phase after a merge.

    Incomplete always means collecting. A complete record reaches complete only
    when a booking URL exists for this exact parameter set; otherwise it waits
    in confirming, whatever the current phase is.
    """
    if get_missing_fields(merged):
        return ConversationPhase.COLLECTING
    if booking_url_generated:
        return ConversationPhase.COMPLETE
    return ConversationPhase.CONFIRMING


def clarification_question(field_name: str) -> str:
    label = FIELD_LABELS.get(field_name, field_name.replace("_", " "))
    return CLARIFICATION_TEMPLATE.format(label=label)


def airports_for_city(city: Optional[str]) -> List[str]:
    if not city:
        return []
    return MULTI_AIRPORT_CITIES.get(city.strip().lower(), [])


def disambiguation_question(extracted: Optional[ExtractedParams]) -> Optional[str]:
    """Ask which airport when the extraction names a multi-airport city but no specific airport."""
    if extracted is None:
        return None
    candidates = airports_for_city(extracted.destination_name)
    if not candidates or extracted.destination_code in candidates:
        return None
    city = extracted.destination_name.strip().title()
    return (
        f"{city} has several airports ({', '.join(candidates)}). "
        "Which one would you like to fly into, or is any of them fine?"
    )


def decide(
    current: Optional[ConversationPhase],
    merged: SearchParameters,
    extracted: Optional[ExtractedParams] = None,
    booking_url_generated: bool = False,
) -> ProgressionDecision:
    """Next phase plus the single prompt to show the user this turn."""
    phase = next_conversation_phase(current, merged, booking_url_generated)
    missing = get_missing_fields(merged)

    prompt = disambiguation_question(extracted)
    if prompt is None and missing:
        prompt = clarification_question(missing[0])

    if current is not None and ConversationPhase(current) is not phase:
        logger.info("Conversation phase %s -> %s", ConversationPhase(current).value, phase.value)

    return ProgressionDecision(
        phase=phase,
        missing_fields=missing,
        completion=completion_percentage(merged),
        prompt=prompt,
    )
