"""Trip-type-dependent completeness rules.

Origin, destination and departure date are always required. A return trip
also needs a return date; a multi-city trip needs at least two segments.
The checklist order is stable because the progression decider phrases its
question from the first missing field.
"""
from typing import Callable, List, Tuple

from core.segments import MIN_MULTICITY_SEGMENTS
from core.state import SearchParameters

_BASE_CHECKS: List[Tuple[str, Callable[[SearchParameters], bool]]] = [
    ("origin_code", lambda p: bool(p.origin_code)),
    ("destination_code", lambda p: bool(p.destination_code)),
    ("departure_date", lambda p: bool(p.departure_date)),
]

_TRIP_TYPE_CHECKS = {
    "return": [("return_date", lambda p: bool(p.return_date))],
    "multicity": [
        ("multi_city_segments", lambda p: len(p.multi_city_segments or []) >= MIN_MULTICITY_SEGMENTS),
    ],
    "oneway": [],
}


def _checklist(params: SearchParameters) -> List[Tuple[str, Callable[[SearchParameters], bool]]]:
    if params.trip_type not in _TRIP_TYPE_CHECKS:
        # unknown trip type can never be satisfied
        return _BASE_CHECKS + [("trip_type", lambda p: False)]
    return _BASE_CHECKS + _TRIP_TYPE_CHECKS[params.trip_type]


def get_missing_fields(params: SearchParameters) -> List[str]:
    return [name for name, satisfied in _checklist(params) if not satisfied(params)]


def is_complete(params: SearchParameters) -> bool:
    return not get_missing_fields(params)


def completion_percentage(params: SearchParameters) -> int:
    checks = _checklist(params)
    done = sum(1 for _, satisfied in checks if satisfied(params))
    return round(done / len(checks) * 100)
