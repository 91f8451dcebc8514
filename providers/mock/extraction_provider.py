import re
from typing import Dict, List, Optional

from core.state import ExtractedParams, SearchParameters
from providers.base import BaseParameterExtractor

_CODE = r"\b([A-Z]{3})\b"
_DATE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_PLACE = r"([A-Z][a-z]+(?: [A-Z][a-z]+)?)"

_TRIP_TYPES = [
    ("multicity", ("multi-city", "multicity", "multi city")),
    ("oneway", ("one way", "one-way", "oneway")),
    ("return", ("round trip", "round-trip", "return")),
]

_CABINS = [
    ("F", ("first class",)),
    ("C", ("business",)),
    ("S", ("premium",)),
    ("Y", ("economy",)),
]


class MockParameterExtractor(BaseParameterExtractor):
    """Pattern-based stand-in for the language model, used when USE_REAL_APIS is off.

    Understands explicit IATA codes ("from SYD to NRT"), ISO dates, trip-type
    and cabin keywords, and "<n> adults/children/infants".
    """

    async def extract(
        self,
        message: str,
        history: List[Dict[str, str]],
        current: Optional[SearchParameters],
    ) -> ExtractedParams:
        params = ExtractedParams()
        lower = message.lower()

        origin = re.search(r"\bfrom " + _CODE, message)
        destination = re.search(r"\bto " + _CODE, message)
        if origin:
            params.origin_code = origin.group(1)
        if destination:
            params.destination_code = destination.group(1)
        if not origin and not destination:
            codes = re.findall(_CODE, message)
            if len(codes) >= 2:
                params.origin_code, params.destination_code = codes[0], codes[1]

        if not params.destination_code:
            place = re.search(r"\bto " + _PLACE, message)
            if place:
                params.destination_name = place.group(1)

        dates = _DATE.findall(message)
        if dates:
            params.departure_date = dates[0]
        if len(dates) > 1:
            params.return_date = dates[1]

        for trip_type, keywords in _TRIP_TYPES:
            if any(k in lower for k in keywords):
                params.trip_type = trip_type
                break

        for cabin, keywords in _CABINS:
            if any(k in lower for k in keywords):
                params.cabin_class = cabin
                break

        for key, pattern in (
            ("adults", r"(\d+) adults?"),
            ("children", r"(\d+) (?:children|child|kids?)"),
            ("infants", r"(\d+) (?:infants?|babies|baby)"),
        ):
            match = re.search(pattern, lower)
            if match:
                setattr(params, key, int(match.group(1)))

        return params
