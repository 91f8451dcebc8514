"""Typed parameter records shared by the merge, completeness and progression code."""
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

TRIP_TYPES = ("return", "oneway", "multicity")
CABIN_CLASSES = ("Y", "S", "C", "F")  # economy, premium economy, business, first


@dataclass
class MultiCitySegment:
    sequence_order: int
    origin_code: Optional[str] = None
    origin_name: Optional[str] = None
    destination_code: Optional[str] = None
    destination_name: Optional[str] = None
    departure_date: Optional[str] = None       # ISO 8601 (YYYY-MM-DD)
    id: Optional[str] = None
    search_params_id: Optional[str] = None

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class SearchParameters:
    """The persisted search record, one per conversation."""

    id: Optional[str] = None
    conversation_id: Optional[str] = None
    origin_code: Optional[str] = None
    origin_name: Optional[str] = None
    destination_code: Optional[str] = None
    destination_name: Optional[str] = None
    departure_date: Optional[str] = None       # ISO 8601
    return_date: Optional[str] = None          # ISO 8601
    trip_type: str = "return"
    adults: int = 1
    children: int = 0
    infants: int = 0
    cabin_class: Optional[str] = None
    multi_city_segments: List[MultiCitySegment] = field(default_factory=list)
    is_complete: bool = False

    def to_dict(self) -> dict:
        """Serialize as a plain dict via dataclasses.asdict()."""
        return dataclasses.asdict(self)


@dataclass
class ExtractedParams:
    """Best-effort output of one extraction call. Every field is optional."""

    origin_code: Optional[str] = None
    origin_name: Optional[str] = None
    destination_code: Optional[str] = None
    destination_name: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    trip_type: Optional[str] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    infants: Optional[int] = None
    cabin_class: Optional[str] = None
    multi_city_segments: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    def supplied_fields(self) -> List[str]:
        """Names of the fields the extractor actually filled in."""
        return [k for k, v in self.to_dict().items() if v not in (None, "", [])]

    def is_empty(self) -> bool:
        return not self.supplied_fields()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExtractedParams":
        """Build from an untrusted dict, keeping known keys and dropping the rest."""
        if not isinstance(data, dict):
            return cls()
        known = {f.name for f in dataclasses.fields(cls)}
        params = cls(**{k: v for k, v in data.items() if k in known})

        for key in ("origin_code", "destination_code", "cabin_class"):
            value = getattr(params, key)
            if isinstance(value, str):
                setattr(params, key, value.strip().upper() or None)
        if isinstance(params.trip_type, str):
            params.trip_type = params.trip_type.strip().lower() or None
        if params.trip_type not in TRIP_TYPES:
            params.trip_type = None
        for key in ("adults", "children", "infants"):
            value = getattr(params, key)
            if value is not None and not isinstance(value, int):
                try:
                    setattr(params, key, int(value))
                except (TypeError, ValueError):
                    setattr(params, key, None)
        if params.multi_city_segments is not None and not isinstance(params.multi_city_segments, list):
            params.multi_city_segments = None
        return params
