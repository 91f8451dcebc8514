"""Validation profiles for search parameters and multi-city segments.

Two profiles per entity:

- structural: type, format and range checks only. Safe for partial input,
  so a PATCH-style update is never rejected for fields it does not set.
- semantic: structural checks plus cross-field business rules. Only applied
  to a record that is meant to be complete.

The minimum-advance rule on dates is evaluated against the validation
instant, so the same literal date can pass today and fail next week.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.config import settings
from core.segments import check_chronology, check_sequence, MIN_MULTICITY_SEGMENTS
from core.state import MultiCitySegment, SearchParameters

logger = logging.getLogger(__name__)

IATA_PATTERN = r"^[A-Z]{3}$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


@dataclass
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class ValidationError(Exception):
    """A value failed a type, format or range check. Carries one entry per offending field."""

    def __init__(self, errors: List[FieldError]):
        self.errors = errors
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in errors))

    def details(self) -> List[dict]:
        return [e.to_dict() for e in self.errors]


class SemanticRuleViolation(ValidationError):
    """A cross-field business rule is broken. All broken rules are reported together."""


# ── Structural schemas ────────────────────────────────────────────────────────

def _today(info: ValidationInfo) -> date:
    ctx = info.context or {}
    return ctx.get("today") or datetime.now(timezone.utc).date()


def _check_advance_date(value: Optional[str], info: ValidationInfo) -> Optional[str]:
    if value is None:
        return value
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        raise ValueError("Date must be a real calendar date in YYYY-MM-DD format")
    min_days = settings.min_advance_days
    if parsed < _today(info) + timedelta(days=min_days):
        raise ValueError(f"Date must be at least {min_days} days from today")
    return value


class MultiCitySegmentIn(BaseModel):
    id: Optional[str] = None
    search_params_id: Optional[str] = None
    sequence_order: int = Field(gt=0)
    origin_code: str = Field(pattern=IATA_PATTERN)
    origin_name: str = Field(min_length=1)
    destination_code: str = Field(pattern=IATA_PATTERN)
    destination_name: str = Field(min_length=1)
    departure_date: str = Field(pattern=DATE_PATTERN)

    model_config = {"extra": "ignore"}

    @field_validator("departure_date")
    @classmethod
    def departure_far_enough(cls, v: str, info: ValidationInfo) -> str:
        return _check_advance_date(v, info)


class SearchParametersIn(BaseModel):
    id: Optional[str] = None
    conversation_id: Optional[str] = None
    origin_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    origin_name: Optional[str] = None
    destination_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    destination_name: Optional[str] = None
    departure_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    return_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    trip_type: Literal["return", "oneway", "multicity"] = "return"
    adults: int = Field(1, ge=1, le=9)
    children: int = Field(0, ge=0, le=8)
    infants: int = Field(0, ge=0, le=8)
    cabin_class: Optional[Literal["Y", "S", "C", "F"]] = None
    multi_city_segments: Optional[List[MultiCitySegmentIn]] = None
    is_complete: bool = False

    model_config = {"extra": "ignore"}

    @field_validator("departure_date", "return_date")
    @classmethod
    def dates_far_enough(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        return _check_advance_date(v, info)


class SearchParametersUpdate(BaseModel):
    """Partial update. Counts default to None but reject an explicit null."""

    origin_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    origin_name: Optional[str] = None
    destination_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    destination_name: Optional[str] = None
    departure_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    return_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    trip_type: Literal["return", "oneway", "multicity"] = None
    adults: int = Field(None, ge=1, le=9)
    children: int = Field(None, ge=0, le=8)
    infants: int = Field(None, ge=0, le=8)
    cabin_class: Optional[Literal["Y", "S", "C", "F"]] = None
    multi_city_segments: Optional[List[Dict[str, Any]]] = None
    is_complete: bool = None

    model_config = {"extra": "ignore"}

    @field_validator("departure_date", "return_date")
    @classmethod
    def dates_far_enough(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        return _check_advance_date(v, info)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _field_errors(exc: PydanticValidationError, prefix: str = "") -> List[FieldError]:
    errors = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"])
        if prefix:
            path = f"{prefix}.{path}" if path else prefix
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append(FieldError(field=path or "$", message=message))
    return errors


def _segment_from_model(model: MultiCitySegmentIn) -> MultiCitySegment:
    return MultiCitySegment(**model.model_dump())


def _segment_rule_errors(seg: MultiCitySegment, prefix: str = "") -> List[FieldError]:
    if seg.origin_code and seg.origin_code == seg.destination_code:
        field = f"{prefix}.destination_code" if prefix else "destination_code"
        return [FieldError(field, "Origin and destination must be different")]
    return []


def check_semantic_rules(params: SearchParameters) -> List[FieldError]:
    """Cross-field business rules. Returns every broken rule; an empty list means the record passes."""
    errors: List[FieldError] = []

    if params.infants > params.adults:
        errors.append(FieldError("infants", "Number of infants cannot exceed number of adults"))

    if params.trip_type == "return" and params.departure_date and params.return_date:
        try:
            if date.fromisoformat(params.return_date) <= date.fromisoformat(params.departure_date):
                errors.append(FieldError("return_date", "Return date must be after departure date"))
        except ValueError:
            pass  # format problems belong to the structural profile

    if params.origin_code and params.destination_code and params.origin_code == params.destination_code:
        errors.append(FieldError("destination_code", "Origin and destination must be different"))

    if params.trip_type == "multicity" and len(params.multi_city_segments) < MIN_MULTICITY_SEGMENTS:
        errors.append(FieldError(
            "multi_city_segments",
            f"Multi-city trips must have at least {MIN_MULTICITY_SEGMENTS} segments",
        ))

    for i, seg in enumerate(params.multi_city_segments):
        errors.extend(_segment_rule_errors(seg, f"multi_city_segments.{i}"))

    return errors


# ── Public validators ─────────────────────────────────────────────────────────

def validate_create_search_parameters(raw: Any, today: Optional[date] = None) -> SearchParameters:
    """Structural profile over a whole record, defaults applied."""
    if isinstance(raw, SearchParameters):
        raw = raw.to_dict()
    try:
        model = SearchParametersIn.model_validate(raw, context={"today": today})
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc))

    data = model.model_dump(exclude={"multi_city_segments"})
    segments = [_segment_from_model(s) for s in model.multi_city_segments or []]
    return SearchParameters(**data, multi_city_segments=segments)


def validate_search_parameters(raw: Any, today: Optional[date] = None) -> SearchParameters:
    """Structural and semantic profile. Use only for a record that is meant to be complete."""
    params = validate_create_search_parameters(raw, today=today)
    errors = check_semantic_rules(params)
    if errors:
        logger.warning("Semantic validation failed: %s", [e.field for e in errors])
        raise SemanticRuleViolation(errors)
    return params


def validate_update_search_parameters(raw: Any, today: Optional[date] = None) -> Dict[str, Any]:
    """Structural profile over a partial update. Returns only the fields the caller supplied.

    A supplied segment list is renumbered 1..N in the order given, then
    validated with validate_multi_city_segments().
    """
    try:
        model = SearchParametersUpdate.model_validate(raw, context={"today": today})
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc))

    update = model.model_dump(exclude_unset=True)
    raw_segments = update.pop("multi_city_segments", None)
    if raw_segments is not None:
        renumbered = [dict(seg, sequence_order=i) for i, seg in enumerate(raw_segments, start=1)]
        update["multi_city_segments"] = validate_multi_city_segments(renumbered, today=today)
    return update


def validate_multi_city_segment(raw: Any, today: Optional[date] = None) -> MultiCitySegment:
    if isinstance(raw, MultiCitySegment):
        raw = raw.to_dict()
    try:
        model = MultiCitySegmentIn.model_validate(raw, context={"today": today})
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc))

    seg = _segment_from_model(model)
    errors = _segment_rule_errors(seg)
    if errors:
        raise SemanticRuleViolation(errors)
    return seg


def validate_multi_city_segments(raw: Any, today: Optional[date] = None) -> List[MultiCitySegment]:
    """Validate every segment, then enforce sequence contiguity and chronology across the set.

    Raises ValidationError for per-segment problems (all segments are reported
    together) and SegmentIntegrityError for problems across the set.
    """
    if not isinstance(raw, list):
        raise ValidationError([FieldError("multi_city_segments", "Segments must be a list")])

    segments: List[MultiCitySegment] = []
    errors: List[FieldError] = []
    semantic: List[FieldError] = []
    for i, item in enumerate(raw):
        if isinstance(item, MultiCitySegment):
            item = item.to_dict()
        try:
            model = MultiCitySegmentIn.model_validate(item, context={"today": today})
        except PydanticValidationError as exc:
            errors.extend(_field_errors(exc, prefix=str(i)))
            continue
        seg = _segment_from_model(model)
        semantic.extend(_segment_rule_errors(seg, prefix=str(i)))
        segments.append(seg)

    if errors:
        raise ValidationError(errors + semantic)
    if semantic:
        raise SemanticRuleViolation(semantic)

    check_sequence(segments)
    check_chronology(segments)
    return segments
