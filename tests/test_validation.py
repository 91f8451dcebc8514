"""Unit tests for the structural and semantic validation profiles."""
from datetime import date, datetime, timedelta, timezone

import pytest

from core.segments import SegmentIntegrityError
from core.state import MultiCitySegment, SearchParameters
from core.validation import (
    SemanticRuleViolation,
    ValidationError,
    check_semantic_rules,
    validate_create_search_parameters,
    validate_multi_city_segment,
    validate_multi_city_segments,
    validate_search_parameters,
    validate_update_search_parameters,
)


def _future(days: int) -> str:
    return (datetime.now(timezone.utc).date() + timedelta(days=days)).isoformat()


def _record(**overrides) -> dict:
    data = {
        "origin_code": "SYD",
        "origin_name": "Sydney",
        "destination_code": "NRT",
        "destination_name": "Tokyo Narita",
        "departure_date": _future(30),
        "return_date": _future(40),
        "trip_type": "return",
        "adults": 2,
        "children": 0,
        "infants": 0,
    }
    data.update(overrides)
    return data


def _segment(order: int, origin: str, destination: str, days: int) -> dict:
    return {
        "sequence_order": order,
        "origin_code": origin,
        "origin_name": origin,
        "destination_code": destination,
        "destination_name": destination,
        "departure_date": _future(days),
    }


def _fields(exc) -> list[str]:
    return [e.field for e in exc.errors]


# ── Semantic profile ─────────────────────────────────────────────────────────

def test_valid_record_passes():
    params = validate_search_parameters(_record())
    assert isinstance(params, SearchParameters)
    assert params.origin_code == "SYD"
    assert params.adults == 2
    assert params.cabin_class is None


def test_defaults_applied():
    params = validate_search_parameters({"origin_code": "SYD"})
    assert params.trip_type == "return"
    assert params.adults == 1
    assert params.children == 0
    assert params.infants == 0
    assert params.is_complete is False


@pytest.mark.parametrize("adults,infants", [(1, 2), (2, 3), (1, 8)])
def test_infants_exceeding_adults_fails(adults, infants):
    with pytest.raises(SemanticRuleViolation) as exc_info:
        validate_search_parameters(_record(adults=adults, infants=infants))
    assert "infants" in _fields(exc_info.value)


@pytest.mark.parametrize("adults,infants", [(1, 0), (1, 1), (3, 3), (9, 8)])
def test_infants_within_adults_passes(adults, infants):
    params = validate_search_parameters(_record(adults=adults, infants=infants))
    assert params.infants == infants


def test_return_before_departure_fails():
    with pytest.raises(SemanticRuleViolation) as exc_info:
        validate_search_parameters(_record(departure_date=_future(40), return_date=_future(30)))
    assert _fields(exc_info.value) == ["return_date"]


def test_return_same_day_fails():
    same = _future(30)
    with pytest.raises(SemanticRuleViolation):
        validate_search_parameters(_record(departure_date=same, return_date=same))


def test_return_order_ignored_for_oneway():
    params = validate_search_parameters(
        _record(trip_type="oneway", departure_date=_future(40), return_date=_future(30))
    )
    assert params.trip_type == "oneway"


def test_same_origin_and_destination_fails():
    with pytest.raises(SemanticRuleViolation) as exc_info:
        validate_search_parameters(_record(destination_code="SYD"))
    assert _fields(exc_info.value) == ["destination_code"]


def test_multicity_needs_two_segments():
    raw = _record(trip_type="multicity", multi_city_segments=[_segment(1, "SYD", "NRT", 30)])
    with pytest.raises(SemanticRuleViolation) as exc_info:
        validate_search_parameters(raw)
    assert "multi_city_segments" in _fields(exc_info.value)


def test_multicity_with_two_segments_passes():
    raw = _record(
        trip_type="multicity",
        multi_city_segments=[_segment(1, "SYD", "NRT", 30), _segment(2, "NRT", "LAX", 35)],
    )
    params = validate_search_parameters(raw)
    assert len(params.multi_city_segments) == 2
    assert isinstance(params.multi_city_segments[0], MultiCitySegment)


def test_semantic_violations_are_batched():
    raw = _record(adults=1, infants=2, destination_code="SYD")
    with pytest.raises(SemanticRuleViolation) as exc_info:
        validate_search_parameters(raw)
    assert set(_fields(exc_info.value)) == {"infants", "destination_code"}


def test_semantic_violation_is_a_validation_error():
    with pytest.raises(ValidationError):
        validate_search_parameters(_record(destination_code="SYD"))


def test_check_semantic_rules_on_record():
    params = SearchParameters(origin_code="SYD", destination_code="NRT", adults=1, infants=0)
    assert check_semantic_rules(params) == []


def test_accepts_search_parameters_instance():
    params = SearchParameters(**_record())
    assert validate_search_parameters(params).destination_code == "NRT"


# ── Structural profile ───────────────────────────────────────────────────────

@pytest.mark.parametrize("code", ["syd", "SY", "SYDN", "S1D"])
def test_bad_iata_code_is_structural(code):
    with pytest.raises(ValidationError) as exc_info:
        validate_search_parameters(_record(origin_code=code))
    assert not isinstance(exc_info.value, SemanticRuleViolation)
    assert _fields(exc_info.value) == ["origin_code"]


@pytest.mark.parametrize("field,value", [
    ("adults", 0), ("adults", 10), ("children", -1), ("children", 9), ("infants", 9),
])
def test_passenger_ranges(field, value):
    with pytest.raises(ValidationError) as exc_info:
        validate_create_search_parameters(_record(**{field: value}))
    assert _fields(exc_info.value) == [field]


@pytest.mark.parametrize("value", ["2026/01/01", "01-01-2026", "tomorrow"])
def test_date_format(value):
    with pytest.raises(ValidationError) as exc_info:
        validate_create_search_parameters(_record(departure_date=value))
    assert _fields(exc_info.value) == ["departure_date"]


def test_impossible_calendar_date():
    with pytest.raises(ValidationError):
        validate_create_search_parameters(_record(departure_date="2099-02-30"), today=date(2099, 1, 1))


def test_unknown_trip_type_and_cabin():
    with pytest.raises(ValidationError) as exc_info:
        validate_create_search_parameters(_record(trip_type="roundtrip", cabin_class="X"))
    assert set(_fields(exc_info.value)) == {"trip_type", "cabin_class"}


def test_date_at_least_fourteen_days_out():
    today = date(2030, 1, 1)
    ok = validate_create_search_parameters(_record(departure_date="2030-01-15", return_date="2030-01-20"), today=today)
    assert ok.departure_date == "2030-01-15"

    with pytest.raises(ValidationError) as exc_info:
        validate_create_search_parameters(_record(departure_date="2030-01-14", return_date="2030-01-20"), today=today)
    assert _fields(exc_info.value) == ["departure_date"]


def test_same_date_ages_out():
    raw = _record(departure_date="2030-03-01", return_date="2030-03-10")
    validate_search_parameters(raw, today=date(2030, 2, 1))
    with pytest.raises(ValidationError):
        validate_search_parameters(raw, today=date(2030, 2, 20))


def test_defaults_to_wall_clock_today():
    with pytest.raises(ValidationError):
        validate_create_search_parameters(_record(departure_date=_future(3)))


def test_create_profile_skips_semantic_rules():
    params = validate_create_search_parameters(_record(adults=1, infants=3))
    assert params.infants == 3


# ── Partial updates ──────────────────────────────────────────────────────────

def test_update_returns_only_supplied_fields():
    assert validate_update_search_parameters({"origin_code": "MEL"}) == {"origin_code": "MEL"}


def test_update_not_rejected_for_missing_or_cross_field():
    update = validate_update_search_parameters({"infants": 3})
    assert update == {"infants": 3}


def test_update_can_set_count_to_zero():
    assert validate_update_search_parameters({"children": 0}) == {"children": 0}


def test_update_can_clear_optional_field():
    assert validate_update_search_parameters({"return_date": None}) == {"return_date": None}


def test_update_rejects_null_count():
    with pytest.raises(ValidationError) as exc_info:
        validate_update_search_parameters({"adults": None})
    assert _fields(exc_info.value) == ["adults"]


def test_update_structural_checks_still_apply():
    with pytest.raises(ValidationError) as exc_info:
        validate_update_search_parameters({"destination_code": "nrt", "adults": 12})
    assert set(_fields(exc_info.value)) == {"destination_code", "adults"}


def test_update_segments_renumbered_in_given_order():
    legs = [_segment(7, "SYD", "NRT", 30), _segment(3, "NRT", "LAX", 40)]
    update = validate_update_search_parameters({"trip_type": "multicity", "multi_city_segments": legs})
    segments = update["multi_city_segments"]
    assert [s.sequence_order for s in segments] == [1, 2]
    assert segments[0].origin_code == "SYD"


def test_update_segments_out_of_order_dates():
    legs = [_segment(1, "SYD", "NRT", 40), _segment(2, "NRT", "LAX", 30)]
    with pytest.raises(SegmentIntegrityError) as exc_info:
        validate_update_search_parameters({"multi_city_segments": legs})
    assert exc_info.value.rule == "chronology"


# ── Segments ─────────────────────────────────────────────────────────────────

def test_segment_valid():
    seg = validate_multi_city_segment(_segment(1, "SYD", "NRT", 30))
    assert seg.sequence_order == 1
    assert seg.destination_code == "NRT"


def test_segment_same_origin_destination():
    with pytest.raises(SemanticRuleViolation) as exc_info:
        validate_multi_city_segment(_segment(1, "SYD", "SYD", 30))
    assert _fields(exc_info.value) == ["destination_code"]


def test_segment_requires_names_and_positive_order():
    raw = _segment(0, "SYD", "NRT", 30)
    raw["origin_name"] = ""
    with pytest.raises(ValidationError) as exc_info:
        validate_multi_city_segment(raw)
    assert set(_fields(exc_info.value)) == {"sequence_order", "origin_name"}


def test_segments_errors_carry_index():
    legs = [_segment(1, "SYD", "NRT", 30), _segment(2, "NRT", "lax", 40)]
    with pytest.raises(ValidationError) as exc_info:
        validate_multi_city_segments(legs)
    assert _fields(exc_info.value) == ["1.destination_code"]


def test_segments_sequence_gap():
    legs = [_segment(1, "SYD", "NRT", 30), _segment(2, "NRT", "LAX", 35), _segment(4, "LAX", "JFK", 40)]
    with pytest.raises(SegmentIntegrityError) as exc_info:
        validate_multi_city_segments(legs)
    assert exc_info.value.rule == "sequence"
    assert exc_info.value.position == 3


def test_segments_connectivity_not_enforced():
    legs = [_segment(1, "SYD", "NRT", 30), _segment(2, "HND", "LAX", 35)]
    segments = validate_multi_city_segments(legs)
    assert len(segments) == 2


def test_segments_must_be_list():
    with pytest.raises(ValidationError):
        validate_multi_city_segments({"origin_code": "SYD"})
