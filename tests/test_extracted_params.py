"""Tests for ExtractedParams and the Claude-backed extractor."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import ExtractionConfig
from core.state import ExtractedParams, SearchParameters
from providers.real.anthropic_extractor import RECORD_PARAMETERS_DEF, AnthropicParameterExtractor


def _tool_response(payload: dict):
    block = MagicMock()
    block.type = "tool_use"
    block.name = RECORD_PARAMETERS_DEF["name"]
    block.input = payload
    resp = MagicMock()
    resp.stop_reason = "tool_use"
    resp.content = [block]
    return resp


def _text_response(text: str):
    block = MagicMock()
    block.type = "text"
    block.text = text
    resp = MagicMock()
    resp.stop_reason = "end_turn"
    resp.content = [block]
    return resp


def _client(response):
    client = MagicMock()
    client.messages = MagicMock()
    client.messages.create = AsyncMock(return_value=response)
    return client


def _extractor(client, history_window=20):
    config = ExtractionConfig(model="test-model", temperature=0.0, max_tokens=512, history_window=history_window)
    return AnthropicParameterExtractor(config, client=client)


# ── ExtractedParams ───────────────────────────────────────────────────────────

def test_defaults_are_empty():
    p = ExtractedParams()
    assert p.origin_code is None
    assert p.adults is None
    assert p.multi_city_segments is None
    assert p.is_empty()
    assert p.supplied_fields() == []


def test_supplied_fields():
    p = ExtractedParams(origin_code="SYD", adults=2, multi_city_segments=[])
    assert p.supplied_fields() == ["origin_code", "adults"]
    assert not p.is_empty()


def test_from_dict_normalises():
    p = ExtractedParams.from_dict({
        "origin_code": " syd ",
        "destination_code": "nrt",
        "cabin_class": "c",
        "trip_type": "OneWay",
        "adults": "2",
        "children": "lots",
        "seat": "window",
    })
    assert p.origin_code == "SYD"
    assert p.destination_code == "NRT"
    assert p.cabin_class == "C"
    assert p.trip_type == "oneway"
    assert p.adults == 2
    assert p.children is None
    assert not hasattr(p, "seat")


def test_from_dict_drops_unknown_trip_type():
    assert ExtractedParams.from_dict({"trip_type": "Round Trip"}).trip_type is None
    assert ExtractedParams.from_dict({"trip_type": " MULTICITY "}).trip_type == "multicity"


@pytest.mark.asyncio
async def test_fenced_json_unknown_trip_type_dropped():
    text = "```json\n" + json.dumps({"trip_type": "round trip", "origin_code": "SYD"}) + "\n```"
    params = await _extractor(_client(_text_response(text))).extract("SYD round trip", [], None)
    assert params.trip_type is None
    assert params.origin_code == "SYD"


def test_from_dict_blank_code_is_none():
    assert ExtractedParams.from_dict({"origin_code": "  "}).origin_code is None


def test_from_dict_rejects_non_list_segments():
    assert ExtractedParams.from_dict({"multi_city_segments": "SYD-NRT"}).multi_city_segments is None


def test_from_dict_non_dict():
    assert ExtractedParams.from_dict(None).is_empty()
    assert ExtractedParams.from_dict(["SYD"]).is_empty()


def test_round_trip_through_json():
    p = ExtractedParams(origin_code="SYD", multi_city_segments=[{"origin_code": "SYD"}])
    assert ExtractedParams.from_dict(json.loads(json.dumps(p.to_dict()))) == p


# ── AnthropicParameterExtractor ───────────────────────────────────────────────

@pytest.mark.asyncio
async def test_extract_reads_tool_call():
    client = _client(_tool_response({"origin_code": "syd", "destination_code": "NRT", "adults": 2}))
    params = await _extractor(client).extract("Sydney to Narita for two", [], None)

    assert params.origin_code == "SYD"
    assert params.destination_code == "NRT"
    assert params.adults == 2


@pytest.mark.asyncio
async def test_extract_request_shape():
    client = _client(_tool_response({}))
    current = SearchParameters(origin_code="SYD")
    history = [
        {"role": "assistant", "content": "Hi! Where to?"},
        {"role": "system", "content": "internal note"},
        {"role": "user", "content": "From Sydney"},
    ]
    await _extractor(client).extract("to Tokyo", history, current)

    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["max_tokens"] == 512
    assert kwargs["temperature"] == 0.0
    assert kwargs["tool_choice"] == {"type": "tool", "name": "record_search_parameters"}
    assert kwargs["tools"] == [RECORD_PARAMETERS_DEF]
    assert [m["role"] for m in kwargs["messages"]] == ["assistant", "user", "user"]
    assert kwargs["messages"][-1] == {"role": "user", "content": "to Tokyo"}
    assert '"origin_code": "SYD"' in kwargs["system"]


@pytest.mark.asyncio
async def test_extract_trims_history_window():
    client = _client(_tool_response({}))
    history = [{"role": "user", "content": f"msg {i}"} for i in range(10)]
    await _extractor(client, history_window=3).extract("latest", history, None)

    contents = [m["content"] for m in client.messages.create.call_args.kwargs["messages"]]
    assert contents == ["msg 7", "msg 8", "msg 9", "latest"]


@pytest.mark.asyncio
async def test_extract_falls_back_to_fenced_json():
    text = "```json\n" + json.dumps({"destination_code": "LHR"}) + "\n```"
    params = await _extractor(_client(_text_response(text))).extract("London Heathrow", [], None)
    assert params.destination_code == "LHR"


@pytest.mark.asyncio
async def test_extract_unparseable_reply_is_empty():
    params = await _extractor(_client(_text_response("Sorry, I can't help."))).extract("?", [], None)
    assert params.is_empty()


@pytest.mark.asyncio
async def test_extract_propagates_api_errors():
    client = MagicMock()
    client.messages = MagicMock()
    client.messages.create = AsyncMock(side_effect=RuntimeError("overloaded"))
    with pytest.raises(RuntimeError):
        await _extractor(client).extract("SYD to NRT", [], None)
