"""Claude-backed parameter extraction.

One Messages API call per user turn with a forced tool call, so the model
answers with structured input rather than prose. API errors propagate; a
reply that carries no usable parameters yields an empty ExtractedParams.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from anthropic import AsyncAnthropic

from core.config import ExtractionConfig, settings
from core.state import ExtractedParams, SearchParameters
from providers.base import BaseParameterExtractor

logger = logging.getLogger(__name__)

_IATA = {"type": "string", "description": "3-letter IATA airport code, uppercase"}
_DATE = {"type": "string", "description": "Date in YYYY-MM-DD format"}

RECORD_PARAMETERS_DEF = {
    "name": "record_search_parameters",
    "description": (
        "Record the flight search details the traveller has stated so far. "
        "Only include fields the traveller actually mentioned or clearly implied."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "origin_code": _IATA,
            "origin_name": {"type": "string", "description": "Origin city or airport name"},
            "destination_code": _IATA,
            "destination_name": {"type": "string", "description": "Destination city or airport name"},
            "departure_date": _DATE,
            "return_date": _DATE,
            "trip_type": {"type": "string", "enum": ["return", "oneway", "multicity"]},
            "adults": {"type": "integer", "minimum": 1, "maximum": 9},
            "children": {"type": "integer", "minimum": 0, "maximum": 8},
            "infants": {"type": "integer", "minimum": 0, "maximum": 8},
            "cabin_class": {
                "type": "string",
                "enum": ["Y", "S", "C", "F"],
                "description": "Y economy, S premium economy, C business, F first",
            },
            "multi_city_segments": {
                "type": "array",
                "description": "Legs of a multi-city trip, in travel order",
                "items": {
                    "type": "object",
                    "properties": {
                        "origin_code": _IATA,
                        "origin_name": {"type": "string"},
                        "destination_code": _IATA,
                        "destination_name": {"type": "string"},
                        "departure_date": _DATE,
                    },
                    "required": ["origin_code", "destination_code", "departure_date"],
                },
            },
        },
    },
}


class AnthropicParameterExtractor(BaseParameterExtractor):
    def __init__(self, config: ExtractionConfig, client: Optional[AsyncAnthropic] = None):
        self.config = config
        self._client = client or AsyncAnthropic(api_key=settings.anthropic_api_key)

    def _system_prompt(self, current: Optional[SearchParameters]) -> str:
        today = datetime.now(timezone.utc).date().isoformat()
        known = json.dumps(current.to_dict()) if current else "{}"
        return (
            "You extract flight search parameters from a conversation with a traveller. "
            f"Today is {today}. Resolve relative dates against today. "
            "Use IATA codes for airports; when a city has several airports and the traveller "
            "did not pick one, fill destination_name and leave destination_code empty. "
            f"Parameters already known: {known}. "
            "Call record_search_parameters with only what the latest message adds or changes."
        )

    async def extract(
        self,
        message: str,
        history: List[Dict[str, str]],
        current: Optional[SearchParameters],
    ) -> ExtractedParams:
        window = history[-self.config.history_window:] if self.config.history_window else history
        messages = [
            {"role": m["role"], "content": m["content"]}
            for m in window
            if m.get("role") in ("user", "assistant")
        ]
        messages.append({"role": "user", "content": message})

        response = await self._client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system=self._system_prompt(current),
            tools=[RECORD_PARAMETERS_DEF],
            tool_choice={"type": "tool", "name": RECORD_PARAMETERS_DEF["name"]},
            messages=messages,
        )
        return self._parse_response(response)

    @staticmethod
    def _parse_response(response) -> ExtractedParams:
        for block in response.content:
            if block.type == "tool_use" and block.name == RECORD_PARAMETERS_DEF["name"]:
                return ExtractedParams.from_dict(block.input)

        # Fallback: a JSON object in a text block
        text = ""
        for block in response.content:
            if hasattr(block, "text"):
                text = block.text
                break
        text = text.strip()
        if text.startswith("```"):
            lines = text.splitlines()
            text = "\n".join(lines[1:-1]) if len(lines) > 2 else text

        try:
            return ExtractedParams.from_dict(json.loads(text))
        except json.JSONDecodeError:
            logger.warning("Extractor returned no tool call and no JSON; treating turn as empty")
            return ExtractedParams()
