import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.completeness import completion_percentage, get_missing_fields, is_complete
from core.config import settings
from core.conversation_store import PARAMETER_COLUMNS, ConversationNotFoundError, ConversationStore
from core.merge import merge_parameters
from core.progression import ConversationPhase, decide, next_conversation_phase
from core.segments import SegmentIntegrityError, check_connectivity, sort_segments
from core.state import ExtractedParams, SearchParameters
from core.validation import (
    ValidationError,
    check_semantic_rules,
    validate_create_search_parameters,
    validate_multi_city_segments,
    validate_search_parameters,
    validate_update_search_parameters,
)
from providers.base import BaseBookingURLGenerator, BaseParameterExtractor
from providers.booking_urls import IncompleteSearchError
from providers.factory import get_extractor, get_url_generator

logger = logging.getLogger(__name__)

GREETING = (
    "Hi! I can help you find flights. Tell me where you're flying from and to, "
    "when you'd like to travel, and who's coming along."
)

AFFIRMATIVE = re.compile(r"^\s*(yes|yep|yeah|sure|ok(ay)?|confirm(ed)?|correct|looks good|go ahead)\b", re.I)

CABIN_NAMES = {"Y": "economy", "S": "premium economy", "C": "business", "F": "first"}


def initial_message(initial_query: Optional[str] = None) -> str:
    if initial_query:
        return f"{GREETING} Let me look at your request: \"{initial_query}\""
    return GREETING


def describe_parameters(params: SearchParameters) -> str:
    """One-line human summary used when asking the user to confirm."""
    if params.trip_type == "multicity":
        legs = "; ".join(
            f"{s.origin_code} → {s.destination_code} on {s.departure_date}"
            for s in sorted(params.multi_city_segments, key=lambda s: s.sequence_order)
        )
        route = f"Multi-city: {legs}"
    else:
        route = f"{params.origin_code} → {params.destination_code}, departing {params.departure_date}"
        if params.trip_type == "return":
            route += f", returning {params.return_date}"
        else:
            route += ", one way"

    party = f"{params.adults} adult{'s' if params.adults != 1 else ''}"
    if params.children:
        party += f", {params.children} child{'ren' if params.children != 1 else ''}"
    if params.infants:
        party += f", {params.infants} infant{'s' if params.infants != 1 else ''}"

    summary = f"{route} ({party}"
    if params.cabin_class:
        summary += f", {CABIN_NAMES.get(params.cabin_class, params.cabin_class)}"
    return summary + ")"


def search_signature(params: SearchParameters) -> tuple:
    """Everything a booking URL depends on, for comparing two versions of a search."""
    scalars = tuple(getattr(params, c) for c in PARAMETER_COLUMNS if c != "is_complete")
    legs = tuple(
        (s.sequence_order, s.origin_code, s.destination_code, s.departure_date)
        for s in sort_segments(params.multi_city_segments)
    )
    return scalars, legs


@dataclass
class TurnResult:
    content: str
    phase: ConversationPhase
    parameters: SearchParameters
    extracted_params: ExtractedParams = field(default_factory=ExtractedParams)
    missing_fields: List[str] = field(default_factory=list)
    completion: int = 0
    issues: List[Dict[str, Any]] = field(default_factory=list)
    booking_url: Optional[str] = None
    shareable_url: Optional[str] = None

    @property
    def requires_clarification(self) -> bool:
        return self.phase is ConversationPhase.COLLECTING or bool(self.issues)


class ConversationAgent:
    """Runs one conversation: extraction, merge, segment checks, completeness and phase."""

    def __init__(
        self,
        conversation_id: str,
        db: AsyncSession,
        extractor: Optional[BaseParameterExtractor] = None,
        url_generator: Optional[BaseBookingURLGenerator] = None,
    ):
        self.conversation_id = conversation_id
        self.store = ConversationStore(db)
        self.extractor = extractor or get_extractor()
        self.url_generator = url_generator or get_url_generator()

    # ── Chat turn ─────────────────────────────────────────────────────────────

    async def handle_message(self, message: str) -> TurnResult:
        result = await self.run_turn(message)
        await self.store_reply(result)
        return result

    async def run_turn(self, message: str) -> TurnResult:
        """A full chat turn except storing the assistant reply (see store_reply())."""
        conversation = await self.store.require_active_conversation(self.conversation_id)
        phase = ConversationPhase(conversation.current_step)

        history = [
            {"role": m.role, "content": m.content}
            for m in await self.store.get_messages(self.conversation_id)
        ]
        await self.store.create_message(self.conversation_id, "user", message)

        current = await self.store.get_search_parameters(self.conversation_id)
        if current is None:
            current = await self.store.create_search_parameters(self.conversation_id)

        extracted = await self.extractor.extract(message, history, current)

        if phase is ConversationPhase.CONFIRMING and extracted.is_empty() and AFFIRMATIVE.match(message):
            return await self._confirm_search(conversation)

        merged = merge_parameters(extracted, current)
        issues = await self._apply_segments(extracted, merged, current)
        issues.extend(self._record_issues(merged))

        merged.is_complete = is_complete(merged)
        saved = await self.store.save_search_parameters(merged)

        # the stored booking URL only stands while the search it was built for is unchanged
        previous_url = conversation.generated_url
        url_still_valid = (
            phase is ConversationPhase.COMPLETE
            and bool(previous_url)
            and saved.is_complete
            and search_signature(saved) == search_signature(current)
        )
        decision = decide(phase, saved, extracted, booking_url_generated=url_still_valid)
        await self.store.update_conversation(
            self.conversation_id,
            current_step=decision.phase.value,
            generated_url=previous_url if url_still_valid else None,
        )
        if previous_url and not url_still_valid:
            logger.info("Search changed for %s; booking URL withdrawn", self.conversation_id)

        content = self._compose_reply(saved, decision.phase, decision.prompt, issues)
        return TurnResult(
            content=content,
            phase=decision.phase,
            parameters=saved,
            extracted_params=extracted,
            missing_fields=decision.missing_fields,
            completion=decision.completion,
            issues=issues,
            booking_url=previous_url if url_still_valid else None,
            shareable_url=self.url_generator.generate_shareable_url(saved) if url_still_valid else None,
        )

    async def store_reply(self, result: TurnResult, **extra_metadata: Any) -> None:
        metadata = {
            "extracted_params": result.extracted_params.to_dict(),
            "requires_clarification": result.requires_clarification,
            "phase": result.phase.value,
        }
        if result.booking_url:
            metadata["booking_url"] = result.booking_url
        metadata.update(extra_metadata)
        await self.store.create_message(self.conversation_id, "assistant", result.content, metadata=metadata)

    async def _apply_segments(
        self, extracted: ExtractedParams, merged: SearchParameters, current: SearchParameters
    ) -> List[Dict[str, Any]]:
        """Persist a newly extracted segment list if it passes sequence and chronology checks."""
        if not extracted.multi_city_segments:
            return []
        try:
            segments = validate_multi_city_segments([s.to_dict() for s in merged.multi_city_segments])
        except ValidationError as exc:
            logger.warning("Rejected extracted segments for %s: %s", self.conversation_id, exc)
            merged.multi_city_segments = list(current.multi_city_segments)
            return [{"rule": "segment", **d} for d in exc.details()]
        except SegmentIntegrityError as exc:
            logger.warning("Rejected extracted segments for %s: %s", self.conversation_id, exc)
            merged.multi_city_segments = list(current.multi_city_segments)
            return [exc.to_dict()]

        merged.multi_city_segments = await self.store.replace_multi_city_segments(current.id, segments)
        try:
            check_connectivity(segments)
        except SegmentIntegrityError as exc:
            return [exc.to_dict()]
        return []

    def _record_issues(self, merged: SearchParameters) -> List[Dict[str, Any]]:
        """Structural and cross-field problems in the merged record. Missing fields are not issues."""
        issues: List[Dict[str, Any]] = []
        scalar_only = dataclasses.replace(merged, multi_city_segments=[])
        try:
            validate_create_search_parameters(scalar_only)
        except ValidationError as exc:
            issues.extend(exc.details())
        issues.extend(
            e.to_dict() for e in check_semantic_rules(merged) if e.field != "multi_city_segments"
        )
        if issues:
            logger.warning("Parameter issues for %s: %s", self.conversation_id, [i.get("field") for i in issues])
        return issues

    def _compose_reply(
        self,
        params: SearchParameters,
        phase: ConversationPhase,
        prompt: Optional[str],
        issues: List[Dict[str, Any]],
    ) -> str:
        parts = []
        if issues:
            problems = "; ".join(i["message"] for i in issues)
            parts.append(f"I couldn't use all of that: {problems}.")
        if prompt:
            parts.append(prompt)
        elif phase is ConversationPhase.CONFIRMING:
            parts.append(f"Here's your search: {describe_parameters(params)}. Shall I create your booking link?")
        elif phase is ConversationPhase.COMPLETE:
            parts.append(f"Your search is unchanged: {describe_parameters(params)}. Your booking link is still ready.")
        return " ".join(parts)

    # ── Confirmation and explicit updates ─────────────────────────────────────

    async def confirm(self) -> TurnResult:
        """Validate the complete record, generate the booking URL and move to complete."""
        conversation = await self.store.require_active_conversation(self.conversation_id)
        result = await self._confirm_search(conversation)
        await self.store_reply(result)
        return result

    async def _confirm_search(self, conversation) -> TurnResult:
        params = await self.store.get_search_parameters(self.conversation_id)
        if params is None:
            raise ConversationNotFoundError(f"Search parameters for {self.conversation_id} not found")

        missing = get_missing_fields(params)
        if missing:
            raise IncompleteSearchError(f"Search is missing: {', '.join(missing)}")
        validate_search_parameters(params)

        params.is_complete = True
        booking_url = self.url_generator.generate_booking_url(params, settings.default_attribution())
        shareable_url = self.url_generator.generate_shareable_url(params)
        phase = next_conversation_phase(
            ConversationPhase(conversation.current_step), params, booking_url_generated=True
        )
        await self.store.update_conversation(
            self.conversation_id, current_step=phase.value, generated_url=booking_url
        )
        logger.info("Booking URL generated for conversation %s", self.conversation_id)
        return TurnResult(
            content=f"Your search is ready: {describe_parameters(params)}. Book here: {booking_url}",
            phase=phase,
            parameters=params,
            completion=completion_percentage(params),
            booking_url=booking_url,
            shareable_url=shareable_url,
        )

    async def update_parameters(self, body: Any) -> TurnResult:
        """Apply an explicit partial update (structural profile), then recompute completeness.

        A complete result must also pass the semantic profile before anything is
        written; when it does, the booking URL is generated straight away.
        """
        conversation = await self.store.require_active_conversation(self.conversation_id)
        update = validate_update_search_parameters(body)
        existing = await self.store.get_search_parameters(self.conversation_id)
        if existing is None:
            raise ConversationNotFoundError(f"Search parameters for {self.conversation_id} not found")

        segments = update.pop("multi_city_segments", None)
        update.pop("is_complete", None)
        prospective = dataclasses.replace(existing, **update)
        replace_segments = segments is not None and prospective.trip_type == "multicity"
        if replace_segments:
            prospective.multi_city_segments = segments

        complete = is_complete(prospective)
        if complete:
            validate_search_parameters(prospective)

        update["is_complete"] = complete
        params = await self.store.update_search_parameters(self.conversation_id, update)
        if replace_segments:
            params.multi_city_segments = await self.store.replace_multi_city_segments(params.id, segments)

        booking_url = shareable_url = None
        if complete:
            booking_url = self.url_generator.generate_booking_url(params, settings.default_attribution())
            shareable_url = self.url_generator.generate_shareable_url(params)
        phase = next_conversation_phase(
            ConversationPhase(conversation.current_step), params, booking_url_generated=booking_url is not None
        )
        await self.store.update_conversation(
            self.conversation_id, current_step=phase.value, generated_url=booking_url
        )
        logger.info("Parameters updated for %s (complete=%s)", self.conversation_id, complete)
        return TurnResult(
            content="",
            phase=phase,
            parameters=params,
            missing_fields=get_missing_fields(params),
            completion=completion_percentage(params),
            booking_url=booking_url,
            shareable_url=shareable_url,
        )
