"""Persistence for conversations, messages, search parameters and their segments."""
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.state import MultiCitySegment, SearchParameters
from db.models import Conversation, Message, MultiCitySegmentRow, SearchParametersRow

logger = logging.getLogger(__name__)

PARAMETER_COLUMNS = (
    "origin_code",
    "origin_name",
    "destination_code",
    "destination_name",
    "departure_date",
    "return_date",
    "trip_type",
    "adults",
    "children",
    "infants",
    "cabin_class",
    "is_complete",
)


class ConversationNotFoundError(Exception):
    """Raised when a conversation (or its parameter row) does not exist."""


class ConversationInactiveError(Exception):
    """Raised when a write targets a conversation whose status is not 'active'."""


def _segment_from_row(row: MultiCitySegmentRow) -> MultiCitySegment:
    return MultiCitySegment(
        id=row.id,
        search_params_id=row.search_params_id,
        sequence_order=row.sequence_order,
        origin_code=row.origin_code,
        origin_name=row.origin_name,
        destination_code=row.destination_code,
        destination_name=row.destination_name,
        departure_date=row.departure_date,
    )


class ConversationStore:
    """Async data access over one session. Does not serialise concurrent writers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Conversations ─────────────────────────────────────────────────────────

    async def create_conversation(self, user_id: str) -> Conversation:
        conversation = Conversation(id=str(uuid.uuid4()), user_id=user_id, status="active",
                                    current_step="collecting")
        self.db.add(conversation)
        await self.db.commit()
        await self.db.refresh(conversation)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        result = await self.db.execute(select(Conversation).where(Conversation.id == conversation_id))
        return result.scalar_one_or_none()

    async def require_active_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self.get_conversation(conversation_id)
        if not conversation:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        if conversation.status != "active":
            raise ConversationInactiveError("Conversation is no longer active")
        return conversation

    async def update_conversation(self, conversation_id: str, **fields: Any) -> Conversation:
        conversation = await self.get_conversation(conversation_id)
        if not conversation:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        for key, value in fields.items():
            setattr(conversation, key, value)
        await self.db.commit()
        await self.db.refresh(conversation)
        return conversation

    async def delete_conversation(self, conversation_id: str) -> None:
        """Remove a conversation with its messages, parameters and segments."""
        owner_ids = select(SearchParametersRow.id).where(SearchParametersRow.conversation_id == conversation_id)
        await self.db.execute(delete(MultiCitySegmentRow).where(MultiCitySegmentRow.search_params_id.in_(owner_ids)))
        await self.db.execute(delete(SearchParametersRow).where(SearchParametersRow.conversation_id == conversation_id))
        await self.db.execute(delete(Message).where(Message.conversation_id == conversation_id))
        await self.db.execute(delete(Conversation).where(Conversation.id == conversation_id))
        await self.db.commit()
        logger.info("Deleted conversation %s", conversation_id)

    # ── Messages ──────────────────────────────────────────────────────────────

    async def create_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        metadata: Optional[dict] = None,
    ) -> Message:
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            metadata_json=metadata,
        )
        self.db.add(message)
        await self.db.commit()
        return message

    async def get_messages(self, conversation_id: str) -> List[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at)
        )
        return list(result.scalars().all())

    # ── Search parameters ─────────────────────────────────────────────────────

    async def _get_parameters_row(self, conversation_id: str) -> Optional[SearchParametersRow]:
        result = await self.db.execute(
            select(SearchParametersRow).where(SearchParametersRow.conversation_id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def _get_segments(self, owner_id: str) -> List[MultiCitySegment]:
        result = await self.db.execute(
            select(MultiCitySegmentRow)
            .where(MultiCitySegmentRow.search_params_id == owner_id)
            .order_by(MultiCitySegmentRow.sequence_order)
        )
        return [_segment_from_row(r) for r in result.scalars().all()]

    async def _to_params(self, row: SearchParametersRow) -> SearchParameters:
        params = SearchParameters(id=row.id, conversation_id=row.conversation_id)
        for column in PARAMETER_COLUMNS:
            setattr(params, column, getattr(row, column))
        params.multi_city_segments = await self._get_segments(row.id)
        return params

    async def create_search_parameters(self, conversation_id: str, **fields: Any) -> SearchParameters:
        """Insert the empty record every conversation starts with."""
        row = SearchParametersRow(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            trip_type=fields.pop("trip_type", "return"),
            adults=fields.pop("adults", 1),
            children=fields.pop("children", 0),
            infants=fields.pop("infants", 0),
            is_complete=fields.pop("is_complete", False),
        )
        for key, value in fields.items():
            if key in PARAMETER_COLUMNS:
                setattr(row, key, value)
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return await self._to_params(row)

    async def get_search_parameters(self, conversation_id: str) -> Optional[SearchParameters]:
        row = await self._get_parameters_row(conversation_id)
        if not row:
            return None
        return await self._to_params(row)

    async def update_search_parameters(self, conversation_id: str, partial: Dict[str, Any]) -> SearchParameters:
        """Write the given scalar fields only. Segment lists go through replace_multi_city_segments()."""
        row = await self._get_parameters_row(conversation_id)
        if not row:
            raise ConversationNotFoundError(f"Search parameters for {conversation_id} not found")
        for key, value in partial.items():
            if key in PARAMETER_COLUMNS:
                setattr(row, key, value)
        await self.db.commit()
        await self.db.refresh(row)
        return await self._to_params(row)

    async def save_search_parameters(self, params: SearchParameters) -> SearchParameters:
        """Persist every scalar field of a merged record."""
        partial = {column: getattr(params, column) for column in PARAMETER_COLUMNS}
        return await self.update_search_parameters(params.conversation_id, partial)

    # ── Multi-city segments ───────────────────────────────────────────────────

    def _segment_rows(self, owner_id: str, segments: List[MultiCitySegment]) -> List[MultiCitySegmentRow]:
        return [
            MultiCitySegmentRow(
                id=str(uuid.uuid4()),
                search_params_id=owner_id,
                sequence_order=seg.sequence_order,
                origin_code=seg.origin_code,
                origin_name=seg.origin_name,
                destination_code=seg.destination_code,
                destination_name=seg.destination_name,
                departure_date=seg.departure_date,
            )
            for seg in segments
        ]

    async def delete_multi_city_segments(self, owner_id: str) -> None:
        await self.db.execute(delete(MultiCitySegmentRow).where(MultiCitySegmentRow.search_params_id == owner_id))
        await self.db.commit()

    async def create_multi_city_segments(self, owner_id: str, segments: List[MultiCitySegment]) -> List[MultiCitySegment]:
        self.db.add_all(self._segment_rows(owner_id, segments))
        await self.db.commit()
        return await self._get_segments(owner_id)

    async def replace_multi_city_segments(self, owner_id: str, segments: List[MultiCitySegment]) -> List[MultiCitySegment]:
        """Delete the owner's segments and insert the new set in one transaction."""
        await self.db.execute(delete(MultiCitySegmentRow).where(MultiCitySegmentRow.search_params_id == owner_id))
        self.db.add_all(self._segment_rows(owner_id, segments))
        await self.db.commit()
        logger.debug("Replaced segments for params %s with %d segment(s)", owner_id, len(segments))
        return await self._get_segments(owner_id)
