import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from agents.conversation_agent import ConversationAgent, TurnResult
from api.schemas import ParametersResponse, SearchParametersOut
from core.completeness import completion_percentage, get_missing_fields
from core.config import settings
from core.conversation_store import ConversationInactiveError, ConversationNotFoundError, ConversationStore
from db.database import get_db
from providers.booking_urls import IncompleteSearchError
from providers.factory import get_url_generator

router = APIRouter(prefix="/conversations", tags=["parameters"])
logger = logging.getLogger(__name__)


def _response(conversation_id: str, result: TurnResult) -> ParametersResponse:
    return ParametersResponse(
        conversation_id=conversation_id,
        parameters=SearchParametersOut.model_validate(result.parameters.to_dict()),
        phase=result.phase.value,
        is_complete=result.parameters.is_complete,
        completion=result.completion,
        missing_fields=result.missing_fields,
        booking_url=result.booking_url,
        shareable_url=result.shareable_url,
    )


@router.get("/{conversation_id}/parameters", response_model=ParametersResponse)
async def get_parameters(conversation_id: str, db: AsyncSession = Depends(get_db)):
    store = ConversationStore(db)
    conversation = await store.get_conversation(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    params = await store.get_search_parameters(conversation_id)
    if not params:
        raise HTTPException(status_code=404, detail="Search parameters not found")

    booking_url = shareable_url = None
    if params.is_complete:
        urls = get_url_generator()
        booking_url = urls.generate_booking_url(params, settings.default_attribution())
        shareable_url = urls.generate_shareable_url(params)

    return ParametersResponse(
        conversation_id=conversation_id,
        parameters=SearchParametersOut.model_validate(params.to_dict()),
        phase=conversation.current_step,
        is_complete=params.is_complete,
        completion=completion_percentage(params),
        missing_fields=get_missing_fields(params),
        booking_url=booking_url,
        shareable_url=shareable_url,
    )


@router.put("/{conversation_id}/parameters", response_model=ParametersResponse)
async def update_parameters(
    conversation_id: str,
    body: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """Explicit partial update from the client. Validation errors are returned as 400."""
    agent = ConversationAgent(conversation_id, db)
    try:
        result = await agent.update_parameters(body)
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConversationInactiveError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _response(conversation_id, result)


@router.post("/{conversation_id}/confirm", response_model=ParametersResponse)
async def confirm_search(conversation_id: str, db: AsyncSession = Depends(get_db)):
    """User accepted the summary: validate, generate the booking URL, mark complete."""
    agent = ConversationAgent(conversation_id, db)
    try:
        result = await agent.confirm()
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConversationInactiveError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except IncompleteSearchError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _response(conversation_id, result)
