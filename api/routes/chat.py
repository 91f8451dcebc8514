"""Chat turns: a plain JSON reply, or the same reply streamed as server-sent events.

- POST /chat       : runs the turn and returns the full ChatResponse
- POST /chat/stream: runs the turn, streams the reply text, then stores it
"""
import json
import logging
import re
from typing import Iterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from agents.conversation_agent import ConversationAgent, TurnResult
from api.schemas import ChatRequest, ChatResponse, SearchParametersOut
from core.conversation_store import ConversationInactiveError, ConversationNotFoundError
from core.segments import SegmentIntegrityError
from core.validation import ValidationError
from db.database import get_db
from providers.booking_urls import IncompleteSearchError

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


def build_chat_response(conversation_id: str, result: TurnResult) -> ChatResponse:
    return ChatResponse(
        conversation_id=conversation_id,
        content=result.content,
        phase=result.phase.value,
        extracted_params=result.extracted_params.to_dict(),
        parameters=SearchParametersOut.model_validate(result.parameters.to_dict()),
        missing_fields=result.missing_fields,
        completion=result.completion,
        requires_clarification=result.requires_clarification,
        issues=result.issues,
        booking_url=result.booking_url,
        shareable_url=result.shareable_url,
    )


async def run_chat_turn(agent: ConversationAgent, message: str) -> TurnResult:
    """Run a turn without storing the reply, translating failures into HTTP errors."""
    try:
        return await agent.run_turn(message)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ConversationInactiveError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except IncompleteSearchError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except (ValidationError, SegmentIntegrityError):
        raise
    except Exception as exc:
        logger.error("Chat turn failed for conversation %s: %s", agent.conversation_id, exc)
        raise HTTPException(status_code=502, detail="Could not process the message")


def reply_chunks(text: str) -> Iterator[str]:
    """Split a reply into word-sized deltas, keeping the whitespace that follows each word."""
    return iter(re.findall(r"\S+\s*", text))


@router.post("", response_model=ChatResponse)
async def chat(body: ChatRequest, db: AsyncSession = Depends(get_db)):
    """One conversational turn: extract, merge, recompute completeness and reply."""
    agent = ConversationAgent(body.conversation_id, db)
    result = await run_chat_turn(agent, body.message)
    await agent.store_reply(result)
    return build_chat_response(body.conversation_id, result)


@router.post("/stream")
async def chat_stream(body: ChatRequest, db: AsyncSession = Depends(get_db)):
    """Same turn as POST /chat, with the reply delivered as SSE deltas.

    The assistant message is stored once every delta has been sent, before
    the final "done" event that carries the phase and parameters.
    """
    agent = ConversationAgent(body.conversation_id, db)
    result = await run_chat_turn(agent, body.message)

    async def event_stream():
        for chunk in reply_chunks(result.content):
            yield f"data: {json.dumps({'type': 'delta', 'content': chunk})}\n\n"

        await agent.store_reply(result, streamed=True)
        done = build_chat_response(body.conversation_id, result).model_dump(exclude={"content"})
        yield f"data: {json.dumps({'type': 'done', **done})}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "X-Accel-Buffering": "no",
            "X-Conversation-Id": body.conversation_id,
        },
    )
