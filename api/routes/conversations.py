import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from agents.conversation_agent import ConversationAgent, initial_message
from api.routes.chat import build_chat_response, run_chat_turn
from api.schemas import ConversationCreate, ConversationCreated, ConversationRead, MessageCreate, MessageRead
from core.conversation_store import ConversationInactiveError, ConversationNotFoundError, ConversationStore
from db.database import get_db

router = APIRouter(prefix="/conversations", tags=["conversations"])
logger = logging.getLogger(__name__)


@router.post("", response_model=ConversationCreated, status_code=201)
async def create_conversation(body: ConversationCreate, db: AsyncSession = Depends(get_db)):
    """Start a conversation with an empty parameter record; optionally process a first query."""
    store = ConversationStore(db)
    user_id = body.user_id or f"anon_{uuid.uuid4()}"

    conversation = await store.create_conversation(user_id)
    await store.create_search_parameters(conversation.id)

    greeting = initial_message(body.initial_query)
    await store.create_message(conversation.id, "assistant", greeting)

    ai_response = None
    if body.initial_query:
        agent = ConversationAgent(conversation.id, db)
        try:
            result = await run_chat_turn(agent, body.initial_query)
        except Exception:
            await store.delete_conversation(conversation.id)
            raise
        await agent.store_reply(result)
        ai_response = build_chat_response(conversation.id, result)

    return ConversationCreated(
        conversation_id=conversation.id,
        user_id=user_id,
        initial_message=greeting,
        ai_response=ai_response,
    )


@router.get("/{conversation_id}", response_model=ConversationRead)
async def get_conversation(conversation_id: str, db: AsyncSession = Depends(get_db)):
    conversation = await ConversationStore(db).get_conversation(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@router.get("/{conversation_id}/messages", response_model=list[MessageRead])
async def list_messages(conversation_id: str, db: AsyncSession = Depends(get_db)):
    store = ConversationStore(db)
    if not await store.get_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return [MessageRead.model_validate(m) for m in await store.get_messages(conversation_id)]


@router.post("/{conversation_id}/messages", status_code=201)
async def create_message(conversation_id: str, body: MessageCreate, db: AsyncSession = Depends(get_db)):
    """Store a message verbatim, without running a turn."""
    store = ConversationStore(db)
    try:
        await store.require_active_conversation(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ConversationInactiveError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    await store.create_message(conversation_id, body.role, body.content, body.metadata)
    return {"ok": True}
