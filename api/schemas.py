from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ── Conversations ─────────────────────────────────────────────────────────────

class ConversationCreate(BaseModel):
    user_id: Optional[str] = None  # generated as anon_<uuid> when omitted
    initial_query: Optional[str] = None


class ConversationRead(BaseModel):
    id: str
    user_id: str
    status: str
    current_step: str
    generated_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ── Messages ──────────────────────────────────────────────────────────────────

class MessageCreate(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = Field(min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class MessageRead(BaseModel):
    id: str
    conversation_id: str
    role: str
    content: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ── Search parameters ─────────────────────────────────────────────────────────

class SegmentOut(BaseModel):
    id: Optional[str] = None
    sequence_order: int
    origin_code: Optional[str] = None
    origin_name: Optional[str] = None
    destination_code: Optional[str] = None
    destination_name: Optional[str] = None
    departure_date: Optional[str] = None

    model_config = {"from_attributes": True}


class SearchParametersOut(BaseModel):
    id: Optional[str] = None
    conversation_id: Optional[str] = None
    origin_code: Optional[str] = None
    origin_name: Optional[str] = None
    destination_code: Optional[str] = None
    destination_name: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    trip_type: str
    adults: int
    children: int
    infants: int
    cabin_class: Optional[str] = None
    multi_city_segments: List[SegmentOut] = []
    is_complete: bool

    model_config = {"from_attributes": True}


class ParametersResponse(BaseModel):
    conversation_id: str
    parameters: SearchParametersOut
    phase: str
    is_complete: bool
    completion: int
    missing_fields: List[str] = []
    booking_url: Optional[str] = None
    shareable_url: Optional[str] = None


# ── Chat ──────────────────────────────────────────────────────────────────────

class ChatRequest(BaseModel):
    conversation_id: str
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    conversation_id: str
    content: str
    phase: str
    extracted_params: Dict[str, Any] = {}
    parameters: SearchParametersOut
    missing_fields: List[str] = []
    completion: int = 0
    requires_clarification: bool = False
    issues: List[Dict[str, Any]] = []
    booking_url: Optional[str] = None
    shareable_url: Optional[str] = None


class ConversationCreated(BaseModel):
    conversation_id: str
    user_id: str
    initial_message: str
    ai_response: Optional[ChatResponse] = None
