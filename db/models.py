import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False)
    # active | archived
    status = Column(String, default="active", nullable=False)
    # collecting | confirming | complete
    current_step = Column(String, default="collecting", nullable=False)
    generated_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    messages = relationship("Message", back_populates="conversation", lazy="select",
                            cascade="all, delete-orphan")
    search_parameters = relationship("SearchParametersRow", back_populates="conversation",
                                     uselist=False, lazy="select", cascade="all, delete-orphan")


class Message(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(String, ForeignKey("conversations.id"), nullable=False)
    # user | assistant | system
    role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    metadata_json = Column(JSON, nullable=True)
    # client-side timestamp keeps sub-second ordering on SQLite
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    conversation = relationship("Conversation", back_populates="messages")


class SearchParametersRow(Base):
    __tablename__ = "search_parameters"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(String, ForeignKey("conversations.id"), unique=True, nullable=False)
    origin_code = Column(String(3), nullable=True)
    origin_name = Column(String, nullable=True)
    destination_code = Column(String(3), nullable=True)
    destination_name = Column(String, nullable=True)
    departure_date = Column(String(10), nullable=True)   # YYYY-MM-DD
    return_date = Column(String(10), nullable=True)
    # return | oneway | multicity
    trip_type = Column(String, default="return", nullable=False)
    adults = Column(Integer, default=1, nullable=False)
    children = Column(Integer, default=0, nullable=False)
    infants = Column(Integer, default=0, nullable=False)
    # Y | S | C | F
    cabin_class = Column(String(1), nullable=True)
    is_complete = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    conversation = relationship("Conversation", back_populates="search_parameters")
    segments = relationship("MultiCitySegmentRow", back_populates="search_parameters", lazy="select",
                            cascade="all, delete-orphan", order_by="MultiCitySegmentRow.sequence_order")


class MultiCitySegmentRow(Base):
    __tablename__ = "multi_city_segments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    search_params_id = Column(String, ForeignKey("search_parameters.id"), nullable=False)
    sequence_order = Column(Integer, nullable=False)
    origin_code = Column(String(3), nullable=False)
    origin_name = Column(String, nullable=False)
    destination_code = Column(String(3), nullable=False)
    destination_name = Column(String, nullable=False)
    departure_date = Column(String(10), nullable=False)

    search_parameters = relationship("SearchParametersRow", back_populates="segments")


# Indices for common query patterns
Index("ix_messages_conversation", Message.conversation_id, Message.created_at)
Index("ix_segments_owner_order", MultiCitySegmentRow.search_params_id, MultiCitySegmentRow.sequence_order)
