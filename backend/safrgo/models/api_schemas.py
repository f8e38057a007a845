"""
Pydantic API schemas for chat endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization matching frontend interfaces
HOW: Pydantic v2 models built from the chat domain records
"""

from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

from ..core.config import settings


# ========== Request Schemas ==========

class StartConversationRequest(BaseModel):
    """Request to contact an agency about an offer."""
    offer_id: str = Field(..., min_length=1, max_length=36, description="Offer ID")
    initial_message: Optional[str] = Field(
        default=None, max_length=settings.MESSAGE_MAX_LENGTH, description="Optional first message"
    )


class SendMessageRequest(BaseModel):
    """Request to send a message."""
    content: str = Field(..., min_length=1, max_length=settings.MESSAGE_MAX_LENGTH)
    message_type: Literal["text", "image"] = Field(default="text")


class MarkReadRequest(BaseModel):
    """Request to mark a conversation read."""
    at: Optional[datetime] = Field(default=None, description="Read position, defaults to now")


# ========== Response Schemas ==========

class RecordModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Profile(RecordModel):
    id: str
    name: str
    avatar: Optional[str] = None
    role: Optional[str] = None


class Agency(RecordModel):
    id: str
    name: str
    slug: str
    logo: Optional[str] = None
    status: str
    subscription_status: str


class Offer(RecordModel):
    id: str
    title: str
    image: Optional[str] = None
    agency_id: str


class Participant(RecordModel):
    user_id: str
    last_read_at: Optional[datetime] = None


class Message(RecordModel):
    id: str
    seq: int
    conversation_id: str
    sender_id: str
    content: str
    message_type: str
    created_at: datetime


class Conversation(RecordModel):
    id: str
    offer_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StartConversationResponse(BaseModel):
    conversation_id: str


class ConversationSummaryResponse(RecordModel):
    conversation: Conversation
    other_participant: Optional[Participant] = None
    other_profile: Optional[Profile] = None
    last_message: Optional[Message] = None
    unread_count: int
    offer: Optional[Offer] = None
    agency: Optional[Agency] = None


class ConversationListResponse(BaseModel):
    conversations: List[ConversationSummaryResponse]
    total_unread: int


class ConversationDetailResponse(RecordModel):
    conversation: Conversation
    participants: List[Participant]
    messages: List[Message]
    other_participant: Optional[Participant] = None
    other_profile: Optional[Profile] = None
    offer: Optional[Offer] = None
    agency: Optional[Agency] = None


class MessageListResponse(BaseModel):
    conversation_id: str
    messages: List[Message]


class MarkReadResponse(BaseModel):
    conversation_id: str
    last_read_at: datetime


class UnreadCountResponse(BaseModel):
    unread_count: int
    conversation_id: Optional[str] = None
