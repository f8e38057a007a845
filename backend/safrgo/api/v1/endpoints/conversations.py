"""
Conversation and message endpoints.

WHAT: HTTP surface of the messaging core
WHY: Offer pages start chats, inbox and chat views read and send messages
HOW: FastAPI router delegating to ChatManager; failed Results are unwrapped
     into BusinessExceptions and rendered by the error handler
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from ...deps import get_chat_manager, get_current_user_id
from ....core.chat_manager import ChatManager
from ....core.models import MessageType
from ....models.api_schemas import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationSummaryResponse,
    MarkReadRequest,
    MarkReadResponse,
    Message,
    MessageListResponse,
    SendMessageRequest,
    StartConversationRequest,
    StartConversationResponse,
    UnreadCountResponse,
)
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/conversations",
    response_model=StartConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_conversation(
    request: StartConversationRequest,
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """
    Contact the agency behind an offer.

    Returns the existing conversation when the traveler already has one
    about this offer.
    """
    conversation_id = manager.start_conversation(
        user_id, request.offer_id, request.initial_message
    ).unwrap()
    return StartConversationResponse(conversation_id=conversation_id)


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """Inbox of the caller, most recently active first."""
    summaries = manager.conversation_summaries(user_id).unwrap()
    return ConversationListResponse(
        conversations=[ConversationSummaryResponse.model_validate(s) for s in summaries],
        total_unread=sum(s.unread_count for s in summaries),
    )


@router.get("/conversations/unread-count", response_model=UnreadCountResponse)
def total_unread_count(
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """Unread messages across all of the caller's conversations."""
    return UnreadCountResponse(unread_count=manager.total_unread_count(user_id).unwrap())


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """Open a conversation. Marks it read for the caller."""
    detail = manager.get_conversation(conversation_id, user_id).unwrap()
    return ConversationDetailResponse.model_validate(detail)


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
def list_messages(
    conversation_id: str,
    order: Literal["asc", "desc"] = Query(default="asc"),
    limit: Optional[int] = Query(default=None, gt=0, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """Messages in creation order; does not change read state."""
    messages = manager.list_messages(
        conversation_id, user_id, descending=(order == "desc"), limit=limit, offset=offset
    ).unwrap()
    return MessageListResponse(
        conversation_id=conversation_id,
        messages=[Message.model_validate(m) for m in messages],
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """Send a message as the caller."""
    message = manager.send_message(
        conversation_id, user_id, request.content, MessageType(request.message_type)
    ).unwrap()
    return Message.model_validate(message)


@router.post("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
def mark_read(
    conversation_id: str,
    request: Optional[MarkReadRequest] = None,
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """Move the caller's read position (default: now)."""
    at = request.at if request else None
    last_read_at = manager.mark_read(conversation_id, user_id, at).unwrap()
    return MarkReadResponse(conversation_id=conversation_id, last_read_at=last_read_at)


@router.get("/conversations/{conversation_id}/unread-count", response_model=UnreadCountResponse)
def unread_count(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: ChatManager = Depends(get_chat_manager),
):
    """Unread messages in one conversation for the caller."""
    count = manager.unread_count(conversation_id, user_id).unwrap()
    return UnreadCountResponse(unread_count=count, conversation_id=conversation_id)
