"""
Chat manager facade.

WHAT: Public entry point for every messaging operation
WHY: One place that opens sessions, authorizes callers and turns business
     errors into Result values
HOW: Each call runs in its own get_db() scope and delegates to the services
"""

from datetime import datetime
from functools import wraps
from typing import Callable, ContextManager, List, Optional

from sqlalchemy.orm import Session as DBSession

from .database import get_db
from .models import MessageType
from ..models.chat import ConversationDetail, ConversationSummary, MessageRecord, ParticipantInfo
from ..models.result import Result
from ..services.conversation_resolver import ConversationResolver
from ..services.message_ledger import MessageLedger
from ..services.participant_registry import ParticipantRegistry
from ..utils.exceptions import BusinessException
from ..utils.logger import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], ContextManager[DBSession]]


def returns_result(func):
    """Wrap a manager method: value -> Result.success, BusinessException -> Result.failure."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return Result.success(func(*args, **kwargs))
        except BusinessException as e:
            logger.info(f"{func.__name__} rejected: {e.code} - {e.message}")
            return Result.failure(e)
    return wrapper


class ChatManager:
    """
    Messaging facade.

    Store failures (SQLAlchemyError) are not caught here and reach the
    caller's error boundary.
    """

    def __init__(self, session_factory: SessionFactory = get_db):
        self.session_factory = session_factory

    # ---------- Participant Registry ----------

    @returns_result
    def is_participant(self, conversation_id: str, user_id: str) -> bool:
        with self.session_factory() as db:
            return ParticipantRegistry(db).is_participant(conversation_id, user_id)

    @returns_result
    def list_participants(self, conversation_id: str, user_id: str) -> List[ParticipantInfo]:
        with self.session_factory() as db:
            registry = ParticipantRegistry(db)
            registry.require_participant(conversation_id, user_id)
            return registry.list_participants(conversation_id)

    @returns_result
    def mark_read(self, conversation_id: str, user_id: str, at: Optional[datetime] = None) -> datetime:
        with self.session_factory() as db:
            return ParticipantRegistry(db).mark_read(conversation_id, user_id, at)

    # ---------- Conversation Resolver ----------

    @returns_result
    def start_conversation(
        self, requester_id: str, offer_id: str, initial_message: Optional[str] = None
    ) -> str:
        with self.session_factory() as db:
            return ConversationResolver(db).start_conversation(requester_id, offer_id, initial_message)

    # ---------- Message Ledger ----------

    @returns_result
    def send_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> MessageRecord:
        with self.session_factory() as db:
            return MessageLedger(db).send_message(conversation_id, sender_id, content, message_type)

    @returns_result
    def list_messages(
        self,
        conversation_id: str,
        user_id: str,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[MessageRecord]:
        with self.session_factory() as db:
            return MessageLedger(db).list_messages(conversation_id, user_id, descending, limit, offset)

    @returns_result
    def unread_count(self, conversation_id: str, user_id: str) -> int:
        with self.session_factory() as db:
            return MessageLedger(db).unread_count(conversation_id, user_id)

    @returns_result
    def total_unread_count(self, user_id: str) -> int:
        with self.session_factory() as db:
            return MessageLedger(db).total_unread_count(user_id)

    @returns_result
    def conversation_summaries(self, user_id: str) -> List[ConversationSummary]:
        with self.session_factory() as db:
            return MessageLedger(db).conversation_summaries(user_id)

    @returns_result
    def get_conversation(self, conversation_id: str, user_id: str) -> ConversationDetail:
        with self.session_factory() as db:
            return MessageLedger(db).conversation_detail(conversation_id, user_id)


# Singleton instance
chat_manager = ChatManager()
