"""
Message ledger and unread counter.

WHAT: Append messages, read them back in order, count unread per participant
WHY: Core of the traveler <-> agency chat
HOW: Append-only inserts, ordering by (created_at, id), counts computed on
     every call from the participant's last_read_at

Unread counts are never stored: the two participants of a conversation read
at different times, so each count is derived from that participant's own
read position.
"""

from typing import List, Optional, Union

from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from ..core.config import settings
from ..core.models import (
    Agency, Conversation, ConversationParticipant, Message, MessageType, Offer, Profile
)
from ..models.chat import (
    AgencyInfo,
    ConversationDetail,
    ConversationInfo,
    ConversationSummary,
    MessageRecord,
    OfferInfo,
    ParticipantInfo,
    ProfileInfo,
)
from ..utils.exceptions import AgencyUnavailableException, InvalidInputException
from ..utils.logger import get_logger
from ..utils.time_utils import utcnow
from .eligibility import can_reply
from .participant_registry import ParticipantRegistry

logger = get_logger(__name__)


def _ordering(descending: bool):
    if descending:
        return (Message.created_at.desc(), Message.id.desc())
    return (Message.created_at.asc(), Message.id.asc())


def normalize_content(content: Optional[str]) -> str:
    """
    Validate message text.

    Raises:
        InvalidInputException: empty after trimming, or too long
    """
    text = (content or "").strip()
    if not text:
        raise InvalidInputException("Message content cannot be empty", field="content")
    if len(text) > settings.MESSAGE_MAX_LENGTH:
        raise InvalidInputException(
            f"Message content exceeds {settings.MESSAGE_MAX_LENGTH} characters",
            field="content"
        )
    return text


def parse_message_type(message_type: Union[MessageType, str]) -> MessageType:
    """Coerce a message kind, rejecting anything outside MessageType."""
    try:
        return MessageType(message_type)
    except ValueError:
        raise InvalidInputException(
            f"Unsupported message type: {message_type}", field="message_type"
        )


class MessageLedger:
    """Message operations bound to one database session."""

    def __init__(self, db: DBSession, registry: Optional[ParticipantRegistry] = None):
        self.db = db
        self.registry = registry or ParticipantRegistry(db)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        message_type: Union[MessageType, str] = MessageType.TEXT,
    ) -> MessageRecord:
        """
        Insert a message and commit it.

        No authorization or eligibility checks; callers do those.
        """
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=normalize_content(content),
            message_type=parse_message_type(message_type),
            created_at=utcnow(),
        )
        self.db.add(message)
        self.db.commit()
        record = MessageRecord.from_row(message)
        self.touch_conversation(conversation_id, record.created_at)
        return record

    def touch_conversation(self, conversation_id: str, at) -> bool:
        """
        Bump conversations.updated_at after a message.

        Failure is logged and swallowed; the message is already committed.
        """
        try:
            self.db.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=at)
            )
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to bump updated_at for conversation {conversation_id}: {e}")
            return False

    def send_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        message_type: Union[MessageType, str] = MessageType.TEXT,
    ) -> MessageRecord:
        """
        Send a message as a participant.

        WHAT: Authorized, eligibility-checked append
        WHY: Entry point for both travelers and agency owners replying
        HOW: membership gate -> reply eligibility -> content check -> insert -> bump

        Raises:
            InvalidInputException: missing ids, empty content or unknown message type
            ConversationNotFoundException: unknown conversation
            UnauthorizedException: sender is not a participant
            AgencyUnavailableException: agency suspended or subscription lapsed
        """
        if not conversation_id or not sender_id:
            raise InvalidInputException("conversation_id and sender_id are required")

        self.registry.require_participant(conversation_id, sender_id)
        self._check_reply_eligibility(conversation_id)
        normalize_content(content)
        kind = parse_message_type(message_type)

        record = self.append_message(conversation_id, sender_id, content, kind)
        logger.info(f"Message {record.id} sent in conversation {conversation_id} by {sender_id}")
        return record

    def _check_reply_eligibility(self, conversation_id: str):
        conversation = self.db.get(Conversation, conversation_id)
        if conversation.offer_id is None:
            return
        offer = self.db.get(Offer, conversation.offer_id)
        if offer is None or offer.agency is None:
            return
        allowed, reason = can_reply(offer.agency)
        if not allowed:
            logger.info(f"Reply blocked in conversation {conversation_id}: {reason}")
            raise AgencyUnavailableException(offer.agency.id, reason)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_messages(
        self,
        conversation_id: str,
        user_id: str,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[MessageRecord]:
        """
        Messages of a conversation in creation order.

        Safe to call repeatedly; nothing is mutated.
        """
        self.registry.require_participant(conversation_id, user_id)
        return self._messages(conversation_id, descending, limit, offset)

    def _messages(self, conversation_id, descending=False, limit=None, offset=0) -> List[MessageRecord]:
        query = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(*_ordering(descending))
        )
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [MessageRecord.from_row(row) for row in self.db.execute(query).scalars().all()]

    def latest_message(self, conversation_id: str) -> Optional[MessageRecord]:
        """Most recent message, or None for an empty conversation."""
        messages = self._messages(conversation_id, descending=True, limit=1)
        return messages[0] if messages else None

    def unread_count(self, conversation_id: str, user_id: str) -> int:
        """
        Messages from others created after the user's last read.

        A participant who never read the conversation has every message
        from others unread.
        """
        participant = self.registry.require_participant(conversation_id, user_id)
        return self._unread(conversation_id, user_id, participant.last_read_at)

    def _unread(self, conversation_id: str, user_id: str, last_read_at) -> int:
        conditions = [
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
        ]
        if last_read_at is not None:
            conditions.append(Message.created_at > last_read_at)
        return self.db.execute(
            select(func.count(Message.id)).where(*conditions)
        ).scalar_one()

    def total_unread_count(self, user_id: str) -> int:
        """Unread messages across every conversation the user belongs to."""
        return self.db.execute(
            select(func.count(Message.id))
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id,
                ),
            )
            .where(
                Message.sender_id != user_id,
                or_(
                    ConversationParticipant.last_read_at.is_(None),
                    Message.created_at > ConversationParticipant.last_read_at,
                ),
            )
        ).scalar_one()

    def conversation_summaries(self, user_id: str) -> List[ConversationSummary]:
        """
        Inbox for a user, most recently active first.

        WHAT: One row per conversation with other party, last message, unread count
        WHY: Conversation list views
        HOW: Load memberships, then resolve each conversation's details
        """
        memberships = {
            row.conversation_id: row
            for row in self.db.execute(
                select(ConversationParticipant).where(ConversationParticipant.user_id == user_id)
            ).scalars().all()
        }
        if not memberships:
            return []

        conversations = self.db.execute(
            select(Conversation)
            .where(Conversation.id.in_(list(memberships)))
            .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
        ).scalars().all()

        summaries = []
        for conversation in conversations:
            other = self.registry.other_participant(conversation.id, user_id)
            offer, agency = self._offer_and_agency(conversation)
            summaries.append(ConversationSummary(
                conversation=ConversationInfo.from_row(conversation),
                other_participant=other,
                other_profile=self._profile(other.user_id) if other else None,
                last_message=self.latest_message(conversation.id),
                unread_count=self._unread(
                    conversation.id, user_id, memberships[conversation.id].last_read_at
                ),
                offer=offer,
                agency=agency,
            ))
        return summaries

    def conversation_detail(self, conversation_id: str, user_id: str) -> ConversationDetail:
        """
        Open a conversation: full history plus context, and mark it read
        up to the newest message returned.

        Raises:
            ConversationNotFoundException: unknown conversation
            UnauthorizedException: user is not a participant
        """
        self.registry.require_participant(conversation_id, user_id)
        conversation = self.db.get(Conversation, conversation_id)
        read_at = utcnow()
        messages = self._messages(conversation_id)

        # Read position never passes what was actually returned
        if messages:
            read_at = messages[-1].created_at
        self.registry.mark_read(conversation_id, user_id, read_at)

        participants = self.registry.list_participants(conversation_id)
        other = next((p for p in participants if p.user_id != user_id), None)
        profiles = {}
        for participant in participants:
            profile = self._profile(participant.user_id)
            if profile is not None:
                profiles[participant.user_id] = profile
        offer, agency = self._offer_and_agency(conversation)

        return ConversationDetail(
            conversation=ConversationInfo.from_row(conversation),
            participants=participants,
            messages=messages,
            other_participant=other,
            other_profile=profiles.get(other.user_id) if other else None,
            offer=offer,
            agency=agency,
            profiles=profiles,
        )

    def _profile(self, user_id: str) -> Optional[ProfileInfo]:
        row = self.db.get(Profile, user_id)
        return ProfileInfo.from_row(row) if row else None

    def _offer_and_agency(self, conversation: Conversation):
        if conversation.offer_id is None:
            return None, None
        offer = self.db.get(Offer, conversation.offer_id)
        if offer is None:
            return None, None
        agency: Optional[Agency] = offer.agency
        return OfferInfo.from_row(offer), AgencyInfo.from_row(agency) if agency else None
