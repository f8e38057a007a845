"""
Participant registry.

WHAT: Conversation membership and per-participant read progress
WHY: Every read or write of chat data is gated on membership
HOW: Queries over conversation_participants within the caller's session
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from ..core.config import settings
from ..core.models import Conversation, ConversationParticipant
from ..models.chat import ParticipantInfo
from ..utils.exceptions import (
    ConflictException,
    ConversationNotFoundException,
    InvalidInputException,
    UnauthorizedException,
)
from ..utils.logger import get_logger
from ..utils.time_utils import utcnow, to_naive_utc

logger = get_logger(__name__)


def is_unique_violation(exc: IntegrityError) -> bool:
    """SQLite says 'UNIQUE constraint failed', Postgres 'violates unique constraint'."""
    return "unique" in str(exc.orig).lower()


class ParticipantRegistry:
    """Membership operations bound to one database session."""

    def __init__(self, db: DBSession):
        self.db = db

    def _require_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundException(conversation_id)
        return conversation

    def _get_row(self, conversation_id: str, user_id: str) -> Optional[ConversationParticipant]:
        return self.db.execute(
            select(ConversationParticipant).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        ).scalar_one_or_none()

    def is_participant(self, conversation_id: str, user_id: str) -> bool:
        """True iff a membership row exists for the pair."""
        if not conversation_id or not user_id:
            return False
        return self._get_row(conversation_id, user_id) is not None

    def require_participant(self, conversation_id: str, user_id: str) -> ConversationParticipant:
        """
        Authorization gate.

        Raises:
            ConversationNotFoundException: conversation does not exist
            UnauthorizedException: user is not a member
        """
        self._require_conversation(conversation_id)
        row = self._get_row(conversation_id, user_id) if user_id else None
        if row is None:
            logger.warning(f"User {user_id} denied access to conversation {conversation_id}")
            raise UnauthorizedException(conversation_id, user_id)
        return row

    def list_participants(self, conversation_id: str) -> List[ParticipantInfo]:
        """All members of a conversation, oldest membership first."""
        self._require_conversation(conversation_id)
        rows = self.db.execute(
            select(ConversationParticipant)
            .where(ConversationParticipant.conversation_id == conversation_id)
            .order_by(ConversationParticipant.id)
        ).scalars().all()
        return [ParticipantInfo.from_row(row) for row in rows]

    def other_participant(self, conversation_id: str, user_id: str) -> Optional[ParticipantInfo]:
        """The member that is not `user_id`, if any."""
        for participant in self.list_participants(conversation_id):
            if participant.user_id != user_id:
                return participant
        return None

    def member_ids(self, conversation_id: str) -> set:
        return set(self.db.execute(
            select(ConversationParticipant.user_id)
            .where(ConversationParticipant.conversation_id == conversation_id)
        ).scalars().all())

    def conversation_ids_for(self, user_id: str) -> List[str]:
        """Ids of every conversation the user belongs to."""
        return list(self.db.execute(
            select(ConversationParticipant.conversation_id)
            .where(ConversationParticipant.user_id == user_id)
        ).scalars().all())

    def mark_read(self, conversation_id: str, user_id: str, at: Optional[datetime] = None) -> datetime:
        """
        Record that the user has read the conversation up to `at`.

        Args:
            conversation_id: Conversation being read
            user_id: Reader, must be a participant
            at: Read position, defaults to now

        Returns:
            The stored last_read_at
        """
        row = self.require_participant(conversation_id, user_id)
        row.last_read_at = to_naive_utc(at) if at is not None else utcnow()
        self.db.flush()
        return row.last_read_at

    def add_participants(
        self,
        conversation_id: str,
        user_ids: Iterable[str],
        size: Optional[int] = None,
        idempotent: bool = True,
    ) -> List[ParticipantInfo]:
        """
        Insert membership rows for a conversation as one batch.

        WHAT: Add the expected set of members
        WHY: Conversations are created together with exactly `size` members
        HOW: Skip (or reject) existing pairs, add the rest, single flush

        Args:
            conversation_id: Target conversation
            user_ids: Set of user ids to add
            size: Required number of distinct ids (default from settings)
            idempotent: Treat already-present members as success

        Returns:
            The rows actually inserted
        """
        size = size or settings.CONVERSATION_PARTICIPANT_LIMIT
        wanted = {user_id for user_id in user_ids if user_id}
        if len(wanted) != size:
            raise InvalidInputException(
                f"Expected {size} distinct participants, got {len(wanted)}",
                field="user_ids"
            )

        self._require_conversation(conversation_id)
        existing = self.member_ids(conversation_id)

        duplicates = wanted & existing
        if duplicates and not idempotent:
            raise ConflictException(conversation_id, list(duplicates))

        missing = wanted - existing
        if len(existing) + len(missing) > size:
            raise ConflictException(conversation_id, list(missing))

        rows = [
            ConversationParticipant(conversation_id=conversation_id, user_id=user_id)
            for user_id in sorted(missing)
        ]
        if not rows:
            return []

        # One flush: either the whole batch lands or the transaction is rolled back
        self.db.add_all(rows)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            if not is_unique_violation(e):
                raise
            logger.warning(f"Participant insert collided for conversation {conversation_id}: {e.orig}")
            raise ConflictException(conversation_id, list(missing)) from e

        return [ParticipantInfo.from_row(row) for row in rows]
