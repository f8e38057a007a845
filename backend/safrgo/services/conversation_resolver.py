"""
Conversation resolver.

WHAT: Find or create the conversation between a traveler and an offer's agency owner
WHY: Entry point when a traveler contacts an agency from an offer page
HOW: Requester and offer lookup -> eligibility gate -> idempotent lookup -> insert with
     participants in one transaction -> optional first message

The (offer_id, pair_key) unique constraint closes the lookup/insert race: a
caller that loses it rolls back and returns the winner's conversation.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DBSession, aliased

from ..core.models import Conversation, ConversationParticipant, Offer, Profile, make_pair_key
from ..utils.exceptions import (
    AgencyNotFoundException,
    AgencyUnavailableException,
    BusinessException,
    InvalidInputException,
    OfferNotFoundException,
    ProfileNotFoundException,
)
from ..utils.logger import get_logger
from .eligibility import can_start_conversation
from .message_ledger import MessageLedger
from .participant_registry import ParticipantRegistry, is_unique_violation

logger = get_logger(__name__)


class ConversationResolver:
    """Find-or-create operations bound to one database session."""

    def __init__(
        self,
        db: DBSession,
        registry: Optional[ParticipantRegistry] = None,
        ledger: Optional[MessageLedger] = None,
    ):
        self.db = db
        self.registry = registry or ParticipantRegistry(db)
        self.ledger = ledger or MessageLedger(db, self.registry)

    def find_existing(self, requester_id: str, recipient_id: str, offer_id: str) -> Optional[str]:
        """
        Earliest conversation about `offer_id` that has both users as members.

        Returns:
            Conversation id or None
        """
        requester = aliased(ConversationParticipant)
        recipient = aliased(ConversationParticipant)
        return self.db.execute(
            select(Conversation.id)
            .join(requester, requester.conversation_id == Conversation.id)
            .join(recipient, recipient.conversation_id == Conversation.id)
            .where(
                Conversation.offer_id == offer_id,
                requester.user_id == requester_id,
                recipient.user_id == recipient_id,
            )
            .order_by(Conversation.created_at.asc(), Conversation.id.asc())
            .limit(1)
        ).scalar_one_or_none()

    def find_by_pair(self, user_a: str, user_b: str, offer_id: str) -> Optional[str]:
        """Conversation holding the (offer_id, pair_key) unique slot, if any."""
        return self.db.execute(
            select(Conversation.id).where(
                Conversation.offer_id == offer_id,
                Conversation.pair_key == make_pair_key(user_a, user_b),
            )
        ).scalar_one_or_none()

    def start_conversation(
        self,
        requester_id: str,
        offer_id: str,
        initial_message: Optional[str] = None,
    ) -> str:
        """
        Return the conversation for (requester, offer), creating it if needed.

        Args:
            requester_id: Traveler opening the chat
            offer_id: Offer being asked about
            initial_message: Optional first message, only sent on creation

        Returns:
            Conversation id

        Raises:
            InvalidInputException: missing ids, or requester owns the agency
            ProfileNotFoundException: requester has no profile
            OfferNotFoundException: unknown offer
            AgencyNotFoundException: offer points at a missing agency
            AgencyUnavailableException: agency not active or not subscribed
        """
        if not requester_id:
            raise InvalidInputException("requester_id is required", field="requester_id")
        if not offer_id:
            raise InvalidInputException("offer_id is required", field="offer_id")

        if self.db.get(Profile, requester_id) is None:
            raise ProfileNotFoundException(requester_id)

        offer = self.db.get(Offer, offer_id)
        if offer is None:
            raise OfferNotFoundException(offer_id)
        agency = offer.agency
        if agency is None:
            raise AgencyNotFoundException(offer.agency_id)
        recipient_id = agency.owner_id

        if recipient_id == requester_id:
            raise InvalidInputException(
                "Cannot start a conversation with your own agency", field="offer_id"
            )

        allowed, reason = can_start_conversation(agency)
        if not allowed:
            logger.info(f"Conversation refused for offer {offer_id}: {reason}")
            raise AgencyUnavailableException(agency.id, reason)

        existing_id = self.find_existing(requester_id, recipient_id, offer_id)
        if existing_id is not None:
            logger.info(f"Reusing conversation {existing_id} for offer {offer_id}")
            return existing_id

        conversation_id = self._create(requester_id, recipient_id, offer_id)
        if conversation_id is None:
            # Lost the race to a concurrent request for the same pair and offer
            winner_id = self.find_by_pair(requester_id, recipient_id, offer_id)
            logger.info(f"Concurrent create for offer {offer_id}, using {winner_id}")
            return winner_id

        if initial_message and initial_message.strip():
            self._send_initial_message(conversation_id, requester_id, initial_message)

        return conversation_id

    def _create(self, requester_id: str, recipient_id: str, offer_id: str) -> Optional[str]:
        """Insert conversation + both participants atomically. None on unique collision."""
        conversation = Conversation(
            offer_id=offer_id,
            pair_key=make_pair_key(requester_id, recipient_id),
        )
        self.db.add(conversation)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            if not is_unique_violation(e):
                raise
            return None

        self.registry.add_participants(conversation.id, {requester_id, recipient_id}, size=2)
        self.db.commit()
        logger.info(
            f"Created conversation {conversation.id} for offer {offer_id} "
            f"between {requester_id} and {recipient_id}"
        )
        return conversation.id

    def _send_initial_message(self, conversation_id: str, sender_id: str, content: str):
        """First message is best effort; the conversation exists either way."""
        try:
            self.ledger.append_message(conversation_id, sender_id, content)
        except (BusinessException, SQLAlchemyError) as e:
            self.db.rollback()
            logger.error(f"Initial message failed for conversation {conversation_id}: {e}")
