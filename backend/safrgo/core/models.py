"""
ORM models for the messaging store.

WHAT: SQLAlchemy models for conversations, participants and messages,
      plus the read-only marketplace tables they reference
WHY: Persist chats between travelers and agency owners
HOW: Declarative models with unique constraints, FKs and ordering indexes
"""

from uuid import uuid4
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
import enum

from .database import Base
from ..utils.time_utils import utcnow


class ProfileRole(str, enum.Enum):
    """Profile role values."""
    TRAVELER = "traveler"
    AGENCY = "agency"
    ADMIN = "admin"


class AgencyStatus(str, enum.Enum):
    """Agency operational status."""
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class SubscriptionStatus(str, enum.Enum):
    """Agency subscription status."""
    NONE = "none"
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    REJECTED = "rejected"


class MessageType(str, enum.Enum):
    """Message kind."""
    TEXT = "text"
    IMAGE = "image"


def make_pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for a two-person conversation."""
    return "|".join(sorted((user_a, user_b)))


# ========== Marketplace references (owned by other services) ==========

class Profile(Base):
    """
    Profile table - user identity as published by the auth provider.

    Read-only from the messaging core; used to describe the other participant.
    """
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False)
    avatar = Column(String(500), nullable=True)
    role = Column(SQLEnum(ProfileRole), nullable=False, default=ProfileRole.TRAVELER)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Profile(id={self.id}, name={self.name}, role={self.role})>"


class Agency(Base):
    """
    Agency table - travel agency owned by one profile.

    The messaging core only reads owner_id, status and subscription_status.
    """
    __tablename__ = "agencies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    owner_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    logo = Column(String(500), nullable=True)
    status = Column(SQLEnum(AgencyStatus), nullable=False, default=AgencyStatus.PENDING)
    subscription_status = Column(
        SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.NONE
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)

    owner = relationship("Profile")
    offers = relationship("Offer", back_populates="agency")

    def __repr__(self):
        return f"<Agency(id={self.id}, status={self.status}, subscription={self.subscription_status})>"


class Offer(Base):
    """Offer table - a travel package published by exactly one agency."""
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    agency_id = Column(String(36), ForeignKey("agencies.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(300), nullable=False)
    image = Column(String(500), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    agency = relationship("Agency", back_populates="offers")

    def __repr__(self):
        return f"<Offer(id={self.id}, title={self.title})>"


# ========== Messaging ==========

class Conversation(Base):
    """
    Conversation table - a chat between a traveler and an agency owner.

    WHAT: Container for participants and messages, optionally scoped to an offer
    WHY: Group the messages exchanged about one offer
    HOW: pair_key + offer_id unique so a pair has at most one chat per offer
    """
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    offer_id = Column(String(36), ForeignKey("offers.id", ondelete="SET NULL"), nullable=True)
    pair_key = Column(String(80), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    offer = relationship("Offer")
    participants = relationship(
        "ConversationParticipant", back_populates="conversation", cascade="all, delete-orphan"
    )
    messages = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("offer_id", "pair_key", name="unique_offer_pair"),
        Index("idx_conversation_updated", "updated_at"),
    )

    def __repr__(self):
        return f"<Conversation(id={self.id}, offer_id={self.offer_id})>"


class ConversationParticipant(Base):
    """
    ConversationParticipant table - membership and read progress.

    last_read_at NULL means the participant never opened the conversation.
    """
    __tablename__ = "conversation_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    last_read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="participants")
    profile = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="unique_conversation_user"),
        Index("idx_participant_user", "user_id"),
    )

    def __repr__(self):
        return f"<ConversationParticipant(conversation={self.conversation_id}, user={self.user_id})>"


class Message(Base):
    """
    Message table - append-only chat history.

    WHAT: One message sent by a participant
    WHY: Ordered history and unread counting
    HOW: Ordered by (created_at, id); the autoincrement id breaks timestamp ties
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid4()))
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(SQLEnum(MessageType), nullable=False, default=MessageType.TEXT)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        Index("idx_message_conversation_created", "conversation_id", "created_at", "id"),
    )

    def __repr__(self):
        return f"<Message(id={self.message_id}, sender={self.sender_id})>"
