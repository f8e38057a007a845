"""
Chat domain models.

WHAT: Plain records returned by the messaging services
WHY: Callers get detached values that outlive the database session
HOW: Dataclasses built from ORM rows
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core import models as orm


@dataclass
class ProfileInfo:
    """Public view of a user profile."""
    id: str
    name: str
    avatar: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_row(cls, row: orm.Profile) -> "ProfileInfo":
        return cls(id=row.id, name=row.name, avatar=row.avatar, role=row.role.value)


@dataclass
class AgencyInfo:
    id: str
    name: str
    slug: str
    logo: Optional[str]
    status: str
    subscription_status: str

    @classmethod
    def from_row(cls, row: orm.Agency) -> "AgencyInfo":
        return cls(
            id=row.id,
            name=row.name,
            slug=row.slug,
            logo=row.logo,
            status=row.status.value,
            subscription_status=row.subscription_status.value,
        )


@dataclass
class OfferInfo:
    id: str
    title: str
    image: Optional[str]
    agency_id: str

    @classmethod
    def from_row(cls, row: orm.Offer) -> "OfferInfo":
        return cls(id=row.id, title=row.title, image=row.image, agency_id=row.agency_id)


@dataclass
class ParticipantInfo:
    """Membership record: who is in a conversation and how far they have read."""
    user_id: str
    last_read_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: orm.ConversationParticipant) -> "ParticipantInfo":
        return cls(user_id=row.user_id, last_read_at=row.last_read_at)


@dataclass
class MessageRecord:
    """A stored message. `seq` is the store's monotonic insertion id."""
    id: str
    seq: int
    conversation_id: str
    sender_id: str
    content: str
    message_type: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: orm.Message) -> "MessageRecord":
        return cls(
            id=row.message_id,
            seq=row.id,
            conversation_id=row.conversation_id,
            sender_id=row.sender_id,
            content=row.content,
            message_type=row.message_type.value,
            created_at=row.created_at,
        )


@dataclass
class ConversationInfo:
    id: str
    offer_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: orm.Conversation) -> "ConversationInfo":
        return cls(
            id=row.id,
            offer_id=row.offer_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


@dataclass
class ConversationSummary:
    """One inbox row for a user."""
    conversation: ConversationInfo
    other_participant: Optional[ParticipantInfo]
    other_profile: Optional[ProfileInfo]
    last_message: Optional[MessageRecord]
    unread_count: int
    offer: Optional[OfferInfo] = None
    agency: Optional[AgencyInfo] = None


@dataclass
class ConversationDetail:
    """Everything needed to render one open conversation."""
    conversation: ConversationInfo
    participants: list[ParticipantInfo]
    messages: list[MessageRecord]
    other_participant: Optional[ParticipantInfo]
    other_profile: Optional[ProfileInfo]
    offer: Optional[OfferInfo] = None
    agency: Optional[AgencyInfo] = None
    profiles: dict[str, ProfileInfo] = field(default_factory=dict)
