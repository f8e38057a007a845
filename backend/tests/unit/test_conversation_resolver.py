"""
Tests for the conversation resolver.

WHAT: Find-or-create behaviour, eligibility gate, initial message handling
WHY: Travelers must land in one conversation per offer, never duplicates
HOW: Resolver against a seeded SQLite database
"""

import pytest
from datetime import datetime
from unittest.mock import MagicMock, patch
from sqlalchemy import select, func

from safrgo.core.models import Conversation, ConversationParticipant, Message, make_pair_key
from safrgo.services.conversation_resolver import ConversationResolver
from safrgo.services.message_ledger import MessageLedger
from safrgo.utils.exceptions import (
    AgencyNotFoundException,
    AgencyUnavailableException,
    InvalidInputException,
    OfferNotFoundException,
    ProfileNotFoundException,
)


@pytest.fixture
def resolver(db):
    return ConversationResolver(db)


def conversation_count(db):
    return db.execute(select(func.count(Conversation.id))).scalar_one()


def members(db, conversation_id):
    return set(db.execute(
        select(ConversationParticipant.user_id)
        .where(ConversationParticipant.conversation_id == conversation_id)
    ).scalars().all())


@pytest.mark.unit
class TestStartConversation:

    def test_creates_conversation_with_both_participants(self, resolver, db, marketplace):
        conversation_id = resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id)

        conversation = db.get(Conversation, conversation_id)
        assert conversation.offer_id == marketplace.offer_id
        assert conversation.pair_key == make_pair_key(marketplace.traveler_id, marketplace.owner_id)
        assert members(db, conversation_id) == {marketplace.traveler_id, marketplace.owner_id}

    def test_idempotent(self, resolver, db, marketplace):
        first = resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id)
        second = resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id, "again?")

        assert first == second
        assert conversation_count(db) == 1
        # Reuse does not append the initial message
        assert db.execute(select(func.count(Message.id))).scalar_one() == 0

    def test_separate_conversation_per_offer(self, resolver, marketplace):
        first = resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id)
        second = resolver.start_conversation(marketplace.traveler_id, marketplace.second_offer_id)
        assert first != second

    def test_separate_conversation_per_traveler(self, resolver, marketplace):
        first = resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id)
        second = resolver.start_conversation(marketplace.other_traveler_id, marketplace.offer_id)
        assert first != second

    def test_initial_message_sent_as_requester(self, resolver, db, marketplace):
        conversation_id = resolver.start_conversation(
            marketplace.traveler_id, marketplace.offer_id, "Hello, is this available?"
        )
        ledger = MessageLedger(db)

        messages = ledger.list_messages(conversation_id, marketplace.traveler_id)
        assert len(messages) == 1
        assert messages[0].sender_id == marketplace.traveler_id
        assert messages[0].content == "Hello, is this available?"
        assert ledger.unread_count(conversation_id, marketplace.owner_id) == 1
        assert ledger.unread_count(conversation_id, marketplace.traveler_id) == 0

    def test_blank_initial_message_ignored(self, resolver, db, marketplace):
        resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id, "   ")
        assert db.execute(select(func.count(Message.id))).scalar_one() == 0

    def test_initial_message_failure_is_not_fatal(self, resolver, db, marketplace, caplog):
        with patch.object(
            MessageLedger, "append_message", side_effect=InvalidInputException("boom")
        ):
            conversation_id = resolver.start_conversation(
                marketplace.traveler_id, marketplace.offer_id, "Hello"
            )

        assert db.get(Conversation, conversation_id) is not None
        assert members(db, conversation_id) == {marketplace.traveler_id, marketplace.owner_id}
        assert "Initial message failed" in caplog.text

    def test_unknown_offer(self, resolver, marketplace):
        with pytest.raises(OfferNotFoundException) as exc_info:
            resolver.start_conversation(marketplace.traveler_id, "no-such-offer")
        assert exc_info.value.code == "NOT_FOUND"

    def test_requester_without_profile(self, resolver, db, marketplace):
        with pytest.raises(ProfileNotFoundException) as exc_info:
            resolver.start_conversation("ghost-user", marketplace.offer_id, "hello")

        assert exc_info.value.code == "NOT_FOUND"
        assert exc_info.value.details == {"user_id": "ghost-user"}
        assert conversation_count(db) == 0

    def test_offer_without_agency(self):
        db = MagicMock()
        db.get.return_value = MagicMock(agency=None, agency_id="ag-gone")

        with pytest.raises(AgencyNotFoundException) as exc_info:
            ConversationResolver(db).start_conversation("u-traveler", "offer-1")
        assert exc_info.value.details == {"agency_id": "ag-gone"}

    @pytest.mark.parametrize("requester,offer", [("", "offer-1"), ("u-traveler", ""), (None, "offer-1")])
    def test_missing_identifiers(self, resolver, marketplace, requester, offer):
        with pytest.raises(InvalidInputException):
            resolver.start_conversation(requester, offer)

    def test_owner_cannot_contact_own_agency(self, resolver, db, marketplace):
        with pytest.raises(InvalidInputException):
            resolver.start_conversation(marketplace.owner_id, marketplace.offer_id)
        assert conversation_count(db) == 0

    @pytest.mark.parametrize("status,subscription", [
        ("active", "pending"),
        ("active", "expired"),
        ("active", "none"),
        ("pending", "active"),
        ("suspended", "active"),
    ])
    def test_ineligible_agency(self, resolver, db, marketplace, set_agency, status, subscription):
        set_agency(status=status, subscription_status=subscription)
        with pytest.raises(AgencyUnavailableException):
            resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id, "hi")
        assert conversation_count(db) == 0

    def test_pending_subscription_blocks_start_but_not_reply(self, resolver, db, marketplace, set_agency):
        conversation_id = resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id)
        set_agency(subscription_status="pending")
        db.expire_all()

        with pytest.raises(AgencyUnavailableException):
            resolver.start_conversation(marketplace.traveler_id, marketplace.second_offer_id)

        message = MessageLedger(db).send_message(conversation_id, marketplace.traveler_id, "follow up")
        assert message.content == "follow up"


@pytest.mark.unit
class TestDuplicateHandling:

    def _legacy_conversation(self, db, marketplace, created_at):
        """Conversation from before pair keys existed (pair_key NULL)."""
        conversation = Conversation(offer_id=marketplace.offer_id, created_at=created_at)
        db.add(conversation)
        db.flush()
        db.add_all([
            ConversationParticipant(conversation_id=conversation.id, user_id=marketplace.traveler_id),
            ConversationParticipant(conversation_id=conversation.id, user_id=marketplace.owner_id),
        ])
        db.commit()
        return conversation.id

    def test_earliest_match_wins(self, resolver, db, marketplace):
        newer = self._legacy_conversation(db, marketplace, datetime(2025, 2, 1))
        older = self._legacy_conversation(db, marketplace, datetime(2025, 1, 1))

        assert resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id) == older
        assert newer != older

    def test_lost_race_returns_winner(self, resolver, db, marketplace):
        # The winner holds the (offer, pair) slot; our lookup missed it
        winner = Conversation(
            offer_id=marketplace.offer_id,
            pair_key=make_pair_key(marketplace.traveler_id, marketplace.owner_id),
        )
        db.add(winner)
        db.commit()

        with patch.object(ConversationResolver, "find_existing", return_value=None):
            result = resolver.start_conversation(marketplace.traveler_id, marketplace.offer_id, "hi")

        assert result == winner.id
        assert conversation_count(db) == 1
