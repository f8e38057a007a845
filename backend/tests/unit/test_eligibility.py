"""
Tests for agency eligibility rules.

WHAT: Start vs reply thresholds
WHY: The two gates differ on purpose and are easy to merge by accident
HOW: Transient Agency rows across every status combination
"""

import pytest

from safrgo.core.models import Agency, AgencyStatus, SubscriptionStatus
from safrgo.services.eligibility import can_start_conversation, can_reply


def make_agency(status, subscription_status):
    return Agency(
        id="ag",
        owner_id="owner",
        name="Agency",
        slug="agency",
        status=AgencyStatus(status),
        subscription_status=SubscriptionStatus(subscription_status),
    )


@pytest.mark.unit
class TestCanStartConversation:

    def test_active_and_subscribed(self):
        allowed, reason = can_start_conversation(make_agency("active", "active"))
        assert allowed is True
        assert reason is None

    @pytest.mark.parametrize("status", ["pending", "suspended"])
    def test_inactive_agency_refused(self, status):
        allowed, reason = can_start_conversation(make_agency(status, "active"))
        assert allowed is False
        assert "not active" in reason

    @pytest.mark.parametrize("subscription", ["none", "pending", "expired", "rejected"])
    def test_subscription_must_be_active(self, subscription):
        allowed, reason = can_start_conversation(make_agency("active", subscription))
        assert allowed is False
        assert "subscription" in reason


@pytest.mark.unit
class TestCanReply:

    @pytest.mark.parametrize("subscription", ["active", "pending"])
    def test_active_or_pending_subscription_allowed(self, subscription):
        allowed, _ = can_reply(make_agency("active", subscription))
        assert allowed is True

    def test_pending_agency_status_still_allowed(self):
        allowed, _ = can_reply(make_agency("pending", "active"))
        assert allowed is True

    def test_suspended_refused(self):
        allowed, reason = can_reply(make_agency("suspended", "active"))
        assert allowed is False
        assert reason == "This agency is currently unavailable"

    @pytest.mark.parametrize("subscription", ["none", "expired", "rejected"])
    def test_lapsed_subscription_refused(self, subscription):
        allowed, _ = can_reply(make_agency("active", subscription))
        assert allowed is False

    def test_pending_subscription_is_the_asymmetry(self):
        agency = make_agency("active", "pending")
        assert can_start_conversation(agency)[0] is False
        assert can_reply(agency)[0] is True
