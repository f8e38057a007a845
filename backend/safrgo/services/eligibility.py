"""
Agency eligibility rules for chat.

WHAT: Decide whether an agency can be contacted
WHY: Starting a conversation and replying in one use different thresholds
HOW: Pure functions over the agency's status fields, returning (allowed, reason)

Starting requires a fully active, fully subscribed agency. Replying in an
existing conversation stays open while the subscription is pending renewal,
and closes only for suspended agencies or lapsed subscriptions.
"""

from typing import Optional, Tuple

from ..core.models import Agency, AgencyStatus, SubscriptionStatus

REPLY_SUBSCRIPTION_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING})


def can_start_conversation(agency: Agency) -> Tuple[bool, Optional[str]]:
    """
    Check whether a new conversation may be opened with an agency.

    Args:
        agency: Agency that owns the offer

    Returns:
        (allowed, reason) where reason explains a refusal
    """
    if agency.status != AgencyStatus.ACTIVE:
        return False, "This agency is not active"
    if agency.subscription_status != SubscriptionStatus.ACTIVE:
        return False, "This agency does not have an active subscription"
    return True, None


def can_reply(agency: Agency) -> Tuple[bool, Optional[str]]:
    """
    Check whether messages may still be sent in an existing conversation.

    Args:
        agency: Agency behind the conversation's offer

    Returns:
        (allowed, reason) where reason explains a refusal
    """
    if agency.status == AgencyStatus.SUSPENDED:
        return False, "This agency is currently unavailable"
    if agency.subscription_status not in REPLY_SUBSCRIPTION_STATUSES:
        return False, "This agency is currently unavailable"
    return True, None
