"""
Business exceptions for the messaging core.

WHAT: Tagged error kinds for expected chat failures
WHY: Callers branch on a stable code instead of parsing messages
HOW: BusinessException base with code/message/details, one subclass per kind
"""

from typing import Optional, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class NotFoundException(BusinessException):
    """Raised when a referenced conversation, offer or agency does not exist."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message=message, code="NOT_FOUND", details=details)


class ConversationNotFoundException(NotFoundException):
    """Raised when a conversation is not found."""

    def __init__(self, conversation_id: str):
        super().__init__(
            message=f"Conversation not found: {conversation_id}",
            details={"conversation_id": conversation_id}
        )


class ProfileNotFoundException(NotFoundException):
    """Raised when a user id has no profile."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"Profile not found: {user_id}",
            details={"user_id": user_id}
        )


class OfferNotFoundException(NotFoundException):
    """Raised when an offer (or the agency behind it) is not found."""

    def __init__(self, offer_id: str):
        super().__init__(
            message=f"Offer not found: {offer_id}",
            details={"offer_id": offer_id}
        )


class AgencyNotFoundException(NotFoundException):
    """Raised when an offer references an agency that no longer exists."""

    def __init__(self, agency_id: str):
        super().__init__(
            message=f"Agency not found: {agency_id}",
            details={"agency_id": agency_id}
        )


class UnauthorizedException(BusinessException):
    """Raised when the caller is not a participant of the conversation."""

    def __init__(self, conversation_id: str, user_id: str):
        super().__init__(
            message="Not authorized to access this conversation",
            code="UNAUTHORIZED",
            details={"conversation_id": conversation_id, "user_id": user_id}
        )


class AgencyUnavailableException(BusinessException):
    """Raised when an agency fails the eligibility gate for an operation."""

    def __init__(self, agency_id: str, reason: str):
        super().__init__(
            message=reason,
            code="AGENCY_UNAVAILABLE",
            details={"agency_id": agency_id}
        )


class InvalidInputException(BusinessException):
    """Raised for empty content or missing identifiers."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            details={"field": field} if field else None
        )


class ConflictException(BusinessException):
    """Raised when a participant insert collides with existing membership."""

    def __init__(self, conversation_id: str, user_ids: list):
        super().__init__(
            message=f"Participants already present in conversation {conversation_id}",
            code="CONFLICT",
            details={"conversation_id": conversation_id, "user_ids": sorted(user_ids)}
        )
