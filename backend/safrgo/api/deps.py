"""
Shared FastAPI dependencies.

WHAT: Caller identity and the chat manager
WHY: Endpoints stay free of header parsing and singletons
HOW: Plain dependency functions, overridable in tests
"""

from fastapi import HTTPException, Request, status

from ..core.chat_manager import ChatManager, chat_manager
from ..core.config import settings


def get_current_user_id(request: Request) -> str:
    """
    Identity of the caller.

    The auth provider sits in front of this service and forwards the
    authenticated user id in a header.
    """
    user_id = (request.headers.get(settings.USER_ID_HEADER) or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user_id


def get_chat_manager() -> ChatManager:
    return chat_manager
