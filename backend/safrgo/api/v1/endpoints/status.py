"""
Status and health check endpoints.

WHAT: Health monitoring for the database
WHY: Quick diagnostics for frontend and ops
HOW: FastAPI endpoint calling the DB ping
"""

from fastapi import APIRouter

from ....core.database import ping_database
from ....core.config import settings
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Overall application health check.

    Returns:
        JSON with overall health status
    """
    db_status = ping_database()
    if not db_status["available"]:
        logger.error(f"Health check: database unavailable ({db_status['error']})")

    return {
        "status": "healthy" if db_status["available"] else "degraded",
        "version": settings.APP_VERSION,
        "app_name": settings.APP_NAME,
        "components": {
            "database": db_status
        }
    }
