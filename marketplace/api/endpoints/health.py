"""
Health check endpoints.

/health is a plain liveness check. /health/detailed also checks the
database and the Celery broker; a broker outage only degrades the service
(emails and campaigns wait in the queue) while a database outage makes it
unhealthy.
"""

import logging
from typing import Dict, Any, Tuple
from fastapi import APIRouter, Depends, status
from kombu import Connection
from kombu.exceptions import OperationalError as BrokerError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from marketplace.core.config import settings
from marketplace.core.database import get_db
from marketplace.core.timeutils import utcnow

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


def check_broker() -> Tuple[bool, str]:
    try:
        with Connection(settings.REDIS_URL, connect_timeout=2) as conn:
            conn.ensure_connection(max_retries=1)
        return True, "Broker reachable"
    except (BrokerError, OSError) as e:
        return False, f"Broker error: {e}"


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Liveness check for uptime monitors and load balancers.
    """
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat()
    }


@router.get("/health/detailed", status_code=status.HTTP_200_OK)
def detailed_health_check(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Health with dependency status. Always 200; read "status"."""
    health_status = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "checks": {}
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database error: {str(e)}"
        }

    broker_ok, message = check_broker()
    health_status["checks"]["broker"] = {
        "status": "healthy" if broker_ok else "unhealthy",
        "message": message
    }
    if not broker_ok:
        logger.warning(f"Broker health check failed: {message}")
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"

    return health_status
