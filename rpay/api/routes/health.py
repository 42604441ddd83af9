import logging

import redis
from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rpay.core.config import settings
from rpay.db.session import get_db


logger = logging.getLogger(__name__)

router = APIRouter()


def _check_redis() -> str:
    if not settings.redis_url:
        return "disabled"
    redis.Redis.from_url(settings.redis_url, socket_timeout=2).ping()
    return "ok"


@router.get("/health")
def health() -> dict:
    """Liveness: the process is up."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """
    Readiness: the database answers. Redis only backs the login rate limit,
    so it is reported but never makes the app unready.
    """
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.warning("readiness_database_failed", extra={"error": str(e)})
        response.status_code = 503
        return {"status": "not_ready", "checks": {"database": "error"}}
    try:
        checks["redis"] = _check_redis()
    except redis.RedisError as e:
        logger.warning("readiness_redis_failed", extra={"error": str(e)})
        checks["redis"] = "error"
    return {"status": "ready", "checks": checks}
