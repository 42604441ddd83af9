"""
Schema bootstrap. There is no migration system: tables are created
idempotently on startup and the admin account is seeded from settings.
"""
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from rpay.db.base import Base
# Model modules must be imported so their tables are registered on Base.metadata
from rpay.models import api_key, transaction, user, webhook_log, withdrawal  # noqa: F401

logger = logging.getLogger(__name__)


def create_schema(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def init_db(engine: Engine) -> None:
    from rpay.services.users.service import UserService

    create_schema(engine)
    with Session(bind=engine) as db:
        UserService(db).ensure_admin()
    logger.info("database_initialized")
