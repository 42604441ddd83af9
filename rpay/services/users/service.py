import logging
import secrets
from enum import Enum

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from rpay.core.config import settings
from rpay.models.api_key import ApiKey
from rpay.models.user import User
from rpay.services.auth.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
PASSWORD_MAX_BYTES = 72


class UserErrorReason(str, Enum):
    INVALID_INPUT = "invalid_input"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    INVALID_PASSWORD = "invalid_password"
    SELF_DELETE = "self_delete"


class UserError(Exception):
    def __init__(self, reason: UserErrorReason, message: str):
        self.reason = reason
        self.message = message
        super().__init__(message)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> User | None:
        return self.db.query(User).filter(User.id == user_id).one_or_none()

    def get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).one_or_none()

    def get_balance(self, user_id: int) -> int | None:
        row = self.db.query(User.saldo).filter(User.id == user_id).one_or_none()
        return row[0] if row else None

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> User:
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email or not password:
            raise UserError(UserErrorReason.INVALID_INPUT, "Username, email and password are required")
        if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise UserError(UserErrorReason.INVALID_INPUT, "Password is too long")
        user = User(username=username, email=email, password=hash_password(password))
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise UserError(UserErrorReason.DUPLICATE, "Registration failed")
        self.db.refresh(user)
        logger.info("user_registered", extra={"user_id": user.id})
        return user

    def authenticate(self, email: str, password: str, admin_only: bool = False) -> User:
        email = (email or "").strip().lower()
        query = self.db.query(User).filter(User.email == email)
        if admin_only:
            query = query.filter(User.is_admin.is_(True))
        user = query.one_or_none()
        if user is None:
            raise UserError(UserErrorReason.NOT_FOUND, "Admin not found" if admin_only else "User not found")
        if not verify_password(password or "", user.password):
            raise UserError(UserErrorReason.INVALID_PASSWORD, "Invalid password")
        return user

    def ensure_admin(self) -> User:
        """Seed the admin account from settings if it does not exist yet."""
        email = settings.admin_email.strip().lower()
        admin = self.get_by_email(email)
        if admin:
            return admin
        admin = User(
            username=settings.admin_username,
            email=email,
            password=hash_password(settings.admin_password),
            is_admin=True,
        )
        self.db.add(admin)
        self.db.commit()
        self.db.refresh(admin)
        logger.info("admin_seeded", extra={"user_id": admin.id})
        return admin

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def generate_api_key(self, user_id: int) -> ApiKey:
        key = ApiKey(user_id=user_id, api_key=secrets.token_hex(32), verified=False)
        self.db.add(key)
        self.db.commit()
        self.db.refresh(key)
        logger.info("api_key_generated", extra={"user_id": user_id})
        return key

    def list_api_keys(self, user_id: int) -> list[ApiKey]:
        return (
            self.db.query(ApiKey)
            .filter(ApiKey.user_id == user_id)
            .order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
            .all()
        )

    def verified_api_key(self, user_id: int) -> ApiKey | None:
        return (
            self.db.query(ApiKey)
            .filter(ApiKey.user_id == user_id, ApiKey.verified.is_(True))
            .order_by(ApiKey.id)
            .first()
        )

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_customers(self) -> list[User]:
        """Non-admin users, newest first, with their API keys loaded."""
        return (
            self.db.query(User)
            .options(selectinload(User.api_keys))
            .filter(User.is_admin.is_(False))
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

    def verify_api_keys(self, user_id: int) -> int:
        """Mark every API key of the user as verified. Returns the number of keys touched."""
        result = self.db.execute(
            update(ApiKey).where(ApiKey.user_id == user_id).values(verified=True)
        )
        self.db.commit()
        logger.info("api_keys_verified", extra={"user_id": user_id, "count": result.rowcount})
        return result.rowcount

    def delete_user(self, user_id: int, acting_user_id: int | None) -> None:
        """Delete a user with their keys, transactions and withdrawals."""
        if acting_user_id is not None and user_id == acting_user_id:
            raise UserError(UserErrorReason.SELF_DELETE, "Cannot delete your own account")
        user = self.get(user_id)
        if user is None:
            raise UserError(UserErrorReason.NOT_FOUND, "User not found")
        self.db.delete(user)
        self.db.commit()
        logger.info("user_deleted", extra={"user_id": user_id})
