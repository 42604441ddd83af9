"""
Application configuration.
All settings are loaded from environment variables (or a local .env file).
Use env.example as a reference for required variables.
"""
from decimal import Decimal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Secrets have no defaults - they MUST be set in the environment.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    app_name: str = "RPay"
    port: int = 3000
    # Comma-separated. "*" allows any origin (public H2H API).
    cors_origins: str = "*"
    # Trusted proxy IPs (comma-separated). Used for X-Forwarded-For in production.
    trusted_proxy_ips: str = ""

    # ===========================================
    # DATABASE (single embedded SQLite file)
    # ===========================================
    database_url: str = "sqlite:///./database.sqlite"

    # ===========================================
    # SESSIONS (browser surface)
    # ===========================================
    session_secret: str  # Required, no default
    session_max_age: int = 24 * 60 * 60
    session_cookie_name: str = "rpay_session"
    session_cookie_secure: bool = False  # Set True in production (HTTPS)
    session_cookie_samesite: str = "lax"

    # ===========================================
    # ADMIN ACCOUNT (seeded at startup)
    # ===========================================
    admin_username: str = "admin"
    admin_email: str = "admin@rpay.xyz"
    admin_password: str  # Required, no default

    # ===========================================
    # ATLANTIC H2H (upstream QRIS processor)
    # ===========================================
    atlantic_api_key: str  # Required, no default
    atlantic_base_url: str = "https://atlantich2h.com"
    atlantic_deposit_type: str = "ewallet"
    atlantic_deposit_method: str = "qrisfast"
    atlantic_timeout: float = 15.0
    # Extra attempts after the first one (transport errors and 5xx only)
    atlantic_max_retries: int = 1

    # ===========================================
    # DEPOSITS / SETTLEMENT
    # ===========================================
    settlement_fee_rate: Decimal = Decimal("0.014")
    settlement_fee_flat: int = 300
    deposit_min_nominal: int = 1000
    deposit_expiry_minutes: int = 60

    # ===========================================
    # WITHDRAWALS (manual payout via WhatsApp)
    # ===========================================
    withdraw_contact_phone: str = "6289525036410"
    withdraw_contact_message: str = "Halo Admin RPay, saya ingin melakukan pencairan sebesar Rp {nominal}"

    # ===========================================
    # REDIS (optional, login rate limit only)
    # ===========================================
    redis_url: str | None = None
    login_rate_limit_attempts: int = 5
    login_rate_limit_window_seconds: int = 900  # 15 min

    # ===========================================
    # CIRCUIT BREAKER (upstream)
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def trusted_proxy_ips_set(self) -> set[str]:
        """Get trusted proxy IPs as a set."""
        return {ip.strip() for ip in self.trusted_proxy_ips.split(",") if ip.strip()}

    @field_validator("atlantic_base_url")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        """Ensure session secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("session_secret must be at least 16 characters")
        if v in ("changeme", "secret", "password", "rpay-secret-key-2024"):
            raise ValueError("session_secret is too weak, please change it")
        return v

    @field_validator("admin_password")
    @classmethod
    def validate_admin_password(cls, v: str) -> str:
        if not v or v in ("admin", "admin123", "password", "123456", "changeme"):
            raise ValueError("admin_password is too weak, please change it")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
