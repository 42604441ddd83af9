import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from rpay.core.config import settings


# Libraries whose INFO output duplicates our own request/upstream logs
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; whitelisted `extra` fields are copied over."""

    EXTRA_FIELDS = (
        # request
        "request_id", "path", "method", "status_code", "latency_ms", "ip",
        # deposits / withdrawals
        "user_id", "reff_id", "nominal", "fee", "credited", "status",
        "upstream_status", "source", "reason", "count", "attempts",
        # upstream
        "attempt", "error", "breaker_name", "old_state", "new_state",
    )

    def __init__(self, service: str, env: str) -> None:
        super().__init__()
        self.service = service
        self.env = env

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "env": self.env,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (name, getattr(record, name))
            for name in self.EXTRA_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    formatter = JsonFormatter(service=settings.app_name, env=settings.app_env)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(
            RotatingFileHandler(
                settings.log_file,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
