from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_serializer


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class DepositOut(BaseModel):
    """Deposit as returned by the H2H API."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    reff_id: str
    nominal: int
    qr_string: str | None = None
    qr_image: str | None = None
    status: str
    created_at: datetime | None = None
    expired_at: datetime | None = None

    @field_serializer("created_at", "expired_at")
    def format_timestamp(self, value: datetime | None) -> str | None:
        return value.strftime(TIMESTAMP_FORMAT) if value else None


class DepositResponse(BaseModel):
    status: bool = True
    data: DepositOut
    code: int = 200


class ErrorResponse(BaseModel):
    status: bool = False
    message: str
    reason: str | None = None
