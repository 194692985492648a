from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from typing import Optional
from datetime import datetime, timezone

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Some backends hand timestamps back without tzinfo; they are stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

class OtpRecord(SQLModel, table=True):
    __tablename__ = "otps"

    id: Optional[int] = Field(default=None, primary_key=True)
    phone_number: str = Field(index=True, max_length=32, nullable=False)
    country_code: str = Field(max_length=8, nullable=False)
    generated_otp: str = Field(max_length=6, nullable=False)
    is_valid: bool = Field(default=True, index=True)
    attempts: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    expires_at: datetime = Field(sa_type=DateTime(timezone=True), nullable=False)
    validated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True), nullable=True)
