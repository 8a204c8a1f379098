# saffeh/schemas/voucher.py
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from saffeh.schemas.reservation import as_utc


class VoucherStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    USED = "USED"
    EXPIRED = "EXPIRED"


class Voucher(BaseModel):
    id: Union[str, int]
    code: Optional[str] = None
    percentage: int = Field(0, ge=0, le=100)
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    used_at: Optional[datetime] = Field(None, alias="usedAt")
    used: bool = False
    reservation_id: Optional[Union[str, int]] = Field(None, alias="reservationId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True

    @field_validator("expires_at", "used_at", "created_at")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)

    def status(self, now: Optional[datetime] = None) -> VoucherStatus:
        """`used` and `usedAt` are redundant on the wire; either one means used."""
        now = now or datetime.now(timezone.utc)
        if self.used or self.used_at is not None:
            return VoucherStatus.USED
        if self.expires_at is not None and self.expires_at <= now:
            return VoucherStatus.EXPIRED
        return VoucherStatus.AVAILABLE
