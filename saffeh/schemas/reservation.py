# saffeh/schemas/reservation.py
"""
Reservation wire model and status enum.

The backend sends camelCase JSON with a free-form status string; this is
the only place that string is interpreted. Unknown statuses map to UNKNOWN.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"      # anything the client does not recognise

    @classmethod
    def parse(cls, value) -> "ReservationStatus":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().upper()
        try:
            status = cls(normalized)
        except ValueError:
            logger.warning(f"Unrecognised reservation status {value!r} — treating as UNKNOWN")
            return cls.UNKNOWN
        return status


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps from the backend are UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PlaceRef(BaseModel):
    id: Union[str, int]
    name: Optional[str] = None


class Reservation(BaseModel):
    id: Union[str, int]
    status: ReservationStatus
    valid_from: Optional[datetime] = Field(None, alias="validFrom")
    valid_until: Optional[datetime] = Field(None, alias="validUntil")
    qr_token: Optional[str] = Field(None, alias="qrToken")
    consumed_at: Optional[datetime] = Field(None, alias="consumedAt")
    cancelled_at: Optional[datetime] = Field(None, alias="cancelledAt")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    location_id: Optional[Union[str, int]] = Field(None, alias="locationId")
    gate_id: Optional[Union[str, int]] = Field(None, alias="gateId")
    location: Optional[PlaceRef] = None
    gate: Optional[PlaceRef] = None

    class Config:
        populate_by_name = True

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v):
        return ReservationStatus.parse(v)

    @field_validator("valid_from", "valid_until", "consumed_at", "cancelled_at", "created_at")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)


class Pricing(BaseModel):
    base_price: Optional[float] = Field(None, alias="basePrice")
    discount: Optional[float] = None
    final_price: Optional[float] = Field(None, alias="finalPrice")
    currency: Optional[str] = None

    class Config:
        populate_by_name = True


class AppliedVoucher(BaseModel):
    id: Union[str, int]
    code: Optional[str] = None
    percentage: int = 0


@dataclass
class CheckoutSession:
    """Pairs a reservation with the payment provider session. Never persisted."""
    reservation_id: Union[str, int]
    session_id: str
    checkout_url: str


@dataclass
class CreatedReservation:
    reservation: Reservation
    checkout: CheckoutSession
    pricing: Optional[Pricing] = None
    applied_voucher: Optional[AppliedVoucher] = None


@dataclass
class PaymentConfirmation:
    reservation: Reservation
    already_confirmed: bool = False
