# saffeh/schemas/qr.py
"""Gate scanner ↔ backend QR validation shapes (x-api-key trust boundary)."""

from pydantic import BaseModel, Field
from typing import Optional


class VehicleInfo(BaseModel):
    plate_number: Optional[str] = Field(None, alias="plateNumber")
    entry_time: Optional[str] = Field(None, alias="entryTime")
    parking_duration: Optional[str] = Field(None, alias="parkingDuration")
    fee: Optional[float] = None

    class Config:
        populate_by_name = True


class GateAccess(BaseModel):
    allowed: bool
    gate_id: Optional[str] = Field(None, alias="gateId")
    timestamp: Optional[str] = None

    class Config:
        populate_by_name = True


class QRValidationData(BaseModel):
    valid: bool
    vehicle_info: Optional[VehicleInfo] = Field(None, alias="vehicleInfo")
    gate_access: Optional[GateAccess] = Field(None, alias="gateAccess")

    class Config:
        populate_by_name = True


class QRValidationRequest(BaseModel):
    qr_token: str = Field(alias="qrToken")
    gate_id: Optional[str] = Field(None, alias="gateId")
    guard_id: Optional[str] = Field(None, alias="guardId")
    timestamp: Optional[str] = None

    class Config:
        populate_by_name = True


class QRValidationResult(BaseModel):
    success: bool
    message: str
    data: Optional[QRValidationData] = None
    error: Optional[str] = None
