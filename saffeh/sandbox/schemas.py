# saffeh/sandbox/schemas.py
"""Request bodies accepted by the sandbox backend (camelCase on the wire)."""

from pydantic import BaseModel, Field
from typing import Optional, Union


class SignupIn(BaseModel):
    full_name: str = Field(alias="fullName")
    email: str
    password: str
    accepted_terms: bool = Field(False, alias="acceptedTerms")

    class Config:
        populate_by_name = True


class LoginIn(BaseModel):
    email: str
    password: str


class ForgotPasswordIn(BaseModel):
    email: str


class ResetPasswordIn(BaseModel):
    token: str
    new_password: str = Field(alias="newPassword")

    class Config:
        populate_by_name = True


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    password: Optional[str] = None

    class Config:
        populate_by_name = True


class ReservationCreate(BaseModel):
    location_id: Union[str, int] = Field(alias="locationId")
    gate_id: Union[str, int] = Field(alias="gateId")

    class Config:
        populate_by_name = True


class ConfirmPaymentIn(BaseModel):
    reservation_id: Optional[Union[str, int]] = Field(None, alias="reservationId")
    session_id: str = Field(alias="sessionId")

    class Config:
        populate_by_name = True
