# saffeh/schemas/catalog.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Union


class Location(BaseModel):
    id: Union[str, int]
    name: str
    description: Optional[str] = None
    city: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    class Config:
        populate_by_name = True


class Gate(BaseModel):
    id: Union[str, int]
    name: str
    location_id: Optional[Union[str, int]] = Field(None, alias="locationId")

    class Config:
        populate_by_name = True


class Spot(BaseModel):
    id: Union[str, int]
    label: Optional[str] = None
    block: Optional[str] = None
    status: Optional[str] = None       # reservation-side state
    cv_status: Optional[str] = Field(None, alias="cvStatus")   # camera-derived occupancy

    class Config:
        populate_by_name = True
