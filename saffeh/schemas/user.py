# saffeh/schemas/user.py
from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime
from typing import Any, Optional, Union


class User(BaseModel):
    id: Union[str, int]
    full_name: Optional[str] = Field(None, alias="fullName")
    email: str
    role: Optional[str] = None
    has_accepted_terms: bool = Field(
        False,
        validation_alias=AliasChoices("hasAcceptedTerms", "acceptedTerms", "has_accepted_terms"),
        serialization_alias="hasAcceptedTerms",
    )
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True


class Activity(BaseModel):
    id: Union[str, int]
    action: str
    entity_type: Optional[str] = Field(None, alias="entityType")
    entity_id: Optional[Union[str, int]] = Field(None, alias="entityId")
    metadata: Optional[Any] = None
    created_at: datetime = Field(alias="createdAt")

    class Config:
        populate_by_name = True
