# app/schemas/family.py
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MemberRole(str, Enum):
    CHILD = "CHILD"
    ASSISTANT = "ASSISTANT"
    PARENT = "PARENT"


class FamilyCreate(BaseModel):
    """
    Registers a new family together with its first (PARENT) member.
    """

    family_name: str = Field(..., min_length=1, max_length=255, examples=["The Svenssons"])
    member_name: str = Field(..., min_length=1, max_length=255, examples=["Anna"])
    email: str | None = Field(default=None, max_length=255)


class MemberCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Olle"])
    role: MemberRole = MemberRole.CHILD
    email: str | None = Field(default=None, max_length=255)


class FamilyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime | None = None


class MemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    family_id: int
    name: str
    role: MemberRole
    email: str | None = None
    created_at: datetime | None = None


class MemberWithToken(MemberRead):
    device_token: str = Field(
        ...,
        description="Secret to send as X-Device-Token. Only returned on creation.",
    )


class FamilyCreated(BaseModel):
    family: FamilyRead
    member: MemberWithToken
