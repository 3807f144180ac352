"""User schemas used for registration and responses."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    role: Literal["student", "tutor"] = "student"


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: str
    is_admin: bool

    model_config = ConfigDict(from_attributes=True)


class ParticipantRead(BaseModel):
    id: int
    name: str
    email: Optional[EmailStr] = None
