"""Booking schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from tutorhub.app.schemas.session import SessionRead


class BookingCreate(BaseModel):
    tutor_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    scheduled_at: datetime
    duration: int
    price: Decimal = Field(default=Decimal("0.00"), ge=0)


class BookingRead(BaseModel):
    id: int
    session_id: int
    student_id: int
    status: str
    created_at: datetime
    session: SessionRead

    model_config = ConfigDict(from_attributes=True)
