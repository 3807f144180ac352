"""Session schemas for the lifecycle endpoints."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from tutorhub.app.schemas.user import ParticipantRead


class SessionRead(BaseModel):
    id: int
    tutor_id: int
    student_id: int
    title: str
    description: Optional[str] = None
    scheduled_at: datetime
    duration: int
    price: float
    status: str
    meeting_link: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    actual_duration: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class SessionStatusUpdate(BaseModel):
    status: Literal["SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED"]


class SessionLeaveRequest(BaseModel):
    reason: Optional[str] = None


class SessionEndRequest(BaseModel):
    reason: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    feedback: Optional[str] = None


class SessionStartResponse(BaseModel):
    message: str
    session: SessionRead
    meeting_link: str
    participant: ParticipantRead


class JoinParticipants(BaseModel):
    tutor: ParticipantRead
    student: ParticipantRead


class SessionJoinResponse(BaseModel):
    message: str
    session: SessionRead
    participants: JoinParticipants
    user_role: Literal["tutor", "student"]
    can_start: bool
    time_until_start: int
    time_until_end: int


class SessionLeaveResponse(BaseModel):
    message: str
    session: SessionRead
    participant: ParticipantRead


class SessionSummary(BaseModel):
    session_id: int
    title: str
    scheduled_duration: int
    actual_duration: int
    scheduled_price: float
    actual_cost: float
    ended_by: str
    ended_at: datetime
    reason: str


class SessionEndResponse(BaseModel):
    message: str
    session: SessionRead
    summary: SessionSummary
