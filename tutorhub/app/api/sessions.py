"""Session lifecycle endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorhub.app.db.session import get_db
from tutorhub.app.dependencies.auth import get_current_user
from tutorhub.app.domain.status import SessionStatus
from tutorhub.app.models.user import User
from tutorhub.app.schemas.session import (
    SessionEndRequest,
    SessionEndResponse,
    SessionJoinResponse,
    SessionLeaveRequest,
    SessionLeaveResponse,
    SessionRead,
    SessionStartResponse,
    SessionStatusUpdate,
)
from tutorhub.app.services import session_lifecycle

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("/{session_id}", response_model=SessionRead)
def get_session(session_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return session_lifecycle.get_session_for_user(db, session_id, current_user)


@router.put("/{session_id}/status", response_model=SessionRead)
def update_session_status(
    session_id: int,
    update: SessionStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return session_lifecycle.update_session_status(db, session_id, current_user, SessionStatus(update.status))


@router.post("/{session_id}/start", response_model=SessionStartResponse)
def start_session(session_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return session_lifecycle.start_session(db, session_id, current_user)


@router.post("/{session_id}/join", response_model=SessionJoinResponse)
def join_session(session_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return session_lifecycle.join_session(db, session_id, current_user)


@router.post("/{session_id}/leave", response_model=SessionLeaveResponse)
def leave_session(
    session_id: int,
    body: SessionLeaveRequest | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reason = body.reason if body else None
    return session_lifecycle.leave_session(db, session_id, current_user, reason=reason)


@router.post("/{session_id}/end", response_model=SessionEndResponse)
def end_session(
    session_id: int,
    body: SessionEndRequest | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    body = body or SessionEndRequest()
    return session_lifecycle.end_session(
        db,
        session_id,
        current_user,
        reason=body.reason,
        rating=body.rating,
        feedback=body.feedback,
    )
