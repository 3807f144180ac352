"""Notification inbox endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorhub.app.db.session import get_db
from tutorhub.app.dependencies.auth import get_current_user
from tutorhub.app.models.user import User
from tutorhub.app.schemas.notification import NotificationRead
from tutorhub.app.services import notifications as notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notification_service.list_notifications(db, current_user.id, unread_only=unread_only)


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"updated": notification_service.mark_all_read(db, current_user.id)}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return notification_service.mark_read(db, current_user.id, notification_id)
