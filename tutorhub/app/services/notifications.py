"""Notification emission and inbox queries."""

import logging

from sqlalchemy.orm import Session

from tutorhub.app.core.exceptions import NotFoundError
from tutorhub.app.domain.status import NotificationType
from tutorhub.app.models.notification import Notification

logger = logging.getLogger(__name__)


def notify(db: Session, user_id: int, type_: NotificationType, title: str, message: str) -> Notification:
    """Queue a notification in the caller's transaction; the caller commits."""
    notification = Notification(user_id=user_id, type=type_.value, title=title, message=message, read=False)
    db.add(notification)
    logger.debug("Notification %r queued for user %s", title, user_id)
    return notification


def list_notifications(db: Session, user_id: int, unread_only: bool = False) -> list[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(db: Session, user_id: int, notification_id: int) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification not found")
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({"read": True}, synchronize_session=False)
    )
    db.commit()
    return updated
