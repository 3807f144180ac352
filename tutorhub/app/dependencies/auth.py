"""Authentication dependencies for retrieving the current user."""

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from tutorhub.app.core.exceptions import UnauthorizedError
from tutorhub.app.core.security import decode_access_token
from tutorhub.app.db.session import get_db
from tutorhub.app.models.user import User


def get_current_user(db: Session = Depends(get_db), authorization: str | None = Header(default=None)) -> User:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Unauthorized")
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_access_token(token)
    except ValueError:
        raise UnauthorizedError("Unauthorized")

    user_id = payload.get("sub")
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        raise UnauthorizedError("Unauthorized")

    user = db.query(User).filter(User.id == user_id_int).first()
    if not user or not user.is_active:
        raise UnauthorizedError("Unauthorized")
    return user

