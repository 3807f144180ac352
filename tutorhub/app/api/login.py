"""Login endpoint."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tutorhub.app.core.security import create_access_token, token_lifetime, verify_password
from tutorhub.app.core.time import utc_now
from tutorhub.app.db.session import get_db
from tutorhub.app.dependencies.auth import get_current_user
from tutorhub.app.models.user import User
from tutorhub.app.schemas.login import LoginRequest, TokenResponse
from tutorhub.app.schemas.user import UserRead

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email).first()
    if not user or not user.hashed_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is inactive")
    if not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    user.last_login = utc_now()
    db.commit()
    token = create_access_token(user_id=user.id, role=user.role)
    return TokenResponse(
        access_token=token,
        expires_in=int(token_lifetime().total_seconds()),
        role=user.role,
    )


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user
