"""Handles user registration."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tutorhub.app.core.security import get_password_hash
from tutorhub.app.db.session import get_db
from tutorhub.app.models.user import User
from tutorhub.app.schemas.user import UserCreate, UserRead

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register_user(user_in: UserCreate, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == user_in.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    hashed_password = get_password_hash(user_in.password)  # Hash password before storing
    user = User(email=user_in.email, hashed_password=hashed_password, full_name=user_in.full_name, role=user_in.role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
