"""Booking endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tutorhub.app.db.session import get_db
from tutorhub.app.dependencies.auth import get_current_user
from tutorhub.app.models.user import User
from tutorhub.app.schemas.booking import BookingCreate, BookingRead
from tutorhub.app.services import bookings as booking_service

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(booking_in: BookingCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return booking_service.create_booking(db, booking_in, current_user)


@router.get("/{booking_id}", response_model=BookingRead)
def get_booking(booking_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return booking_service.get_booking_for_user(db, booking_id, current_user)
