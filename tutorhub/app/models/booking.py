"""Booking model linking a student to a purchased session."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from tutorhub.app.db.base_class import Base
from tutorhub.app.core.time import utc_now


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, unique=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    session = relationship("Session", back_populates="booking")
    student = relationship("User", back_populates="bookings", foreign_keys=[student_id])
    payment = relationship("Payment", back_populates="booking", uselist=False, cascade="all, delete-orphan")
