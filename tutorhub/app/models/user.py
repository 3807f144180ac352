from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from tutorhub.app.db.base_class import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)
    role = Column(String(20), nullable=False, default="student")
    is_active = Column(Boolean, nullable=False, default=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    stripe_customer_id = Column(String(255), nullable=True, unique=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    tutoring_sessions = relationship("Session", back_populates="tutor", foreign_keys="Session.tutor_id")
    learning_sessions = relationship("Session", back_populates="student", foreign_keys="Session.student_id")
    bookings = relationship("Booking", back_populates="student", foreign_keys="Booking.student_id")
    payments = relationship("Payment", back_populates="user", foreign_keys="Payment.user_id")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
