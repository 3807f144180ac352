"""Ledger of processor webhook events, keyed by the processor's event id."""

from sqlalchemy import Column, DateTime, Integer, String, Text

from tutorhub.app.db.base_class import Base
from tutorhub.app.core.time import utc_now


class ProcessedWebhookEvent(Base):
    __tablename__ = "processed_webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="processed")
    processing_error = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    processed_at = Column(DateTime(timezone=True), nullable=True)
