"""EventLedgerEntry ORM model — reservation table for one-time side effects.

A row's existence for an ``event_key`` is the single source of truth for
"this business event has already been handled". Rows are never updated or
deleted.
"""
import uuid
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from concierge.database import Base


class EventLedgerEntry(Base):
    __tablename__ = "event_ledger"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_key = Column(String(255), nullable=False, unique=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
