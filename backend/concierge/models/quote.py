"""Quote, QuoteItem, QuotePublicLink and QuoteEvent ORM models."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Integer, Numeric, DateTime, JSON, ForeignKey, UniqueConstraint,
    Enum as SAEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from concierge.database import Base


class QuoteStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    declined = "declined"
    closed = "closed"


TERMINAL_STATUSES = (QuoteStatus.accepted, QuoteStatus.declined, QuoteStatus.closed)


class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (
        UniqueConstraint("enquiry_id", "supplier_id", name="uq_quotes_enquiry_supplier"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    enquiry_id = Column(String(36), ForeignKey("enquiries.id"), nullable=False, index=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    status = Column(SAEnum(QuoteStatus), nullable=False, default=QuoteStatus.draft)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency_code = Column(String(3), nullable=False, default="GBP")
    quote_text = Column(Text, nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    declined_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_reason = Column(String(500), nullable=True)

    customer_action_name = Column(String(120), nullable=True)
    customer_action_email = Column(String(160), nullable=True)
    customer_action_note = Column(Text, nullable=True)
    customer_message = Column(Text, nullable=True)
    deposit_status = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.sort_order",
    )
    public_link = relationship("QuotePublicLink", uselist=False, back_populates="quote")


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    qty = Column(Numeric(10, 2), nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    quote = relationship("Quote", back_populates="items")


class QuotePublicLink(Base):
    __tablename__ = "quote_public_links"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, unique=True)
    token = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    quote = relationship("Quote", back_populates="public_link")


class QuoteEventType(str, enum.Enum):
    sent = "sent"
    send_rolled_back = "send_rolled_back"
    accepted = "accepted"
    declined = "declined"
    closed = "closed"
    reopened = "reopened"


class QuoteEvent(Base):
    """Append-only audit trail of quote transitions."""

    __tablename__ = "quote_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, index=True)
    event_type = Column(SAEnum(QuoteEventType), nullable=False)
    actor_type = Column(String(20), nullable=False)  # supplier | customer | admin | system
    actor_id = Column(String(64), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
