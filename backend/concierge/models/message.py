"""MessageThread and Message ORM models — one thread per quote."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from concierge.database import Base


class SenderType(str, enum.Enum):
    customer = "customer"
    supplier = "supplier"


class MessageThread(Base):
    __tablename__ = "message_threads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, unique=True)
    enquiry_id = Column(String(36), ForeignKey("enquiries.id"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("thread_id", "client_message_id", name="uq_messages_client_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    thread_id = Column(String(36), ForeignKey("message_threads.id"), nullable=False, index=True)
    sender_type = Column(SAEnum(SenderType), nullable=False)
    body = Column(Text, nullable=False)
    client_message_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
