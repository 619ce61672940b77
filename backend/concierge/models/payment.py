"""Payment (customer deposit) and CreditBundleOrder (supplier credit purchase) ORM models."""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from concierge.database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, index=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending | paid | failed | refunded
    amount_total = Column(Integer, nullable=False, default=0)  # minor units
    amount_paid = Column(Integer, nullable=False, default=0)
    checkout_session_id = Column(String(255), nullable=True, unique=True)
    payment_intent_id = Column(String(255), nullable=True, unique=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class CreditBundleOrder(Base):
    __tablename__ = "credit_bundle_orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    bundle_code = Column(String(40), nullable=False)
    credits = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending | paid | failed | canceled
    checkout_session_id = Column(String(255), nullable=True, unique=True)
    payment_intent_id = Column(String(255), nullable=True, unique=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
