"""Customer, Enquiry and SupplierInvite ORM models."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Integer, Boolean, Date, DateTime, JSON, ForeignKey, UniqueConstraint,
    Enum as SAEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from concierge.database import Base


class EnquiryStatus(str, enum.Enum):
    new = "new"
    quoted = "quoted"
    accepted = "accepted"
    declined = "declined"
    closed = "closed"


class InviteStatus(str, enum.Enum):
    invited = "invited"
    viewed = "viewed"
    responded = "responded"
    quoted = "quoted"
    accepted = "accepted"
    declined = "declined"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String(120), nullable=False)
    email = Column(String(160), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    preferred_contact_method = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Enquiry(Base):
    __tablename__ = "enquiries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    public_token = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    status = Column(SAEnum(EnquiryStatus), nullable=False, default=EnquiryStatus.new)

    customer_name = Column(String(120), nullable=False)
    customer_email = Column(String(160), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    contact_preference = Column(String(20), nullable=True)

    event_type = Column(String(40), nullable=True)
    category_slug = Column(String(120), nullable=True)
    category_label = Column(String(160), nullable=True)
    event_date = Column(Date, nullable=True)
    start_time = Column(String(8), nullable=True)
    guest_count = Column(Integer, nullable=True)
    budget_range = Column(String(40), nullable=True)
    venue_known = Column(Boolean, nullable=False, default=False)
    venue_name = Column(String(160), nullable=True)
    venue_postcode = Column(String(24), nullable=True)
    location_label = Column(String(160), nullable=True)
    indoor_outdoor = Column(String(24), nullable=True)
    power_available = Column(Boolean, nullable=True)
    dietary_requirements = Column(Text, nullable=True)
    urgency = Column(String(20), nullable=True)
    message = Column(Text, nullable=False)
    structured_answers = Column(JSON, nullable=False, default=dict)

    quality_score = Column(Integer, nullable=False)
    quality_flags = Column(JSON, nullable=False, default=list)

    source_page = Column(String(300), nullable=True)
    created_ip_hash = Column(String(64), nullable=True)
    match_source = Column(String(20), nullable=False, default="concierge")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    invites = relationship("SupplierInvite", back_populates="enquiry", cascade="all, delete-orphan")


class SupplierInvite(Base):
    __tablename__ = "enquiry_suppliers"
    __table_args__ = (
        UniqueConstraint("enquiry_id", "supplier_id", name="uq_enquiry_suppliers_pair"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    enquiry_id = Column(String(36), ForeignKey("enquiries.id"), nullable=False, index=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    status = Column(SAEnum(InviteStatus), nullable=False, default=InviteStatus.invited)
    match_source = Column(String(20), nullable=False, default="concierge")
    invited_at = Column(DateTime(timezone=True), server_default=func.now())
    viewed_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    quoted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    declined_at = Column(DateTime(timezone=True), nullable=True)

    enquiry = relationship("Enquiry", back_populates="invites")
