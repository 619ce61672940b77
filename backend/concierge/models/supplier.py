"""Supplier and SupplierImage ORM models."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, JSON, ForeignKey, CheckConstraint,
    Enum as SAEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from concierge.database import Base


class ImageType(str, enum.Enum):
    hero = "hero"
    gallery = "gallery"


class Supplier(Base):
    __tablename__ = "suppliers"
    __table_args__ = (
        CheckConstraint("credits_balance >= 0", name="ck_suppliers_credits_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_name = Column(String(160), nullable=False)
    public_email = Column(String(160), nullable=True)
    short_description = Column(String(300), nullable=True)
    about = Column(Text, nullable=True)
    listing_categories = Column(JSON, nullable=False, default=list)
    services = Column(JSON, nullable=False, default=list)
    location_label = Column(String(160), nullable=True)
    base_city = Column(String(120), nullable=True)
    base_postcode = Column(String(24), nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    credits_balance = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    images = relationship("SupplierImage", back_populates="supplier", cascade="all, delete-orphan")


class SupplierImage(Base):
    __tablename__ = "supplier_images"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    type = Column(SAEnum(ImageType), nullable=False)
    path = Column(String(500), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    supplier = relationship("Supplier", back_populates="images")
