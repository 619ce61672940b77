"""SupplierNotification ORM model — in-app alerts shown in the supplier dashboard."""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from concierge.database import Base


class SupplierNotification(Base):
    __tablename__ = "supplier_notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    title = Column(String(160), nullable=False)
    body = Column(String(500), nullable=True)
    url = Column(String(300), nullable=True)
    entity_type = Column(String(30), nullable=True)
    entity_id = Column(String(36), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
