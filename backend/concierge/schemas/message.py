"""Pydantic schemas for quote Messages."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from concierge.models.message import SenderType


class SupplierMessageIn(BaseModel):
    body: str = Field(min_length=1, max_length=2000)
    client_message_id: Optional[str] = Field(default=None, max_length=64)


class CustomerMessageIn(SupplierMessageIn):
    token: str = Field(min_length=1)


class MessageOut(BaseModel):
    id: str
    thread_id: str
    sender_type: SenderType
    body: str
    client_message_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MessagePostedOut(BaseModel):
    ok: bool = True
    duplicate: bool
    message: MessageOut
