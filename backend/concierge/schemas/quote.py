"""Pydantic schemas for Quotes."""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field

from concierge.models.quote import QuoteStatus


class QuoteDraftCreate(BaseModel):
    enquiry_id: str


class QuoteItemIn(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=200)
    qty: Decimal = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    sort_order: Optional[int] = None


class QuoteItemsSave(BaseModel):
    items: list[QuoteItemIn]
    quote_text: Optional[str] = Field(default=None, max_length=4000)


class QuoteItemOut(BaseModel):
    id: str
    title: str
    qty: float
    unit_price: float
    sort_order: int

    model_config = {"from_attributes": True}


class QuoteOut(BaseModel):
    id: str
    enquiry_id: str
    supplier_id: str
    status: QuoteStatus
    total_amount: float
    currency_code: str
    quote_text: Optional[str] = None
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_reason: Optional[str] = None
    customer_message: Optional[str] = None
    deposit_status: Optional[str] = None
    items: list[QuoteItemOut] = []

    model_config = {"from_attributes": True}


class QuotePublicOut(BaseModel):
    """What a customer sees through their public link."""

    id: str
    status: QuoteStatus
    supplier_name: str
    total_amount: float
    currency_code: str
    quote_text: Optional[str] = None
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    customer_message: Optional[str] = None
    deposit_status: Optional[str] = None
    items: list[QuoteItemOut] = []


class QuoteDraftOut(BaseModel):
    ok: bool = True
    existed: bool
    quote: QuoteOut


class QuoteSendOut(BaseModel):
    ok: bool = True
    quote: QuoteOut
    credits_balance: int = Field(alias="creditsBalance")

    model_config = {"populate_by_name": True}


class QuoteTransitionOut(BaseModel):
    ok: bool = True
    changed: bool
    quote: QuoteOut


class QuotePublicActionOut(BaseModel):
    ok: bool = True
    changed: bool
    quote: QuotePublicOut


class QuoteActionIn(BaseModel):
    token: str = Field(min_length=1)
    action: Literal["accept", "decline"]
    customer_name: Optional[str] = Field(default=None, max_length=120)
    customer_email: Optional[str] = Field(default=None, max_length=160)
    customer_note: Optional[str] = Field(default=None, max_length=2000)
    customer_message: Optional[str] = Field(default=None, max_length=2000)


class AdminQuoteActionIn(BaseModel):
    action: Literal["accept", "decline"]


class QuoteCloseIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
