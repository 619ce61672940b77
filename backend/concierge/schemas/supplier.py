"""Pydantic schemas for supplier account views and admin credit adjustments."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CreditTransactionOut(BaseModel):
    id: str
    delta: int
    balance_after: int
    reason: str
    note: Optional[str] = None
    related_quote_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditsOut(BaseModel):
    ok: bool = True
    credits_balance: int = Field(alias="creditsBalance")
    transactions: list[CreditTransactionOut] = []

    model_config = {"populate_by_name": True}


class CreditAdjustIn(BaseModel):
    delta: int
    note: Optional[str] = Field(default=None, max_length=300)


class CreditAdjustOut(BaseModel):
    ok: bool = True
    credits_balance: int = Field(alias="creditsBalance")

    model_config = {"populate_by_name": True}


class SupplierNotificationOut(BaseModel):
    id: str
    type: str
    title: str
    body: Optional[str] = None
    url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
