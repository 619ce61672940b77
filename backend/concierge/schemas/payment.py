"""Pydantic schemas for payment processor webhooks."""
from typing import Any
from pydantic import BaseModel, Field


class WebhookEventIn(BaseModel):
    """An already-verified processor event."""

    id: str = Field(min_length=1)
    type: str
    data: dict[str, Any] = {}

    model_config = {"extra": "allow"}
