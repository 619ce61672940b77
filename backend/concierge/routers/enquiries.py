"""Enquiry API routes — public intake of customer requests."""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from concierge.database import get_db
from concierge.schemas.enquiry import EnquiryCreatedOut
from concierge.services import enquiry_service
from concierge.services.email import EmailSender, get_email_sender
from concierge.services.rate_limiter import client_ip

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=EnquiryCreatedOut)
def create_enquiry(
    request: Request,
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    """Score a raw submission and, if it passes, persist it and invite matching suppliers.

    The body is taken as a plain object because the public forms send both
    snake_case and legacy camelCase field names.
    """
    created = enquiry_service.create_enquiry(
        db=db,
        sender=sender,
        body=body,
        client_ip=client_ip(request),
        referer=request.headers.get("referer"),
    )
    return EnquiryCreatedOut(
        enquiry_id=created.enquiry.id,
        public_token=created.enquiry.public_token,
        invited_count=len(created.invites),
    )
