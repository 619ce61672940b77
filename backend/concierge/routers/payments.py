"""Payment processor webhook route."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from concierge.database import get_db
from concierge.schemas.payment import WebhookEventIn
from concierge.services import payments_service
from concierge.services.email import EmailSender, get_email_sender

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhook")
def payment_webhook(
    event: WebhookEventIn,
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    return payments_service.handle_webhook_event(db, sender, event.model_dump())
