"""Quote API routes — send, and the customer's public-link actions."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from concierge.database import get_db
from concierge.dependencies import get_current_supplier
from concierge.errors import NotFoundError
from concierge.models.quote import Quote, QuoteStatus
from concierge.models.supplier import Supplier
from concierge.schemas.message import CustomerMessageIn, MessageOut, MessagePostedOut
from concierge.schemas.quote import (
    QuoteActionIn, QuoteItemOut, QuoteOut, QuotePublicActionOut, QuotePublicOut, QuoteSendOut,
)
from concierge.services import messaging_service, quote_lifecycle
from concierge.services.email import EmailSender, get_email_sender

logger = logging.getLogger(__name__)
router = APIRouter()


def public_view(db: Session, quote: Quote) -> QuotePublicOut:
    supplier_name = db.query(Supplier.business_name).filter(Supplier.id == quote.supplier_id).scalar()
    return QuotePublicOut(
        id=quote.id,
        status=quote.status,
        supplier_name=supplier_name or "Supplier",
        total_amount=quote.total_amount,
        currency_code=quote.currency_code,
        quote_text=quote.quote_text,
        sent_at=quote.sent_at,
        accepted_at=quote.accepted_at,
        declined_at=quote.declined_at,
        customer_message=quote.customer_message,
        deposit_status=quote.deposit_status,
        items=[QuoteItemOut.model_validate(item) for item in quote.items],
    )


@router.post("/{quote_id}/send", response_model=QuoteSendOut)
def send_quote(
    quote_id: str,
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    """Send a draft quote to the customer, spending one supplier credit."""
    result = quote_lifecycle.send_quote(db, sender, supplier_id=supplier.id, quote_id=quote_id, actor_id=supplier.id)
    return QuoteSendOut(quote=QuoteOut.model_validate(result.quote), credits_balance=result.credits_balance)


@router.post("/action", response_model=QuotePublicActionOut)
def quote_action(
    payload: QuoteActionIn,
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    """Accept or decline via the customer's public link token."""
    quote = quote_lifecycle.get_quote_by_token(db, payload.token.strip())
    quote, changed = quote_lifecycle.respond_to_quote(
        db,
        sender,
        quote,
        payload.action,
        actor_type="customer",
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        customer_note=payload.customer_note,
        customer_message=payload.customer_message,
    )
    return QuotePublicActionOut(changed=changed, quote=public_view(db, quote))


@router.get("/public/{token}", response_model=QuotePublicOut)
def get_public_quote(token: str, db: Session = Depends(get_db)):
    quote = quote_lifecycle.get_quote_by_token(db, token)
    if quote.status == QuoteStatus.draft:
        raise NotFoundError("Quote not found")
    return public_view(db, quote)


@router.post("/messages", response_model=MessagePostedOut)
def post_customer_message(
    payload: CustomerMessageIn,
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    posted = messaging_service.post_customer_message(
        db, sender, token=payload.token.strip(), body=payload.body.strip(),
        client_message_id=payload.client_message_id,
    )
    return MessagePostedOut(duplicate=posted.duplicate, message=MessageOut.model_validate(posted.message))
