"""Supplier API routes — drafting and managing quotes, messages, credits and alerts.

The caller is identified by the ``X-Supplier-Id`` header set by the auth layer.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from concierge.database import get_db
from concierge.dependencies import get_current_supplier
from concierge.models.notification import SupplierNotification
from concierge.models.supplier import Supplier
from concierge.schemas.message import MessageOut, MessagePostedOut, SupplierMessageIn
from concierge.schemas.quote import (
    QuoteCloseIn, QuoteDraftCreate, QuoteDraftOut, QuoteItemsSave, QuoteOut, QuoteTransitionOut,
)
from concierge.schemas.supplier import CreditsOut, CreditTransactionOut, SupplierNotificationOut
from concierge.services import credits, messaging_service, quote_lifecycle
from concierge.services.email import EmailSender, get_email_sender

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/quotes", response_model=QuoteDraftOut)
def create_draft_quote(
    payload: QuoteDraftCreate,
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
):
    """Start a draft quote for an enquiry, or return the one that already exists."""
    quote, existed = quote_lifecycle.create_draft_quote(db, supplier.id, payload.enquiry_id)
    return QuoteDraftOut(existed=existed, quote=QuoteOut.model_validate(quote))


@router.get("/quotes/{quote_id}", response_model=QuoteOut)
def get_quote(
    quote_id: str,
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
):
    return quote_lifecycle.get_owned_quote(db, quote_id, supplier.id)


@router.put("/quotes/{quote_id}/items", response_model=QuoteOut)
def save_draft_items(
    quote_id: str,
    payload: QuoteItemsSave,
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
):
    """Replace the item list of a draft quote."""
    return quote_lifecycle.save_draft_items(
        db,
        supplier.id,
        quote_id,
        [item.model_dump() for item in payload.items],
        quote_text=payload.quote_text,
    )


@router.post("/quotes/{quote_id}/close", response_model=QuoteTransitionOut)
def close_quote(
    quote_id: str,
    payload: Optional[QuoteCloseIn] = None,
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
):
    quote, changed = quote_lifecycle.close_quote(
        db, supplier.id, quote_id, reason=payload.reason if payload else None, actor_id=supplier.id
    )
    return QuoteTransitionOut(changed=changed, quote=QuoteOut.model_validate(quote))


@router.post("/quotes/{quote_id}/reopen", response_model=QuoteTransitionOut)
def reopen_quote(
    quote_id: str,
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
):
    quote, changed = quote_lifecycle.reopen_quote(db, supplier.id, quote_id, actor_id=supplier.id)
    return QuoteTransitionOut(changed=changed, quote=QuoteOut.model_validate(quote))


@router.post("/quotes/{quote_id}/messages", response_model=MessagePostedOut)
def post_supplier_message(
    quote_id: str,
    payload: SupplierMessageIn,
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    posted = messaging_service.post_supplier_message(
        db, sender, supplier.id, quote_id, payload.body.strip(), client_message_id=payload.client_message_id,
    )
    return MessagePostedOut(duplicate=posted.duplicate, message=MessageOut.model_validate(posted.message))


@router.get("/credits", response_model=CreditsOut)
def get_credits(
    limit: int = Query(50, ge=1, le=200),
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
):
    """Current balance plus the most recent ledger rows."""
    return CreditsOut(
        credits_balance=credits.get_balance(db, supplier.id) or 0,
        transactions=[
            CreditTransactionOut.model_validate(tx) for tx in credits.list_transactions(db, supplier.id, limit)
        ],
    )


@router.get("/notifications", response_model=list[SupplierNotificationOut])
def list_notifications(
    unread_only: bool = Query(False),
    supplier: Supplier = Depends(get_current_supplier),
    db: Session = Depends(get_db),
):
    query = db.query(SupplierNotification).filter(SupplierNotification.supplier_id == supplier.id)
    if unread_only:
        query = query.filter(SupplierNotification.read_at.is_(None))
    return query.order_by(SupplierNotification.created_at.desc()).limit(100).all()
