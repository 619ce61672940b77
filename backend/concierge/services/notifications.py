"""Notification dispatcher — in-app records and emails, each gated by the event ledger.

Every public ``notify_*`` function reserves a deterministic event key before
producing any side effect, so duplicate or concurrent invocations for the
same business event send at most one email and create at most one in-app
record. Failures here never propagate: the primary action has already
committed, so they are logged and swallowed.
"""
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.models.enquiry import Customer, Enquiry, SupplierInvite
from concierge.models.message import Message, MessageThread
from concierge.models.notification import SupplierNotification
from concierge.models.payment import Payment
from concierge.models.quote import Quote, QuotePublicLink
from concierge.models.supplier import Supplier
from concierge.services import email_templates
from concierge.services.email import EmailSender
from concierge.services.event_ledger import reserve

logger = logging.getLogger(__name__)


def build_absolute_url(path: str = "") -> str:
    cleaned = path if path.startswith("/") else f"/{path}"
    return f"{settings.PUBLIC_APP_URL.rstrip('/')}{cleaned}"


def trim_preview(text: Optional[str], max_length: int = 180) -> str:
    value = (text or "").strip()
    if len(value) > max_length:
        return f"{value[:max_length - 3]}..."
    return value


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _dispatch(db: Session, event_key: str, meta: dict[str, Any], action: Callable[[], None]) -> bool:
    """Reserve ``event_key`` and run ``action`` only if this caller won the reservation."""
    try:
        reservation = reserve(db, event_key, meta)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not reserve notification %s", event_key)
        return False
    if not reservation.reserved:
        return False
    try:
        action()
    except Exception:
        logger.exception("Notification %s failed after reservation", event_key)
    return True


def _create_in_app(
    db: Session,
    supplier_id: str,
    type_: str,
    title: str,
    body: str,
    url: str,
    entity_type: str,
    entity_id: str,
) -> None:
    try:
        db.add(SupplierNotification(
            supplier_id=supplier_id,
            type=type_,
            title=title,
            body=body,
            url=url,
            entity_type=entity_type,
            entity_id=entity_id,
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("In-app notification %s for supplier %s not stored", type_, supplier_id, exc_info=True)


def _send(sender: EmailSender, to: Optional[str], template: dict, event_key: str) -> None:
    if not to:
        logger.info("No recipient for %s; email skipped", event_key)
        return
    result = sender.send(to=to, subject=template["subject"], html=template["html"], event_key=event_key)
    if not result.ok and not result.skipped:
        logger.warning("Email for %s failed: %s", event_key, result.error)


def _customer_contact(db: Session, quote: Quote) -> tuple[Optional[str], Optional[str]]:
    """Customer email and name: the quote's action contact first, then the enquiry's customer."""
    email = quote.customer_action_email
    name = quote.customer_action_name
    if email and name:
        return email, name
    enquiry = db.query(Enquiry).filter(Enquiry.id == quote.enquiry_id).first()
    if enquiry:
        customer = db.query(Customer).filter(Customer.id == enquiry.customer_id).first()
        email = email or (customer.email if customer else None) or enquiry.customer_email
        name = name or (customer.full_name if customer else None) or enquiry.customer_name
    return email, name


def _public_quote_url(db: Session, quote_id: str) -> Optional[str]:
    token = db.query(QuotePublicLink.token).filter(QuotePublicLink.quote_id == quote_id).scalar()
    return build_absolute_url(f"/quote/{token}") if token else None


def _supplier(db: Session, supplier_id: str) -> Optional[Supplier]:
    return db.query(Supplier).filter(Supplier.id == supplier_id).first()


# ---------------------------------------------------------------------------
# Business events
# ---------------------------------------------------------------------------
def notify_enquiry_invite(db: Session, sender: EmailSender, invite: SupplierInvite, enquiry: Enquiry) -> bool:
    event_key = f"enquiry_invite:{invite.id}"
    supplier_id = invite.supplier_id
    enquiry_id = enquiry.id
    summary = ", ".join(
        part for part in (
            enquiry.category_label,
            str(enquiry.event_date) if enquiry.event_date else None,
            f"{enquiry.guest_count} guests" if enquiry.guest_count else None,
        ) if part
    )

    def action():
        _create_in_app(
            db, supplier_id, "new_enquiry", "New enquiry",
            "A new customer request matches your listing.",
            "/supplier/enquiries", "enquiry", enquiry_id,
        )
        supplier = _supplier(db, supplier_id)
        if supplier:
            tpl = email_templates.enquiry_invite_email(
                supplier.business_name, build_absolute_url("/supplier/enquiries"), summary or None
            )
            _send(sender, supplier.public_email, tpl, event_key)

    return _dispatch(db, event_key, {"enquiry_id": enquiry_id, "supplier_id": supplier_id}, action)


def notify_quote_sent(db: Session, sender: EmailSender, quote: Quote) -> bool:
    event_key = f"quote_sent:{quote.id}"
    quote_id = quote.id
    supplier_id = quote.supplier_id

    def action():
        supplier_url = f"/supplier/quotes?open={quote_id}"
        _create_in_app(
            db, supplier_id, "quote_sent", "Quote sent",
            "Your quote has been sent to the customer.",
            supplier_url, "quote", quote_id,
        )
        supplier = _supplier(db, supplier_id)
        if supplier:
            tpl = email_templates.quote_sent_email(supplier.business_name, quote_id, build_absolute_url(supplier_url))
            _send(sender, supplier.public_email, tpl, event_key)

    return _dispatch(db, event_key, {"quote_id": quote_id, "supplier_id": supplier_id}, action)


def notify_quote_outcome(db: Session, sender: EmailSender, quote: Quote, outcome: str) -> dict[str, bool]:
    """Notify supplier and customer that a quote was accepted or declined.

    The two sides are reserved independently; a retry after a partial failure
    only fires the side that has not been handled yet.
    """
    quote_id = quote.id
    supplier_id = quote.supplier_id
    customer_email, customer_name = _customer_contact(db, quote)
    supplier_url = f"/supplier/quotes?open={quote_id}"

    def supplier_action():
        _create_in_app(
            db, supplier_id, f"quote_{outcome}", f"Quote {outcome}",
            f"A customer {outcome} your quote.",
            supplier_url, "quote", quote_id,
        )
        supplier = _supplier(db, supplier_id)
        if supplier:
            tpl = email_templates.quote_outcome_email_to_supplier(
                outcome, supplier.business_name, quote_id, customer_name, customer_email,
                build_absolute_url(supplier_url),
            )
            _send(sender, supplier.public_email, tpl, f"quote_{outcome}_supplier:{quote_id}")

    def customer_action():
        tpl = email_templates.quote_outcome_email_to_customer(
            outcome, customer_name, quote_id, _public_quote_url(db, quote_id)
        )
        _send(sender, customer_email, tpl, f"quote_{outcome}_customer:{quote_id}")

    return {
        "supplier": _dispatch(
            db, f"quote_{outcome}_supplier:{quote_id}",
            {"quote_id": quote_id, "supplier_id": supplier_id}, supplier_action,
        ),
        "customer": _dispatch(db, f"quote_{outcome}_customer:{quote_id}", {"quote_id": quote_id}, customer_action),
    }


def notify_message_to_supplier(db: Session, sender: EmailSender, message: Message, thread: MessageThread) -> bool:
    event_key = f"message_received_supplier:{message.id}"
    thread_id = thread.id
    supplier_id = thread.supplier_id
    preview = trim_preview(message.body)

    def action():
        thread_url = f"/supplier/messages?thread={thread_id}"
        _create_in_app(
            db, supplier_id, "message_received", "New customer message",
            preview, thread_url, "thread", thread_id,
        )
        supplier = _supplier(db, supplier_id)
        if supplier:
            tpl = email_templates.message_to_supplier_email(
                supplier.business_name, preview, build_absolute_url(thread_url)
            )
            _send(sender, supplier.public_email, tpl, event_key)

    return _dispatch(
        db, event_key, {"message_id": message.id, "supplier_id": supplier_id, "thread_id": thread_id}, action
    )


def notify_message_to_customer(db: Session, sender: EmailSender, message: Message, quote: Quote) -> bool:
    event_key = f"message_received_customer:{message.id}"
    preview = trim_preview(message.body)

    def action():
        email, _name = _customer_contact(db, quote)
        tpl = email_templates.message_to_customer_email(preview, _public_quote_url(db, quote.id))
        _send(sender, email, tpl, event_key)

    return _dispatch(db, event_key, {"message_id": message.id, "quote_id": quote.id}, action)


def notify_deposit_paid(db: Session, sender: EmailSender, payment: Payment) -> bool:
    event_key = f"deposit_paid:{payment.id}"
    quote_id = payment.quote_id
    supplier_id = payment.supplier_id
    amount = f"{(payment.amount_paid or payment.amount_total or 0) / 100:.2f}"

    def action():
        supplier_url = f"/supplier/quotes?open={quote_id}"
        _create_in_app(
            db, supplier_id, "deposit_paid", "Deposit paid",
            "The customer has paid the deposit for your quote.",
            supplier_url, "quote", quote_id,
        )
        supplier = _supplier(db, supplier_id)
        if supplier:
            tpl = email_templates.deposit_paid_email_to_supplier(
                supplier.business_name, quote_id, amount, build_absolute_url(supplier_url)
            )
            _send(sender, supplier.public_email, tpl, event_key)

    return _dispatch(db, event_key, {"payment_id": payment.id, "quote_id": quote_id}, action)
