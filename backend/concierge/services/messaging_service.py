"""Quote messaging — one thread per quote between the customer and the supplier."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.errors import ConflictError, NotFoundError, RateLimited
from concierge.models.message import Message, MessageThread, SenderType
from concierge.models.quote import Quote, QuoteStatus
from concierge.services import notifications
from concierge.services.email import EmailSender
from concierge.services.quote_lifecycle import get_owned_quote, get_quote_by_token

logger = logging.getLogger(__name__)

RATE_WINDOW = timedelta(minutes=1)


@dataclass
class PostedMessage:
    message: Message
    thread: MessageThread
    duplicate: bool = False


def _now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_thread(db: Session, quote: Quote) -> MessageThread:
    thread = db.query(MessageThread).filter(MessageThread.quote_id == quote.id).first()
    if thread:
        return thread
    db.add(MessageThread(quote_id=quote.id, enquiry_id=quote.enquiry_id, supplier_id=quote.supplier_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
    return db.query(MessageThread).filter(MessageThread.quote_id == quote.id).one()


def list_messages(db: Session, thread_id: str) -> list[Message]:
    return db.query(Message).filter(Message.thread_id == thread_id).order_by(Message.created_at).all()


def _find_by_client_id(db: Session, thread_id: str, client_message_id: Optional[str]) -> Optional[Message]:
    if not client_message_id:
        return None
    return (
        db.query(Message)
        .filter(Message.thread_id == thread_id, Message.client_message_id == client_message_id)
        .first()
    )


def _insert_message(
    db: Session,
    thread: MessageThread,
    sender_type: SenderType,
    body: str,
    client_message_id: Optional[str],
) -> PostedMessage:
    now = _now()
    message = Message(
        thread_id=thread.id,
        sender_type=sender_type,
        body=body,
        client_message_id=client_message_id,
        created_at=now,
    )
    db.add(message)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        original = _find_by_client_id(db, thread.id, client_message_id)
        if original is None:
            raise
        return PostedMessage(message=original, thread=thread, duplicate=True)
    db.query(MessageThread).filter(MessageThread.id == thread.id).update(
        {MessageThread.updated_at: now}, synchronize_session=False
    )
    db.commit()
    return PostedMessage(message=message, thread=thread)


def post_customer_message(
    db: Session,
    sender: EmailSender,
    token: str,
    body: str,
    client_message_id: Optional[str] = None,
) -> PostedMessage:
    quote = get_quote_by_token(db, token)
    if quote.status == QuoteStatus.draft:
        raise NotFoundError("Quote not found")
    thread = ensure_thread(db, quote)

    original = _find_by_client_id(db, thread.id, client_message_id)
    if original is not None:
        return PostedMessage(message=original, thread=thread, duplicate=True)

    recent = (
        db.query(func.count(Message.id))
        .filter(
            Message.thread_id == thread.id,
            Message.sender_type == SenderType.customer,
            Message.created_at >= _now() - RATE_WINDOW,
        )
        .scalar()
    )
    if recent >= settings.CUSTOMER_MESSAGES_PER_MINUTE:
        logger.warning("Customer message rate limit hit on thread %s", thread.id)
        raise RateLimited("Please wait before sending another message", error="Too many messages")

    posted = _insert_message(db, thread, SenderType.customer, body, client_message_id)
    if not posted.duplicate:
        notifications.notify_message_to_supplier(db, sender, posted.message, thread)
    return posted


def post_supplier_message(
    db: Session,
    sender: EmailSender,
    supplier_id: str,
    quote_id: str,
    body: str,
    client_message_id: Optional[str] = None,
) -> PostedMessage:
    quote = get_owned_quote(db, quote_id, supplier_id)
    if quote.status == QuoteStatus.draft:
        raise ConflictError("Send the quote before messaging the customer", error="Cannot send message")
    thread = ensure_thread(db, quote)

    original = _find_by_client_id(db, thread.id, client_message_id)
    if original is not None:
        return PostedMessage(message=original, thread=thread, duplicate=True)

    posted = _insert_message(db, thread, SenderType.supplier, body, client_message_id)
    if not posted.duplicate:
        notifications.notify_message_to_customer(db, sender, posted.message, quote)
    return posted
