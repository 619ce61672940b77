"""Quote lifecycle service — the quote state machine and its credit side effect.

States::

    draft -> sent -> accepted | declined
             sent -> closed -> sent   (reopen, only if never accepted/declined)

Every transition is a conditional ``UPDATE ... WHERE status = <expected>``;
the affected row count tells a winning request from a losing one. No
application-level locks are taken.

Sending is a two-step saga: the quote flips ``draft -> sent`` and commits,
then one credit is debited through the ledger. If the debit is refused the
first step is compensated with a write conditioned on the exact ``sent_at``
this request stamped, so a later legitimate send is never undone.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.errors import BadRequest, ConflictError, Forbidden, InvariantViolation, NotFoundError
from concierge.models.enquiry import Enquiry, EnquiryStatus, InviteStatus, SupplierInvite
from concierge.models.quote import (
    Quote, QuoteEvent, QuoteEventType, QuoteItem, QuotePublicLink, QuoteStatus, TERMINAL_STATUSES,
)
from concierge.services import notifications
from concierge.services.credits import SUPPLIER_NOT_FOUND, apply_credit_delta, get_balance
from concierge.services.email import EmailSender

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


@dataclass
class SendResult:
    quote: Quote
    credits_balance: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _record_event(
    db: Session,
    quote_id: str,
    event_type: QuoteEventType,
    actor_type: str,
    actor_id: Optional[str] = None,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    db.add(QuoteEvent(
        quote_id=quote_id,
        event_type=event_type,
        actor_type=actor_type,
        actor_id=actor_id,
        meta=meta,
        created_at=_now(),
    ))


def _locked_or_wrong_state(quote: Quote, expected: str, error: str) -> ConflictError:
    if quote.status in TERMINAL_STATUSES:
        return ConflictError("Quote is locked.", error=error, code="locked")
    return ConflictError(f"Quote status must be {expected}", error=error, code="invalid_state")


def get_owned_quote(db: Session, quote_id: str, supplier_id: str) -> Quote:
    quote = db.query(Quote).filter(Quote.id == quote_id, Quote.supplier_id == supplier_id).first()
    if not quote:
        raise NotFoundError("Quote not found for this supplier")
    return quote


def get_quote(db: Session, quote_id: str) -> Quote:
    quote = db.query(Quote).filter(Quote.id == quote_id).first()
    if not quote:
        raise NotFoundError("Quote not found")
    return quote


def get_quote_by_token(db: Session, token: str) -> Quote:
    """Resolve a customer's public link token; unknown and revoked tokens are both 404."""
    link = (
        db.query(QuotePublicLink)
        .filter(QuotePublicLink.token == token, QuotePublicLink.revoked_at.is_(None))
        .first()
    )
    if not link:
        raise NotFoundError("Quote not found")
    return get_quote(db, link.quote_id)


def ensure_public_link(db: Session, quote_id: str) -> QuotePublicLink:
    link = db.query(QuotePublicLink).filter(QuotePublicLink.quote_id == quote_id).first()
    if link:
        return link
    db.add(QuotePublicLink(quote_id=quote_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
    return db.query(QuotePublicLink).filter(QuotePublicLink.quote_id == quote_id).one()


# ---------------------------------------------------------------------------
# Drafting
# ---------------------------------------------------------------------------
def create_draft_quote(db: Session, supplier_id: str, enquiry_id: str) -> tuple[Quote, bool]:
    """Return ``(quote, existed)``. At most one quote exists per (enquiry, supplier)."""
    invite = (
        db.query(SupplierInvite)
        .filter(SupplierInvite.enquiry_id == enquiry_id, SupplierInvite.supplier_id == supplier_id)
        .first()
    )
    if not invite:
        raise Forbidden("Supplier was not invited to this enquiry")

    existing = db.query(Quote).filter(Quote.enquiry_id == enquiry_id, Quote.supplier_id == supplier_id).first()
    if existing:
        return existing, True

    quote = Quote(
        enquiry_id=enquiry_id,
        supplier_id=supplier_id,
        status=QuoteStatus.draft,
        total_amount=Decimal("0.00"),
        currency_code=settings.DEFAULT_CURRENCY,
    )
    db.add(quote)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = (
            db.query(Quote).filter(Quote.enquiry_id == enquiry_id, Quote.supplier_id == supplier_id).first()
        )
        if existing is None:
            raise
        logger.info("Concurrent draft creation for enquiry %s; returning winner %s", enquiry_id, existing.id)
        return existing, True

    db.query(SupplierInvite).filter(
        SupplierInvite.id == invite.id,
        SupplierInvite.status.in_([InviteStatus.invited, InviteStatus.viewed]),
    ).update(
        {SupplierInvite.status: InviteStatus.responded, SupplierInvite.responded_at: _now()},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(quote)
    logger.info("Draft quote %s created by supplier %s", quote.id, supplier_id)
    return quote, False


def save_draft_items(
    db: Session,
    supplier_id: str,
    quote_id: str,
    items: list[dict[str, Any]],
    quote_text: Optional[str] = None,
) -> Quote:
    """Replace the item set of a draft and recompute its total."""
    quote = get_owned_quote(db, quote_id, supplier_id)
    if quote.status != QuoteStatus.draft:
        raise _locked_or_wrong_state(quote, "draft", "Cannot save quote")

    existing = {row.id: row for row in db.query(QuoteItem).filter(QuoteItem.quote_id == quote_id)}
    for item in items:
        if item.get("id") and item["id"] not in existing:
            raise BadRequest("Item does not belong to this quote", error="Cannot save quote")

    total = sum(
        (Decimal(str(item["qty"])) * Decimal(str(item["unit_price"])) for item in items),
        Decimal("0"),
    ).quantize(_CENTS)

    patch: dict[Any, Any] = {Quote.total_amount: total, Quote.updated_at: _now()}
    if quote_text is not None:
        patch[Quote.quote_text] = quote_text.strip() or None
    updated = (
        db.query(Quote)
        .filter(Quote.id == quote_id, Quote.status == QuoteStatus.draft)
        .update(patch, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        raise ConflictError("Quote is no longer draft", error="Cannot save quote", code="not_draft")

    kept_ids = {item["id"] for item in items if item.get("id")}
    for item_id, row in existing.items():
        if item_id not in kept_ids:
            db.delete(row)
    for index, item in enumerate(items):
        row = existing.get(item.get("id")) or QuoteItem(quote_id=quote_id)
        row.title = item["title"].strip()
        row.qty = Decimal(str(item["qty"]))
        row.unit_price = Decimal(str(item["unit_price"]))
        row.sort_order = item["sort_order"] if item.get("sort_order") is not None else index
        db.add(row)
    db.commit()
    db.expire_all()
    return get_quote(db, quote_id)


# ---------------------------------------------------------------------------
# Send
# ---------------------------------------------------------------------------
def _compensate_send(db: Session, quote_id: str, supplier_id: str, sent_at: datetime, reason: str) -> None:
    """Undo this request's ``draft -> sent`` step, and only this request's."""
    reverted = (
        db.query(Quote)
        .filter(
            Quote.id == quote_id,
            Quote.supplier_id == supplier_id,
            Quote.status == QuoteStatus.sent,
            Quote.sent_at == sent_at,
        )
        .update({Quote.status: QuoteStatus.draft, Quote.sent_at: None}, synchronize_session=False)
    )
    if reverted:
        _record_event(db, quote_id, QuoteEventType.send_rolled_back, "system", meta={"reason": reason})
    db.commit()
    logger.warning("Rolled back send of quote %s (%s), reverted=%d", quote_id, reason, reverted)


def send_quote(
    db: Session,
    sender: EmailSender,
    supplier_id: str,
    quote_id: str,
    actor_id: Optional[str] = None,
) -> SendResult:
    quote = get_owned_quote(db, quote_id, supplier_id)
    if quote.status != QuoteStatus.draft:
        if quote.status in TERMINAL_STATUSES:
            raise ConflictError("Quote is locked.", error="Cannot send quote", code="not_draft")
        raise ConflictError("Quote status must be draft", error="Cannot send quote", code="not_draft")

    item_count = db.query(func.count(QuoteItem.id)).filter(QuoteItem.quote_id == quote_id).scalar()
    if not item_count:
        raise ConflictError("Quote must have at least one item", error="Cannot send quote", code="no_items")

    balance = get_balance(db, supplier_id)
    if balance is None:
        raise NotFoundError("Supplier not found")
    if balance < 1:
        # Fast path only; the ledger enforces the invariant.
        raise InvariantViolation(
            "Supplier has insufficient credits", error="Cannot send quote", extra={"creditsBalance": balance}
        )

    sent_at = _now()
    updated = (
        db.query(Quote)
        .filter(Quote.id == quote_id, Quote.supplier_id == supplier_id, Quote.status == QuoteStatus.draft)
        .update({Quote.status: QuoteStatus.sent, Quote.sent_at: sent_at}, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        logger.info("Send of quote %s lost the race; already sent or updated", quote_id)
        raise ConflictError(
            "Quote is no longer draft (already sent or updated)", error="Cannot send quote", code="not_draft"
        )
    db.commit()

    try:
        credit = apply_credit_delta(
            db, supplier_id, -1, reason="quote_send", note="Quote sent",
            related_quote_id=quote_id, created_by=actor_id,
        )
    except Exception:
        db.rollback()
        _compensate_send(db, quote_id, supplier_id, sent_at, "credit_ledger_error")
        raise

    if not credit.ok:
        _compensate_send(db, quote_id, supplier_id, sent_at, credit.reason)
        if credit.reason == SUPPLIER_NOT_FOUND:
            raise NotFoundError("Supplier not found")
        raise InvariantViolation(
            "Supplier has insufficient credits",
            error="Cannot send quote",
            extra={"creditsBalance": credit.new_balance or 0},
        )

    now = _now()
    _record_event(
        db, quote_id, QuoteEventType.sent, "supplier", actor_id,
        meta={"credits_balance": credit.new_balance},
    )
    db.query(SupplierInvite).filter(
        SupplierInvite.enquiry_id == quote.enquiry_id,
        SupplierInvite.supplier_id == supplier_id,
    ).update({SupplierInvite.status: InviteStatus.quoted, SupplierInvite.quoted_at: now}, synchronize_session=False)
    db.query(Enquiry).filter(
        Enquiry.id == quote.enquiry_id, Enquiry.status == EnquiryStatus.new,
    ).update({Enquiry.status: EnquiryStatus.quoted}, synchronize_session=False)
    db.commit()
    ensure_public_link(db, quote_id)

    logger.info("Quote %s sent by supplier %s; balance now %d", quote_id, supplier_id, credit.new_balance)
    quote = get_quote(db, quote_id)
    notifications.notify_quote_sent(db, sender, quote)
    return SendResult(quote=quote, credits_balance=credit.new_balance)


# ---------------------------------------------------------------------------
# Customer / admin outcome
# ---------------------------------------------------------------------------
def respond_to_quote(
    db: Session,
    sender: EmailSender,
    quote: Quote,
    action: str,
    actor_type: str = "customer",
    actor_id: Optional[str] = None,
    customer_name: Optional[str] = None,
    customer_email: Optional[str] = None,
    customer_note: Optional[str] = None,
    customer_message: Optional[str] = None,
) -> tuple[Quote, bool]:
    """Accept or decline a sent quote. Returns ``(quote, changed)``.

    Repeating the outcome the quote already has is an idempotent success. The
    outcome notifications are dispatched again in that case; their ledger keys
    make this a no-op unless an earlier request committed and died before
    notifying.
    """
    if action not in ("accept", "decline"):
        raise BadRequest("Invalid action")
    target = QuoteStatus.accepted if action == "accept" else QuoteStatus.declined
    quote_id = quote.id

    if quote.status == target:
        notifications.notify_quote_outcome(db, sender, quote, target.value)
        return quote, False
    if quote.status in TERMINAL_STATUSES:
        raise ConflictError(f"Quote is already {quote.status.value}", error="Quote already finalized")
    if quote.status != QuoteStatus.sent:
        raise ConflictError("Only sent quotes can be accepted or declined", error="Cannot update quote")

    now = _now()
    patch: dict[Any, Any] = {Quote.status: target}
    if target == QuoteStatus.accepted:
        patch[Quote.accepted_at] = now
    else:
        patch[Quote.declined_at] = now
    if customer_name:
        patch[Quote.customer_action_name] = customer_name
    if customer_email:
        patch[Quote.customer_action_email] = customer_email.lower()
    if customer_note:
        patch[Quote.customer_action_note] = customer_note
    if customer_message is not None:
        patch[Quote.customer_message] = customer_message.strip() or None

    updated = (
        db.query(Quote)
        .filter(Quote.id == quote_id, Quote.status == QuoteStatus.sent)
        .update(patch, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        current = get_quote(db, quote_id)
        db.refresh(current)
        if current.status == target:
            logger.info("Quote %s already %s by a concurrent request", quote_id, target.value)
            notifications.notify_quote_outcome(db, sender, current, target.value)
            return current, False
        raise ConflictError("Quote was updated by another request", error="Cannot update quote")

    event_type = QuoteEventType.accepted if target == QuoteStatus.accepted else QuoteEventType.declined
    _record_event(db, quote_id, event_type, actor_type, actor_id)
    invite_patch: dict[Any, Any] = {
        SupplierInvite.status: InviteStatus.accepted if target == QuoteStatus.accepted else InviteStatus.declined,
    }
    if target == QuoteStatus.accepted:
        invite_patch[SupplierInvite.accepted_at] = now
    else:
        invite_patch[SupplierInvite.declined_at] = now
    db.query(SupplierInvite).filter(
        SupplierInvite.enquiry_id == quote.enquiry_id,
        SupplierInvite.supplier_id == quote.supplier_id,
    ).update(invite_patch, synchronize_session=False)
    if target == QuoteStatus.accepted:
        db.query(Enquiry).filter(Enquiry.id == quote.enquiry_id).update(
            {Enquiry.status: EnquiryStatus.accepted}, synchronize_session=False
        )
    db.commit()

    quote = get_quote(db, quote_id)
    db.refresh(quote)
    logger.info("Quote %s %s by %s", quote_id, target.value, actor_type)
    notifications.notify_quote_outcome(db, sender, quote, target.value)
    return quote, True


# ---------------------------------------------------------------------------
# Supplier close / reopen
# ---------------------------------------------------------------------------
def close_quote(
    db: Session,
    supplier_id: str,
    quote_id: str,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> tuple[Quote, bool]:
    quote = get_owned_quote(db, quote_id, supplier_id)
    if quote.status == QuoteStatus.closed:
        return quote, False
    if quote.status != QuoteStatus.sent:
        raise _locked_or_wrong_state(quote, "sent", "Cannot close quote")

    updated = (
        db.query(Quote)
        .filter(Quote.id == quote_id, Quote.status == QuoteStatus.sent)
        .update(
            {Quote.status: QuoteStatus.closed, Quote.closed_at: _now(), Quote.closed_reason: reason},
            synchronize_session=False,
        )
    )
    if updated == 0:
        db.rollback()
        current = get_quote(db, quote_id)
        db.refresh(current)
        if current.status == QuoteStatus.closed:
            return current, False
        raise ConflictError("Quote was updated by another request", error="Cannot close quote")

    _record_event(db, quote_id, QuoteEventType.closed, "supplier", actor_id, meta={"reason": reason})
    db.commit()
    logger.info("Quote %s closed by supplier %s", quote_id, supplier_id)
    quote = get_quote(db, quote_id)
    db.refresh(quote)
    return quote, True


def reopen_quote(
    db: Session,
    supplier_id: str,
    quote_id: str,
    actor_id: Optional[str] = None,
) -> tuple[Quote, bool]:
    quote = get_owned_quote(db, quote_id, supplier_id)
    if quote.status == QuoteStatus.sent:
        return quote, False
    if quote.status != QuoteStatus.closed or quote.accepted_at or quote.declined_at:
        raise ConflictError("Quote is locked.", error="Cannot reopen quote", code="locked")

    updated = (
        db.query(Quote)
        .filter(
            Quote.id == quote_id,
            Quote.status == QuoteStatus.closed,
            Quote.accepted_at.is_(None),
            Quote.declined_at.is_(None),
        )
        .update(
            {Quote.status: QuoteStatus.sent, Quote.closed_at: None, Quote.closed_reason: None},
            synchronize_session=False,
        )
    )
    if updated == 0:
        db.rollback()
        current = get_quote(db, quote_id)
        db.refresh(current)
        if current.status == QuoteStatus.sent:
            return current, False
        raise ConflictError("Quote was updated by another request", error="Cannot reopen quote")

    _record_event(db, quote_id, QuoteEventType.reopened, "supplier", actor_id)
    db.commit()
    logger.info("Quote %s reopened by supplier %s", quote_id, supplier_id)
    quote = get_quote(db, quote_id)
    db.refresh(quote)
    return quote, True
