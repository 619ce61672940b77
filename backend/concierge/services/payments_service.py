"""Payment processor webhook handling (customer deposits and supplier credit bundles).

Signature verification happens upstream; events arrive here already trusted.
Each processor event id is reserved in the event ledger so a redelivered
event is acknowledged without being applied twice.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from concierge.models.payment import CreditBundleOrder, Payment
from concierge.models.quote import Quote
from concierge.services import notifications
from concierge.services.credits import apply_credit_delta
from concierge.services.email import EmailSender
from concierge.services.event_ledger import reserve

logger = logging.getLogger(__name__)

REFUND_TYPES = {"charge.refunded", "refund.updated", "charge.refund.updated"}


def map_event_type(event_type: Optional[str]) -> Optional[str]:
    if event_type == "checkout.session.completed":
        return "checkout_session_completed"
    if event_type == "payment_intent.succeeded":
        return "payment_intent_succeeded"
    if event_type == "payment_intent.payment_failed":
        return "payment_failed"
    if event_type in REFUND_TYPES:
        return "refunded"
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _find(db: Session, model, obj: dict[str, Any], metadata_key: str):
    """Locate a row by metadata id, then checkout session id, then payment intent id."""
    row_id = (obj.get("metadata") or {}).get(metadata_key)
    if row_id:
        row = db.query(model).filter(model.id == row_id).first()
        if row:
            return row
    kind = obj.get("object")
    if kind == "checkout.session" and obj.get("id"):
        row = db.query(model).filter(model.checkout_session_id == obj["id"]).first()
        if row:
            return row
    intent_id = obj.get("id") if kind == "payment_intent" else obj.get("payment_intent") if kind == "charge" else None
    if intent_id:
        return db.query(model).filter(model.payment_intent_id == intent_id).first()
    return None


def _intent_id(obj: dict[str, Any]) -> Optional[str]:
    if obj.get("object") == "payment_intent":
        return obj.get("id")
    intent = obj.get("payment_intent")
    return intent if isinstance(intent, str) else None


# ---------------------------------------------------------------------------
# Credit bundles
# ---------------------------------------------------------------------------
def _apply_credits_for_order(db: Session, order: CreditBundleOrder, obj: dict[str, Any]) -> bool:
    """Move the order to paid once, then credit the supplier. Returns whether credits were added."""
    patch: dict[Any, Any] = {CreditBundleOrder.status: "paid", CreditBundleOrder.paid_at: _now()}
    if obj.get("object") == "checkout.session" and obj.get("id"):
        patch[CreditBundleOrder.checkout_session_id] = obj["id"]
    if _intent_id(obj):
        patch[CreditBundleOrder.payment_intent_id] = _intent_id(obj)
    transitioned = (
        db.query(CreditBundleOrder)
        .filter(CreditBundleOrder.id == order.id, CreditBundleOrder.status != "paid")
        .update(patch, synchronize_session=False)
    )
    if transitioned == 0:
        db.rollback()
        logger.info("Credit order %s already paid", order.id)
        return False
    db.commit()

    result = apply_credit_delta(
        db, order.supplier_id, int(order.credits or 0),
        reason="credit_bundle_purchase", note=f"{order.bundle_code} via card payment",
    )
    if not result.ok:
        logger.error("Credit order %s paid but ledger refused delta: %s", order.id, result.reason)
        return False
    return True


def _handle_credit_bundle(db: Session, event_type: str, order: CreditBundleOrder, obj: dict[str, Any]) -> dict:
    credited = False
    if event_type == "checkout.session.completed":
        if obj.get("payment_status") == "paid":
            credited = _apply_credits_for_order(db, order, obj)
        else:
            db.query(CreditBundleOrder).filter(
                CreditBundleOrder.id == order.id, CreditBundleOrder.status != "paid"
            ).update({CreditBundleOrder.status: "pending"}, synchronize_session=False)
            db.commit()
    elif event_type == "payment_intent.succeeded":
        credited = _apply_credits_for_order(db, order, obj)
    elif event_type == "payment_intent.payment_failed":
        db.query(CreditBundleOrder).filter(
            CreditBundleOrder.id == order.id, CreditBundleOrder.status != "paid"
        ).update({CreditBundleOrder.status: "failed"}, synchronize_session=False)
        db.commit()
    elif event_type in REFUND_TYPES:
        db.query(CreditBundleOrder).filter(CreditBundleOrder.id == order.id).update(
            {CreditBundleOrder.status: "canceled"}, synchronize_session=False
        )
        db.commit()
    return {"ok": True, "credited": credited}


# ---------------------------------------------------------------------------
# Deposits
# ---------------------------------------------------------------------------
def _mark_deposit_paid(db: Session, sender: EmailSender, payment: Payment, amount_paid: int, obj: dict[str, Any]) -> None:
    patch: dict[Any, Any] = {
        Payment.status: "paid",
        Payment.amount_paid: amount_paid,
        Payment.paid_at: _now(),
    }
    if _intent_id(obj):
        patch[Payment.payment_intent_id] = _intent_id(obj)
    transitioned = (
        db.query(Payment)
        .filter(Payment.id == payment.id, Payment.status != "paid")
        .update(patch, synchronize_session=False)
    )
    if transitioned == 0:
        db.rollback()
        return
    db.query(Quote).filter(Quote.id == payment.quote_id).update(
        {Quote.deposit_status: "paid"}, synchronize_session=False
    )
    db.commit()
    db.refresh(payment)
    logger.info("Deposit %s paid for quote %s", payment.id, payment.quote_id)
    notifications.notify_deposit_paid(db, sender, payment)


def _handle_deposit(db: Session, sender: EmailSender, event_type: str, payment: Payment, obj: dict[str, Any]) -> dict:
    if event_type == "checkout.session.completed":
        if obj.get("payment_status") == "paid":
            amount = int(obj.get("amount_total") or payment.amount_total or 0)
            _mark_deposit_paid(db, sender, payment, amount, obj)
        else:
            db.query(Quote).filter(Quote.id == payment.quote_id).update(
                {Quote.deposit_status: "pending"}, synchronize_session=False
            )
            db.commit()
    elif event_type == "payment_intent.succeeded":
        amount = int(obj.get("amount_received") or obj.get("amount") or payment.amount_total or 0)
        _mark_deposit_paid(db, sender, payment, amount, obj)
    elif event_type == "payment_intent.payment_failed":
        db.query(Payment).filter(Payment.id == payment.id, Payment.status != "paid").update(
            {Payment.status: "failed"}, synchronize_session=False
        )
        db.query(Quote).filter(Quote.id == payment.quote_id).update(
            {Quote.deposit_status: "failed"}, synchronize_session=False
        )
        db.commit()
    elif event_type in REFUND_TYPES:
        db.query(Payment).filter(Payment.id == payment.id).update(
            {Payment.status: "refunded", Payment.refunded_at: _now()}, synchronize_session=False
        )
        db.query(Quote).filter(Quote.id == payment.quote_id).update(
            {Quote.deposit_status: "refunded"}, synchronize_session=False
        )
        db.commit()
    return {"ok": True}


def handle_webhook_event(db: Session, sender: EmailSender, event: dict[str, Any]) -> dict[str, Any]:
    event_type = event.get("type")
    mapped = map_event_type(event_type)
    if not mapped:
        return {"ok": True, "ignored": True}

    obj = (event.get("data") or {}).get("object") or {}
    is_credit_bundle = str((obj.get("metadata") or {}).get("paymentKind") or "").lower() == "credit_bundle"

    if is_credit_bundle:
        target = _find(db, CreditBundleOrder, obj, "orderId")
        if target is None:
            return {"ok": True, "ignored": True, "reason": "credit_order_not_found"}
    else:
        target = _find(db, Payment, obj, "paymentId")
        if target is None:
            return {"ok": True, "ignored": True, "reason": "payment_not_found"}

    reservation = reserve(
        db, f"payment_webhook:{event.get('id')}",
        {"type": event_type, "mapped": mapped, "target_id": target.id},
    )
    if not reservation.reserved:
        return {"ok": True, "duplicate": True}

    logger.info("Processing payment event %s (%s) for %s", event.get("id"), event_type, target.id)
    if is_credit_bundle:
        return _handle_credit_bundle(db, event_type, target, obj)
    return _handle_deposit(db, sender, event_type, target, obj)
