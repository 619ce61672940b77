"""Supplier credit ledger.

``credits_balance`` on ``suppliers`` is a denormalized running total of
``credit_transactions``. Both are written in the same transaction by
``apply_credit_delta``; nothing else updates the balance.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from concierge.errors import NotFoundError
from concierge.models.credit import CreditTransaction
from concierge.models.supplier import Supplier

logger = logging.getLogger(__name__)

INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
SUPPLIER_NOT_FOUND = "SUPPLIER_NOT_FOUND"


@dataclass
class CreditDeltaResult:
    ok: bool
    new_balance: Optional[int] = None
    reason: Optional[str] = None


def get_balance(db: Session, supplier_id: str) -> Optional[int]:
    return db.query(Supplier.credits_balance).filter(Supplier.id == supplier_id).scalar()


def apply_credit_delta(
    db: Session,
    supplier_id: str,
    delta: int,
    reason: str,
    note: Optional[str] = None,
    related_quote_id: Optional[str] = None,
    created_by: Optional[str] = None,
) -> CreditDeltaResult:
    """Atomically add ``delta`` to a supplier's balance and append a ledger row.

    The balance update is conditional on the result staying non-negative, so
    concurrent debits can never overdraw. Commits on success, rolls back on
    refusal.
    """
    try:
        updated = (
            db.query(Supplier)
            .filter(Supplier.id == supplier_id, Supplier.credits_balance + delta >= 0)
            .update(
                {Supplier.credits_balance: Supplier.credits_balance + delta},
                synchronize_session=False,
            )
        )
    except IntegrityError:
        db.rollback()
        logger.warning("Credit check constraint refused delta %d for supplier %s", delta, supplier_id)
        return CreditDeltaResult(ok=False, new_balance=get_balance(db, supplier_id), reason=INSUFFICIENT_CREDITS)

    if updated == 0:
        db.rollback()
        balance = get_balance(db, supplier_id)
        if balance is None:
            return CreditDeltaResult(ok=False, reason=SUPPLIER_NOT_FOUND)
        logger.info(
            "Credit delta %d refused for supplier %s (balance %d)", delta, supplier_id, balance
        )
        return CreditDeltaResult(ok=False, new_balance=balance, reason=INSUFFICIENT_CREDITS)

    new_balance = get_balance(db, supplier_id)
    db.add(CreditTransaction(
        supplier_id=supplier_id,
        delta=delta,
        balance_after=new_balance,
        reason=reason,
        note=note,
        related_quote_id=related_quote_id,
        created_by=created_by,
    ))
    db.commit()
    logger.info("Applied credit delta %d (%s) to supplier %s -> %d", delta, reason, supplier_id, new_balance)
    return CreditDeltaResult(ok=True, new_balance=new_balance)


def admin_adjust_credits(
    db: Session,
    supplier_id: str,
    delta: int,
    note: Optional[str] = None,
    created_by: Optional[str] = "admin",
) -> CreditDeltaResult:
    """Manual adjustment; a debit larger than the balance is clamped to zero."""
    balance = get_balance(db, supplier_id)
    if balance is None:
        raise NotFoundError("Supplier not found")
    effective = max(delta, -balance)
    if effective == 0:
        return CreditDeltaResult(ok=True, new_balance=balance)
    return apply_credit_delta(
        db, supplier_id, effective, reason="admin_adjust", note=note, created_by=created_by
    )


def list_transactions(db: Session, supplier_id: str, limit: int = 50) -> list[CreditTransaction]:
    return (
        db.query(CreditTransaction)
        .filter(CreditTransaction.supplier_id == supplier_id)
        .order_by(CreditTransaction.created_at.desc())
        .limit(limit)
        .all()
    )
