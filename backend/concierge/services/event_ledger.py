"""Event ledger — at-most-once reservation of business events.

``reserve`` is the only write path into ``event_ledger``. The unique index on
``event_key`` does the coordination: the first committed insert wins, every
other attempt (sequential or concurrent, in any process) sees a unique
violation and gets ``reserved=False``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from concierge.models.event_ledger import EventLedgerEntry

logger = logging.getLogger(__name__)


@dataclass
class Reservation:
    event_key: str
    reserved: bool


def reserve(db: Session, event_key: str, meta: Optional[dict[str, Any]] = None) -> Reservation:
    """Insert and commit a ledger row for ``event_key``.

    Commits the session. Errors other than a duplicate key propagate.
    """
    db.add(EventLedgerEntry(event_key=event_key, meta=meta))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        exists = db.query(EventLedgerEntry.id).filter(EventLedgerEntry.event_key == event_key).first()
        if exists is None:
            logger.exception("Ledger insert failed for %s without an existing row", event_key)
            raise
        logger.info("Event %s already reserved; skipping", event_key)
        return Reservation(event_key=event_key, reserved=False)
    return Reservation(event_key=event_key, reserved=True)


def is_reserved(db: Session, event_key: str) -> bool:
    return db.query(EventLedgerEntry.id).filter(EventLedgerEntry.event_key == event_key).first() is not None
