"""Admin API routes — manual credit adjustments and quote outcomes. Require ``X-Admin-Key``."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from concierge.database import get_db
from concierge.dependencies import require_admin
from concierge.errors import ConflictError
from concierge.schemas.quote import AdminQuoteActionIn, QuoteOut, QuoteTransitionOut
from concierge.schemas.supplier import CreditAdjustIn, CreditAdjustOut
from concierge.services import credits, quote_lifecycle
from concierge.services.email import EmailSender, get_email_sender

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/suppliers/{supplier_id}/credits", response_model=CreditAdjustOut)
def adjust_credits(
    supplier_id: str,
    payload: CreditAdjustIn,
    admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Add or remove credits; a debit below zero is clamped to zero."""
    result = credits.admin_adjust_credits(db, supplier_id, payload.delta, note=payload.note, created_by=admin)
    if not result.ok:
        raise ConflictError("Balance changed concurrently, retry", error="Cannot adjust credits")
    logger.info("Admin adjusted credits for supplier %s by %d", supplier_id, payload.delta)
    return CreditAdjustOut(credits_balance=result.new_balance)


@router.post("/quotes/{quote_id}/action", response_model=QuoteTransitionOut)
def admin_quote_action(
    quote_id: str,
    payload: AdminQuoteActionIn,
    admin: str = Depends(require_admin),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    quote = quote_lifecycle.get_quote(db, quote_id)
    quote, changed = quote_lifecycle.respond_to_quote(db, sender, quote, payload.action, actor_type="admin", actor_id=admin)
    return QuoteTransitionOut(changed=changed, quote=QuoteOut.model_validate(quote))
