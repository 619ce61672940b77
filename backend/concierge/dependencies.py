"""Request-scoped dependencies: caller identity for supplier and admin routes."""
import hmac

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.database import get_db
from concierge.errors import Forbidden, Unauthorized
from concierge.models.supplier import Supplier


def get_current_supplier(
    x_supplier_id: str = Header(default="", alias="X-Supplier-Id"),
    db: Session = Depends(get_db),
) -> Supplier:
    """Resolve the supplier the upstream auth layer vouched for."""
    supplier_id = x_supplier_id.strip()
    if not supplier_id:
        raise Unauthorized("Missing supplier identity")
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise Unauthorized("Unknown supplier")
    return supplier


def require_admin(x_admin_key: str = Header(default="", alias="X-Admin-Key")) -> str:
    if not settings.ADMIN_API_KEY:
        raise Forbidden("Admin access is not configured")
    if not hmac.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise Unauthorized("Invalid admin key")
    return "admin"
