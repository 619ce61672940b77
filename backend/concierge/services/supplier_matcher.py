"""Supplier matcher — selects the eligible supplier subset an enquiry is routed to."""
import logging
from collections import defaultdict
from typing import Optional

from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.models.supplier import Supplier, SupplierImage
from concierge.services.enquiry_scorer import normalize_slug
from concierge.services.supplier_gate import compute_supplier_gate

logger = logging.getLogger(__name__)

DIRECT_LIMIT = 1


def pick_eligible_suppliers(
    candidates: list[Supplier],
    images_by_supplier: dict[str, list[SupplierImage]],
    category_slug: Optional[str],
    location_needle: Optional[str],
    limit: int,
) -> list[Supplier]:
    """Filter pre-sorted candidates by publish gate, category and location; keep input order.

    A supplier with no location text at all never matches a non-empty needle.
    """
    category = normalize_slug(category_slug)
    needle = (location_needle or "").strip().lower()
    eligible = []

    for supplier in candidates:
        gate = compute_supplier_gate(supplier, images_by_supplier.get(supplier.id, []))
        if not gate["can_publish"]:
            continue

        if category:
            categories = supplier.listing_categories if isinstance(supplier.listing_categories, list) else []
            if not any(normalize_slug(c) == category for c in categories):
                continue

        if needle:
            hay = " ".join(
                part for part in (supplier.location_label, supplier.base_city, supplier.base_postcode) if part
            ).lower()
            if needle not in hay:
                continue

        eligible.append(supplier)
        if len(eligible) >= limit:
            break

    return eligible


def _load_images(db: Session, supplier_ids: list[str]) -> dict[str, list[SupplierImage]]:
    grouped: dict[str, list[SupplierImage]] = defaultdict(list)
    if not supplier_ids:
        return grouped
    for image in db.query(SupplierImage).filter(SupplierImage.supplier_id.in_(supplier_ids)).all():
        grouped[image.supplier_id].append(image)
    return grouped


def load_candidates(db: Session, supplier_id: Optional[str] = None) -> list[Supplier]:
    """Published suppliers ordered verified-first then newest, capped at the candidate pool size."""
    query = db.query(Supplier).filter(Supplier.is_published.is_(True))
    if supplier_id:
        return query.filter(Supplier.id == supplier_id).limit(DIRECT_LIMIT).all()
    return (
        query.order_by(Supplier.is_verified.desc(), Supplier.created_at.desc())
        .limit(settings.SUPPLIER_CANDIDATE_POOL)
        .all()
    )


def match_suppliers(
    db: Session,
    category_slug: Optional[str],
    location_needle: Optional[str],
    supplier_id: Optional[str] = None,
) -> list[Supplier]:
    """Resolve the supplier set for an enquiry.

    Directed requests (``supplier_id`` given) ignore location and are limited
    to one supplier; broadcast requests use the configured invite limit.
    """
    candidates = load_candidates(db, supplier_id)
    images = _load_images(db, [s.id for s in candidates])
    if supplier_id:
        matched = pick_eligible_suppliers(candidates, images, category_slug, None, DIRECT_LIMIT)
    else:
        matched = pick_eligible_suppliers(
            candidates, images, category_slug, location_needle, settings.BROADCAST_INVITE_LIMIT
        )
    logger.info(
        "Matched %d of %d candidate suppliers (directed=%s)", len(matched), len(candidates), bool(supplier_id)
    )
    return matched
