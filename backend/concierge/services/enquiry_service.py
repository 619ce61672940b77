"""Enquiry intake — rate limit, score, match, persist, invite.

Nothing is written until the submission has passed the rate limiter and the
scorer and the supplier set has been resolved. A directed request for an
ineligible supplier is refused before any row exists.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from concierge.errors import ConflictError, EnquiryValidationError, RateLimited
from concierge.models.enquiry import Customer, Enquiry, EnquiryStatus, InviteStatus, SupplierInvite
from concierge.services import notifications
from concierge.services.email import EmailSender
from concierge.services.enquiry_scorer import (
    EnquiryInput, category_label_from_slug, normalize_enquiry_input, parse_event_date, score_enquiry,
)
from concierge.services.rate_limiter import enquiry_rate_key, enquiry_rate_limiter
from concierge.services.supplier_matcher import match_suppliers

logger = logging.getLogger(__name__)


@dataclass
class EnquiryCreated:
    enquiry: Enquiry
    invites: list[SupplierInvite]


def hash_ip(ip: str) -> str:
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()


def upsert_customer(db: Session, data: EnquiryInput) -> Customer:
    """Find the customer by email and refresh their details, or create them."""
    preferred = data.contact_preference or ("phone" if data.phone else "email")
    customer = db.query(Customer).filter(Customer.email == data.email).first()
    if customer is None:
        customer = Customer(
            full_name=data.full_name,
            email=data.email,
            phone=data.phone,
            preferred_contact_method=preferred,
        )
        db.add(customer)
        try:
            db.commit()
            return customer
        except IntegrityError:
            db.rollback()
            customer = db.query(Customer).filter(Customer.email == data.email).one()

    customer.full_name = data.full_name
    customer.phone = data.phone
    customer.preferred_contact_method = preferred
    db.commit()
    return customer


def create_enquiry(
    db: Session,
    sender: EmailSender,
    body: dict[str, Any],
    client_ip: str,
    referer: Optional[str] = None,
) -> EnquiryCreated:
    data = normalize_enquiry_input(body, referer)

    if not enquiry_rate_limiter.allow(enquiry_rate_key(client_ip, data.email)):
        logger.warning("Enquiry rate limit hit for %s", client_ip)
        raise RateLimited("Please try again shortly.")

    quality = score_enquiry(data)
    if not quality.ok:
        raise EnquiryValidationError(
            " ".join(quality.errors),
            extra={"errors": quality.errors, "hints": quality.hints, "flags": quality.flags},
        )

    directed = bool(data.supplier_id)
    if directed:
        suppliers = match_suppliers(db, data.category_slug, None, supplier_id=data.supplier_id)
        if len(suppliers) != 1:
            raise ConflictError(
                "Supplier is not eligible to receive direct requests",
                error="Cannot create enquiry",
                code="supplier_not_eligible",
            )
    else:
        suppliers = match_suppliers(db, data.category_slug, data.venue_name or data.venue_postcode)
    supplier_ids = [s.id for s in suppliers]

    customer = upsert_customer(db, data)
    match_source = "direct" if directed else "concierge"
    enquiry = Enquiry(
        customer_id=customer.id,
        status=EnquiryStatus.new,
        customer_name=data.full_name,
        customer_email=data.email,
        customer_phone=data.phone,
        contact_preference=data.contact_preference,
        event_type=data.event_type,
        category_slug=data.category_slug,
        category_label=category_label_from_slug(data.category_slug),
        event_date=parse_event_date(data.event_date),
        start_time=data.start_time,
        guest_count=data.guest_count,
        budget_range=data.budget_range,
        venue_known=data.venue_known,
        venue_name=data.venue_name,
        venue_postcode=data.venue_postcode,
        location_label=data.venue_name or data.venue_postcode,
        indoor_outdoor=data.indoor_outdoor,
        power_available=data.power_available,
        dietary_requirements=data.dietary_requirements,
        urgency=quality.normalized_urgency,
        message=data.message,
        structured_answers=data.structured_answers,
        quality_score=quality.score,
        quality_flags=quality.flags,
        source_page=data.source_page,
        created_ip_hash=hash_ip(client_ip),
        match_source=match_source,
    )
    db.add(enquiry)
    db.flush()

    invites = [
        SupplierInvite(
            enquiry_id=enquiry.id,
            supplier_id=supplier_id,
            status=InviteStatus.invited,
            match_source=match_source,
        )
        for supplier_id in supplier_ids
    ]
    db.add_all(invites)
    db.commit()
    logger.info(
        "Enquiry %s created (score=%d, invited=%d, source=%s)",
        enquiry.id, quality.score, len(invites), match_source,
    )

    for invite in invites:
        notifications.notify_enquiry_invite(db, sender, invite, enquiry)

    return EnquiryCreated(enquiry=enquiry, invites=invites)
