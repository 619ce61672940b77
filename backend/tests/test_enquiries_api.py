"""Tests for public enquiry intake.

Covers:
- Accepted enquiry persists customer, enquiry and invites, and notifies suppliers
- Scoring failures return errors/hints/flags and persist nothing
- Directed requests: eligible supplier invited, ineligible supplier refused before persistence
- Per-client rate limiting
"""
from concierge.models.enquiry import Customer, Enquiry, SupplierInvite
from concierge.models.notification import SupplierNotification
from tests.conftest import SAMPLE_MESSAGE, make_supplier

FORWARDED = {"X-Forwarded-For": "203.0.113.10"}


def _payload(**overrides) -> dict:
    payload = {
        "full_name": "Jane Customer",
        "email": "Jane@Example.com",
        "event_type": "wedding",
        "enquiry_category_slug": "pizza-catering",
        "event_date": "2099-06-20",
        "guest_count": 150,
        "venue_known": True,
        "venue_postcode": "SW1A 1AA",
        "budget_range": "£2000-£3000",
        "message": SAMPLE_MESSAGE,
    }
    payload.update(overrides)
    return payload


def _post(client, payload, headers=None):
    return client.post("/api/enquiries", json=payload, headers=headers or FORWARDED)


class TestAcceptedEnquiry:
    """A passing submission creates state and invites."""

    def test_sample_enquiry_is_accepted(self, client, db):
        resp = _post(client, _payload(
            venue_name="The Old Mill",
            dietary_requirements="None",
            structured_answers={"serving_time_window": "18:00", "access_notes": "Level access"},
        ))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["ok"] is True
        assert data["enquiryId"]
        assert data["publicToken"]

        enquiry = db.query(Enquiry).filter(Enquiry.id == data["enquiryId"]).one()
        assert enquiry.quality_flags == []
        assert enquiry.quality_score == 90
        assert enquiry.customer_email == "jane@example.com"
        assert enquiry.category_label == "Pizza Catering"
        assert enquiry.match_source == "concierge"
        assert str(enquiry.event_date) == "2099-06-20"

    def test_broadcast_invites_matching_suppliers(self, client, db, outbox):
        match = make_supplier(db, name="Matching Pizza")
        make_supplier(db, name="Northern Pizza", location_label="Leeds", base_city="Leeds", base_postcode="LS1 1AA")
        make_supplier(db, name="Incomplete Pizza", publishable=False)
        make_supplier(db, name="Bar Co", listing_categories=["Mobile Bar"])

        resp = _post(client, _payload())
        assert resp.status_code == 200, resp.text
        assert resp.json()["invitedCount"] == 1

        invites = db.query(SupplierInvite).all()
        assert [i.supplier_id for i in invites] == [match.id]
        assert outbox.count(f"enquiry_invite:{invites[0].id}") == 1
        assert outbox.sent[0]["to"] == "matching@suppliers.test"
        assert db.query(SupplierNotification).filter(SupplierNotification.supplier_id == match.id).count() == 1

    def test_no_matching_suppliers_still_accepted(self, client, db):
        resp = _post(client, _payload(enquiry_category_slug="ice-cream-van"))
        assert resp.status_code == 200
        assert resp.json()["invitedCount"] == 0
        assert db.query(Enquiry).count() == 1

    def test_customer_is_upserted_by_email(self, client, db):
        _post(client, _payload(full_name="Jane C", phone="07700 900123"))
        _post(client, _payload(email="jane@example.com", full_name="Jane Customer"))
        customers = db.query(Customer).all()
        assert len(customers) == 1
        assert customers[0].full_name == "Jane Customer"
        assert db.query(Enquiry).count() == 2

    def test_legacy_field_names(self, client, db):
        resp = _post(client, {
            "customerName": "Sam Smith",
            "customerEmail": "sam@example.com",
            "categorySlug": "pizza-catering",
            "eventDate": "2099-01-10",
            "guestCount": "60",
            "venueKnown": "false",
            "notes": SAMPLE_MESSAGE,
        })
        assert resp.status_code == 200, resp.text
        enquiry = db.query(Enquiry).one()
        assert enquiry.customer_name == "Sam Smith"
        assert enquiry.guest_count == 60

    def test_ip_is_hashed(self, client, db):
        _post(client, _payload())
        enquiry = db.query(Enquiry).one()
        assert enquiry.created_ip_hash and "203.0.113.10" not in enquiry.created_ip_hash
        assert len(enquiry.created_ip_hash) == 64


class TestRejectedEnquiry:
    """Scoring failures never create rows."""

    def test_short_message(self, client, db):
        resp = _post(client, _payload(message="Pizza please"))
        assert resp.status_code == 400
        body = resp.json()
        assert body["ok"] is False
        assert body["code"] == "validation_failed"
        assert "too_short" in body["flags"]
        assert body["errors"]
        assert body["hints"]
        assert db.query(Enquiry).count() == 0
        assert db.query(Customer).count() == 0

    def test_missing_identity(self, client, db):
        resp = _post(client, _payload(full_name="", email=None))
        assert resp.status_code == 400
        assert "Full name is required." in resp.json()["errors"]
        assert "Email is required." in resp.json()["errors"]

    def test_non_object_body(self, client):
        resp = client.post("/api/enquiries", json=["not", "an", "object"])
        assert resp.status_code == 400
        assert resp.json()["code"] == "bad_request"


class TestDirectedEnquiry:
    """Requests addressed to a single supplier."""

    def test_eligible_supplier(self, client, db):
        supplier = make_supplier(db, location_label="Bristol", base_city="Bristol", base_postcode="BS1 1AA")
        make_supplier(db, name="Another Pizza")

        resp = _post(client, _payload(supplier_id=supplier.id))
        assert resp.status_code == 200, resp.text
        assert resp.json()["invitedCount"] == 1
        invite = db.query(SupplierInvite).one()
        assert invite.supplier_id == supplier.id
        assert invite.match_source == "direct"
        assert db.query(Enquiry).one().match_source == "direct"

    def test_ineligible_supplier_creates_nothing(self, client, db):
        supplier = make_supplier(db, publishable=False)

        resp = _post(client, _payload(supplierId=supplier.id))
        assert resp.status_code == 409
        body = resp.json()
        assert body["details"] == "Supplier is not eligible to receive direct requests"
        assert body["code"] == "supplier_not_eligible"
        assert db.query(Enquiry).count() == 0
        assert db.query(Customer).count() == 0
        assert db.query(SupplierInvite).count() == 0

    def test_unknown_supplier(self, client, db):
        resp = _post(client, _payload(supplier_id="does-not-exist"))
        assert resp.status_code == 409
        assert db.query(Enquiry).count() == 0


class TestRateLimit:
    """Five submissions per client and email per window."""

    def test_sixth_submission_is_limited(self, client, db):
        for _ in range(5):
            assert _post(client, _payload()).status_code == 200
        resp = _post(client, _payload())
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limited"
        assert db.query(Enquiry).count() == 5

    def test_limit_is_per_email_and_ip(self, client):
        for _ in range(5):
            _post(client, _payload())
        assert _post(client, _payload(email="other@example.com")).status_code == 200
        assert _post(client, _payload(), headers={"X-Forwarded-For": "198.51.100.1"}).status_code == 200

    def test_rejected_submissions_count_towards_limit(self, client):
        for _ in range(5):
            assert _post(client, _payload(message="short")).status_code == 400
        assert _post(client, _payload()).status_code == 429
