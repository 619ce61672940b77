"""Tests for the payment processor webhook (deposits and credit bundles)."""
from concierge.models.credit import CreditTransaction
from concierge.models.payment import CreditBundleOrder, Payment
from concierge.models.quote import Quote
from concierge.models.supplier import Supplier
from concierge.services.payments_service import map_event_type
from tests.conftest import make_sent_quote, make_supplier


def _event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def _deposit(db, outbox):
    supplier, _, quote, _ = make_sent_quote(db, outbox)
    payment = Payment(
        quote_id=quote.id, supplier_id=supplier.id, amount_total=50000, checkout_session_id="cs_test_1",
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return supplier, quote, payment


def _bundle(db, credits=10, balance=1):
    supplier = make_supplier(db, credits=balance)
    order = CreditBundleOrder(supplier_id=supplier.id, bundle_code="starter_10", credits=credits)
    db.add(order)
    db.commit()
    db.refresh(order)
    return supplier, order


def _session_completed(payment_id, paid=True):
    return {
        "object": "checkout.session",
        "id": "cs_test_1",
        "payment_status": "paid" if paid else "unpaid",
        "amount_total": 50000,
        "payment_intent": "pi_test_1",
        "metadata": {"paymentId": payment_id},
    }


class TestEventMapping:
    def test_known_and_unknown_types(self):
        assert map_event_type("checkout.session.completed") == "checkout_session_completed"
        assert map_event_type("charge.refunded") == "refunded"
        assert map_event_type("customer.created") is None


class TestDeposits:
    """Deposit payments for accepted quotes."""

    def test_checkout_completed_marks_paid(self, client, db, outbox):
        supplier, quote, payment = _deposit(db, outbox)
        resp = client.post("/api/payments/webhook", json=_event("evt_1", "checkout.session.completed",
                                                                  _session_completed(payment.id)))
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

        db.expire_all()
        payment = db.query(Payment).one()
        assert payment.status == "paid"
        assert payment.amount_paid == 50000
        assert payment.payment_intent_id == "pi_test_1"
        assert db.query(Quote).filter(Quote.id == quote.id).one().deposit_status == "paid"
        assert outbox.count(f"deposit_paid:{payment.id}") == 1
        assert "500.00" in [m for m in outbox.sent if m["event_key"] == f"deposit_paid:{payment.id}"][0]["html"]

    def test_redelivery_is_duplicate(self, client, db, outbox):
        _, _, payment = _deposit(db, outbox)
        event = _event("evt_1", "checkout.session.completed", _session_completed(payment.id))
        client.post("/api/payments/webhook", json=event)
        resp = client.post("/api/payments/webhook", json=event)
        assert resp.json() == {"ok": True, "duplicate": True}
        assert outbox.count(f"deposit_paid:{payment.id}") == 1

    def test_found_by_session_id(self, client, db, outbox):
        _, _, payment = _deposit(db, outbox)
        obj = _session_completed(payment.id)
        obj["metadata"] = {}
        client.post("/api/payments/webhook", json=_event("evt_2", "checkout.session.completed", obj))
        db.expire_all()
        assert db.query(Payment).one().status == "paid"

    def test_unpaid_session_leaves_pending(self, client, db, outbox):
        _, quote, payment = _deposit(db, outbox)
        client.post("/api/payments/webhook", json=_event(
            "evt_3", "checkout.session.completed", _session_completed(payment.id, paid=False)))
        db.expire_all()
        assert db.query(Payment).one().status == "pending"
        assert db.query(Quote).filter(Quote.id == quote.id).one().deposit_status == "pending"

    def test_failed_then_refunded(self, client, db, outbox):
        _, quote, payment = _deposit(db, outbox)
        client.post("/api/payments/webhook", json=_event("evt_4", "payment_intent.payment_failed", {
            "object": "payment_intent", "id": "pi_x", "metadata": {"paymentId": payment.id},
        }))
        db.expire_all()
        assert db.query(Payment).one().status == "failed"

        client.post("/api/payments/webhook", json=_event("evt_5", "charge.refunded", {
            "object": "charge", "id": "ch_1", "metadata": {"paymentId": payment.id},
        }))
        db.expire_all()
        refunded = db.query(Payment).one()
        assert refunded.status == "refunded"
        assert refunded.refunded_at is not None
        assert db.query(Quote).filter(Quote.id == quote.id).one().deposit_status == "refunded"

    def test_unknown_payment_is_ignored(self, client):
        resp = client.post("/api/payments/webhook", json=_event("evt_6", "payment_intent.succeeded", {
            "object": "payment_intent", "id": "pi_unknown", "metadata": {},
        }))
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "ignored": True, "reason": "payment_not_found"}


class TestCreditBundles:
    """Credit purchases top up the supplier balance exactly once."""

    def test_intent_succeeded_adds_credits(self, client, db):
        supplier, order = _bundle(db, credits=10, balance=1)
        resp = client.post("/api/payments/webhook", json=_event("evt_10", "payment_intent.succeeded", {
            "object": "payment_intent", "id": "pi_bundle",
            "metadata": {"paymentKind": "credit_bundle", "orderId": order.id},
        }))
        assert resp.json() == {"ok": True, "credited": True}

        db.expire_all()
        assert db.query(Supplier).filter(Supplier.id == supplier.id).one().credits_balance == 11
        assert db.query(CreditBundleOrder).one().status == "paid"
        tx = db.query(CreditTransaction).one()
        assert (tx.delta, tx.reason) == (10, "credit_bundle_purchase")

    def test_second_success_event_does_not_double_credit(self, client, db):
        supplier, order = _bundle(db, credits=5, balance=0)
        metadata = {"paymentKind": "credit_bundle", "orderId": order.id}
        client.post("/api/payments/webhook", json=_event("evt_11", "payment_intent.succeeded", {
            "object": "payment_intent", "id": "pi_b", "metadata": metadata,
        }))
        resp = client.post("/api/payments/webhook", json=_event("evt_12", "checkout.session.completed", {
            "object": "checkout.session", "id": "cs_b", "payment_status": "paid", "metadata": metadata,
        }))
        assert resp.json() == {"ok": True, "credited": False}
        db.expire_all()
        assert db.query(Supplier).filter(Supplier.id == supplier.id).one().credits_balance == 5
        assert db.query(CreditTransaction).count() == 1

    def test_unknown_order_is_ignored(self, client):
        resp = client.post("/api/payments/webhook", json=_event("evt_13", "payment_intent.succeeded", {
            "object": "payment_intent", "id": "pi_none", "metadata": {"paymentKind": "credit_bundle"},
        }))
        assert resp.json()["reason"] == "credit_order_not_found"


class TestIgnored:
    def test_unhandled_type(self, client):
        resp = client.post("/api/payments/webhook", json=_event("evt_20", "customer.created", {"object": "customer"}))
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "ignored": True}

    def test_missing_id_is_bad_request(self, client):
        resp = client.post("/api/payments/webhook", json={"type": "charge.refunded", "data": {}})
        assert resp.status_code == 400
