"""Tests for quote messaging between customers and suppliers."""
from concierge.config import settings
from concierge.models.message import Message, MessageThread
from concierge.models.notification import SupplierNotification
from concierge.services import quote_lifecycle
from tests.conftest import make_draft_quote, make_enquiry, make_sent_quote, make_supplier, supplier_headers


def _customer_post(client, token, body="Can you do gluten-free bases?", client_message_id=None):
    payload = {"token": token, "body": body}
    if client_message_id:
        payload["client_message_id"] = client_message_id
    return client.post("/api/quotes/messages", json=payload)


class TestCustomerMessages:
    """Customers write through their quote link."""

    def test_post_creates_thread_and_notifies_supplier(self, client, db, outbox):
        supplier, _, quote, token = make_sent_quote(db, outbox)
        resp = _customer_post(client, token)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["duplicate"] is False
        assert data["message"]["sender_type"] == "customer"
        assert data["message"]["body"] == "Can you do gluten-free bases?"

        thread = db.query(MessageThread).filter(MessageThread.quote_id == quote.id).one()
        assert data["message"]["thread_id"] == thread.id
        assert outbox.count(f"message_received_supplier:{data['message']['id']}") == 1
        record = db.query(SupplierNotification).filter(SupplierNotification.type == "message_received").one()
        assert record.supplier_id == supplier.id
        assert record.body == "Can you do gluten-free bases?"

    def test_client_message_id_deduplicates(self, client, db, outbox):
        _, _, _, token = make_sent_quote(db, outbox)
        first = _customer_post(client, token, client_message_id="c-1")
        second = _customer_post(client, token, body="different text", client_message_id="c-1")

        assert second.status_code == 200
        assert second.json()["duplicate"] is True
        assert second.json()["message"]["id"] == first.json()["message"]["id"]
        assert db.query(Message).count() == 1
        assert outbox.count(f"message_received_supplier:{first.json()['message']['id']}") == 1

    def test_rate_limited(self, client, db, outbox, monkeypatch):
        monkeypatch.setattr(settings, "CUSTOMER_MESSAGES_PER_MINUTE", 2)
        _, _, _, token = make_sent_quote(db, outbox)
        assert _customer_post(client, token).status_code == 200
        assert _customer_post(client, token).status_code == 200
        resp = _customer_post(client, token)
        assert resp.status_code == 429
        assert resp.json()["error"] == "Too many messages"
        assert db.query(Message).count() == 2

    def test_draft_quote_link_is_not_found(self, client, db):
        supplier = make_supplier(db)
        enquiry = make_enquiry(db, [supplier])
        quote = make_draft_quote(db, supplier, enquiry)
        link = quote_lifecycle.ensure_public_link(db, quote.id)
        assert _customer_post(client, link.token).status_code == 404

    def test_body_length(self, client, db, outbox):
        _, _, _, token = make_sent_quote(db, outbox)
        assert _customer_post(client, token, body="").status_code == 400
        assert _customer_post(client, token, body="x" * 2001).status_code == 400


class TestSupplierMessages:
    """Suppliers reply on their own sent quotes."""

    def test_reply_notifies_customer(self, client, db, outbox):
        supplier, _, quote, token = make_sent_quote(db, outbox)
        _customer_post(client, token)
        resp = client.post(
            f"/api/supplier/quotes/{quote.id}/messages",
            json={"body": "Yes, we have gluten-free bases.", "client_message_id": "s-1"},
            headers=supplier_headers(supplier),
        )
        assert resp.status_code == 200, resp.text
        message = resp.json()["message"]
        assert message["sender_type"] == "supplier"
        assert db.query(MessageThread).count() == 1

        customer_mail = [m for m in outbox.sent if m["event_key"] == f"message_received_customer:{message['id']}"]
        assert len(customer_mail) == 1
        assert customer_mail[0]["to"] == "jane@example.com"

        repeat = client.post(
            f"/api/supplier/quotes/{quote.id}/messages",
            json={"body": "Yes, we have gluten-free bases.", "client_message_id": "s-1"},
            headers=supplier_headers(supplier),
        )
        assert repeat.json()["duplicate"] is True
        assert outbox.count(f"message_received_customer:{message['id']}") == 1

    def test_draft_quote_conflicts(self, client, db):
        supplier = make_supplier(db)
        enquiry = make_enquiry(db, [supplier])
        quote = make_draft_quote(db, supplier, enquiry)
        resp = client.post(
            f"/api/supplier/quotes/{quote.id}/messages", json={"body": "Hello"}, headers=supplier_headers(supplier),
        )
        assert resp.status_code == 409

    def test_other_suppliers_quote(self, client, db, outbox):
        _, _, quote, _ = make_sent_quote(db, outbox)
        stranger = make_supplier(db, name="Stranger Pizza")
        resp = client.post(
            f"/api/supplier/quotes/{quote.id}/messages", json={"body": "Hello"}, headers=supplier_headers(stranger),
        )
        assert resp.status_code == 404
