"""Pytest fixtures — file-backed SQLite database for isolated tests."""
import os

SQLITE_URL = "sqlite:///./test.db"

# Settings are read at import time, so point them at the test database first.
os.environ["DATABASE_URL"] = SQLITE_URL
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["PUBLIC_APP_URL"] = "https://concierge.test"

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from concierge.database import Base, get_db
from concierge.main import app
from concierge.models.enquiry import Customer, Enquiry, InviteStatus, SupplierInvite
from concierge.models.quote import Quote, QuotePublicLink
from concierge.models.supplier import ImageType, Supplier, SupplierImage
from concierge.services import quote_lifecycle
from concierge.services.email import EmailResult, EmailSender, get_email_sender
from concierge.services.rate_limiter import enquiry_rate_limiter

ADMIN_KEY = "test-admin-key"

SAMPLE_MESSAGE = (
    "Need catering for 150 guests at The Old Mill, postcode SW1A 1AA, "
    "budget £2000-£3000, serving at 6pm"
)

DEFAULT_ITEMS = [
    {"title": "Wood-fired pizza buffet", "qty": 150, "unit_price": "12.50"},
    {"title": "Travel and setup", "qty": 1, "unit_price": "95.00"},
]


class RecordingEmailSender(EmailSender):
    """Email collaborator that records sends instead of calling the provider."""

    def __init__(self):
        super().__init__(
            api_url="https://email.test/emails",
            api_key="test-key",
            sender="Concierge <hello@concierge.test>",
        )
        self.sent = []

    def send(self, to, subject, html, reply_to=None, event_key=None):
        if not to:
            return EmailResult(ok=False, skipped=True, error="No recipient")
        self.sent.append({"to": to, "subject": subject, "html": html, "event_key": event_key})
        return EmailResult(ok=True, message_id=f"msg-{len(self.sent)}")

    def keys(self):
        return [entry["event_key"] for entry in self.sent]

    def count(self, event_key):
        return self.keys().count(event_key)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def outbox():
    return RecordingEmailSender()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    enquiry_rate_limiter.reset()
    yield
    enquiry_rate_limiter.reset()


@pytest.fixture(scope="function")
def client(session_factory, outbox):
    """FastAPI TestClient with the database and email dependencies overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_email_sender] = lambda: outbox
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: build rows directly in the test database
# ---------------------------------------------------------------------------
def make_supplier(
    db,
    name: str = "Slice & Co Pizza",
    publishable: bool = True,
    credits: int = 0,
    **overrides,
) -> Supplier:
    """Helper — insert a supplier; ``publishable`` fills every publish-gate requirement."""
    fields = {
        "business_name": name,
        "public_email": f"{name.split()[0].lower()}@suppliers.test",
        "is_published": True,
        "is_verified": False,
        "credits_balance": credits,
        "listing_categories": ["Pizza Catering"],
        "location_label": "London",
        "base_city": "London",
        "base_postcode": "SW1A 1AA",
    }
    if publishable:
        fields.update({
            "short_description": "Wood-fired pizza for weddings and parties",
            "about": (
                "We bring a mobile wood-fired oven to your venue and serve fresh Neapolitan pizza "
                "for weddings, corporate days and festivals across the south east."
            ),
            "services": ["Pizza buffet", "Dessert pizzas", "Late night snacks"],
        })
    else:
        fields.update({"short_description": "Pizza", "about": "Short.", "services": []})
    fields.update(overrides)

    supplier = Supplier(**fields)
    db.add(supplier)
    db.flush()
    if publishable:
        db.add_all([
            SupplierImage(supplier_id=supplier.id, type=ImageType.hero, path="hero.jpg", sort_order=0),
            SupplierImage(supplier_id=supplier.id, type=ImageType.gallery, path="g1.jpg", sort_order=1),
            SupplierImage(supplier_id=supplier.id, type=ImageType.gallery, path="g2.jpg", sort_order=2),
        ])
    db.commit()
    db.refresh(supplier)
    return supplier


def make_enquiry(db, suppliers=(), email: str = "jane@example.com", **overrides) -> Enquiry:
    """Helper — insert a scored enquiry and invite the given suppliers."""
    customer = db.query(Customer).filter(Customer.email == email).first()
    if customer is None:
        customer = Customer(full_name="Jane Customer", email=email, preferred_contact_method="email")
        db.add(customer)
        db.flush()
    fields = {
        "customer_id": customer.id,
        "customer_name": customer.full_name,
        "customer_email": email,
        "category_slug": "pizza-catering",
        "category_label": "Pizza Catering",
        "guest_count": 150,
        "message": SAMPLE_MESSAGE,
        "quality_score": 90,
        "quality_flags": [],
        "structured_answers": {},
    }
    fields.update(overrides)
    enquiry = Enquiry(**fields)
    db.add(enquiry)
    db.flush()
    for supplier in suppliers:
        db.add(SupplierInvite(enquiry_id=enquiry.id, supplier_id=supplier.id, status=InviteStatus.invited))
    db.commit()
    db.refresh(enquiry)
    return enquiry


def make_draft_quote(db, supplier: Supplier, enquiry: Enquiry, items=None) -> Quote:
    """Helper — create a draft through the lifecycle service and save items on it."""
    quote, _ = quote_lifecycle.create_draft_quote(db, supplier.id, enquiry.id)
    items = DEFAULT_ITEMS if items is None else items
    if items:
        quote_lifecycle.save_draft_items(db, supplier.id, quote.id, [dict(item) for item in items])
    return quote_lifecycle.get_quote(db, quote.id)


def make_sent_quote(db, sender, credits: int = 3, email: str = "jane@example.com"):
    """Helper — supplier, enquiry and a sent quote. Returns ``(supplier, enquiry, quote, token)``."""
    supplier = make_supplier(db, credits=credits)
    enquiry = make_enquiry(db, [supplier], email=email)
    quote = make_draft_quote(db, supplier, enquiry)
    quote_lifecycle.send_quote(db, sender, supplier.id, quote.id)
    token = db.query(QuotePublicLink.token).filter(QuotePublicLink.quote_id == quote.id).scalar()
    db.expire_all()
    return supplier, enquiry, quote_lifecycle.get_quote(db, quote.id), token


def supplier_headers(supplier: Supplier) -> dict:
    return {"X-Supplier-Id": supplier.id}


def admin_headers(key: str = ADMIN_KEY) -> dict:
    return {"X-Admin-Key": key}
