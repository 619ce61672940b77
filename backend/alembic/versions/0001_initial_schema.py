"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the supplier concierge:
suppliers, supplier_images, customers, enquiries, enquiry_suppliers,
quotes, quote_items, quote_public_links, quote_events, credit_transactions,
event_ledger, supplier_notifications, message_threads, messages,
payments, credit_bundle_orders.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

image_type = sa.Enum("hero", "gallery", name="imagetype")
enquiry_status = sa.Enum("new", "quoted", "accepted", "declined", "closed", name="enquirystatus")
invite_status = sa.Enum("invited", "viewed", "responded", "quoted", "accepted", "declined", name="invitestatus")
quote_status = sa.Enum("draft", "sent", "accepted", "declined", "closed", name="quotestatus")
quote_event_type = sa.Enum(
    "sent", "send_rolled_back", "accepted", "declined", "closed", "reopened", name="quoteeventtype"
)
sender_type = sa.Enum("customer", "supplier", name="sendertype")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # --- suppliers ---
    op.create_table(
        "suppliers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("business_name", sa.String(160), nullable=False),
        sa.Column("public_email", sa.String(160), nullable=True),
        sa.Column("short_description", sa.String(300), nullable=True),
        sa.Column("about", sa.Text, nullable=True),
        sa.Column("listing_categories", sa.JSON, nullable=False),
        sa.Column("services", sa.JSON, nullable=False),
        sa.Column("location_label", sa.String(160), nullable=True),
        sa.Column("base_city", sa.String(120), nullable=True),
        sa.Column("base_postcode", sa.String(24), nullable=True),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("credits_balance", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("credits_balance >= 0", name="ck_suppliers_credits_non_negative"),
    )

    # --- supplier_images ---
    op.create_table(
        "supplier_images",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False, index=True),
        sa.Column("type", image_type, nullable=False),
        sa.Column("path", sa.String(500), nullable=False),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- customers ---
    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("full_name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(160), nullable=False, unique=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("preferred_contact_method", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- enquiries ---
    op.create_table(
        "enquiries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("public_token", sa.String(36), nullable=False, unique=True),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False, index=True),
        sa.Column("status", enquiry_status, nullable=False, server_default="new"),
        sa.Column("customer_name", sa.String(120), nullable=False),
        sa.Column("customer_email", sa.String(160), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("contact_preference", sa.String(20), nullable=True),
        sa.Column("event_type", sa.String(40), nullable=True),
        sa.Column("category_slug", sa.String(120), nullable=True),
        sa.Column("category_label", sa.String(160), nullable=True),
        sa.Column("event_date", sa.Date, nullable=True),
        sa.Column("start_time", sa.String(8), nullable=True),
        sa.Column("guest_count", sa.Integer, nullable=True),
        sa.Column("budget_range", sa.String(40), nullable=True),
        sa.Column("venue_known", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("venue_name", sa.String(160), nullable=True),
        sa.Column("venue_postcode", sa.String(24), nullable=True),
        sa.Column("location_label", sa.String(160), nullable=True),
        sa.Column("indoor_outdoor", sa.String(24), nullable=True),
        sa.Column("power_available", sa.Boolean, nullable=True),
        sa.Column("dietary_requirements", sa.Text, nullable=True),
        sa.Column("urgency", sa.String(20), nullable=True),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("structured_answers", sa.JSON, nullable=False),
        sa.Column("quality_score", sa.Integer, nullable=False),
        sa.Column("quality_flags", sa.JSON, nullable=False),
        sa.Column("source_page", sa.String(300), nullable=True),
        sa.Column("created_ip_hash", sa.String(64), nullable=True),
        sa.Column("match_source", sa.String(20), nullable=False, server_default="concierge"),
        *_timestamps(),
    )

    # --- enquiry_suppliers (invites) ---
    op.create_table(
        "enquiry_suppliers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("enquiry_id", sa.String(36), sa.ForeignKey("enquiries.id"), nullable=False, index=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False, index=True),
        sa.Column("status", invite_status, nullable=False, server_default="invited"),
        sa.Column("match_source", sa.String(20), nullable=False, server_default="concierge"),
        sa.Column("invited_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quoted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("declined_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("enquiry_id", "supplier_id", name="uq_enquiry_suppliers_pair"),
    )

    # --- quotes ---
    op.create_table(
        "quotes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("enquiry_id", sa.String(36), sa.ForeignKey("enquiries.id"), nullable=False, index=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False, index=True),
        sa.Column("status", quote_status, nullable=False, server_default="draft"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency_code", sa.String(3), nullable=False, server_default="GBP"),
        sa.Column("quote_text", sa.Text, nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("declined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_reason", sa.String(500), nullable=True),
        sa.Column("customer_action_name", sa.String(120), nullable=True),
        sa.Column("customer_action_email", sa.String(160), nullable=True),
        sa.Column("customer_action_note", sa.Text, nullable=True),
        sa.Column("customer_message", sa.Text, nullable=True),
        sa.Column("deposit_status", sa.String(20), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("enquiry_id", "supplier_id", name="uq_quotes_enquiry_supplier"),
    )

    # --- quote_items ---
    op.create_table(
        "quote_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("qty", sa.Numeric(10, 2), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- quote_public_links ---
    op.create_table(
        "quote_public_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False, unique=True),
        sa.Column("token", sa.String(36), nullable=False, unique=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- quote_events ---
    op.create_table(
        "quote_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False, index=True),
        sa.Column("event_type", quote_event_type, nullable=False),
        sa.Column("actor_type", sa.String(20), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("meta", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- credit_transactions ---
    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False, index=True),
        sa.Column("delta", sa.Integer, nullable=False),
        sa.Column("balance_after", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(60), nullable=False),
        sa.Column("note", sa.String(300), nullable=True),
        sa.Column("related_quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- event_ledger ---
    op.create_table(
        "event_ledger",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_key", sa.String(255), nullable=False, unique=True),
        sa.Column("meta", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- supplier_notifications ---
    op.create_table(
        "supplier_notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False, index=True),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("title", sa.String(160), nullable=False),
        sa.Column("body", sa.String(500), nullable=True),
        sa.Column("url", sa.String(300), nullable=True),
        sa.Column("entity_type", sa.String(30), nullable=True),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- message_threads ---
    op.create_table(
        "message_threads",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False, unique=True),
        sa.Column("enquiry_id", sa.String(36), sa.ForeignKey("enquiries.id"), nullable=False),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False, index=True),
        *_timestamps(),
    )

    # --- messages ---
    op.create_table(
        "messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("thread_id", sa.String(36), sa.ForeignKey("message_threads.id"), nullable=False, index=True),
        sa.Column("sender_type", sender_type, nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("client_message_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("thread_id", "client_message_id", name="uq_messages_client_id"),
    )

    # --- payments ---
    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False, index=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("amount_total", sa.Integer, nullable=False, server_default="0"),
        sa.Column("amount_paid", sa.Integer, nullable=False, server_default="0"),
        sa.Column("checkout_session_id", sa.String(255), nullable=True, unique=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True, unique=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # --- credit_bundle_orders ---
    op.create_table(
        "credit_bundle_orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.id"), nullable=False, index=True),
        sa.Column("bundle_code", sa.String(40), nullable=False),
        sa.Column("credits", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("checkout_session_id", sa.String(255), nullable=True, unique=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True, unique=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("credit_bundle_orders")
    op.drop_table("payments")
    op.drop_table("messages")
    op.drop_table("message_threads")
    op.drop_table("supplier_notifications")
    op.drop_table("event_ledger")
    op.drop_table("credit_transactions")
    op.drop_table("quote_events")
    op.drop_table("quote_public_links")
    op.drop_table("quote_items")
    op.drop_table("quotes")
    op.drop_table("enquiry_suppliers")
    op.drop_table("enquiries")
    op.drop_table("customers")
    op.drop_table("supplier_images")
    op.drop_table("suppliers")
    bind = op.get_bind()
    for enum_type in (sender_type, quote_event_type, quote_status, invite_status, enquiry_status, image_type):
        enum_type.drop(bind, checkfirst=True)
