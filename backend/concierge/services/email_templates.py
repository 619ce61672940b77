"""Minimal HTML email bodies for marketplace notifications."""
from html import escape
from typing import Optional


def _wrap(title: str, intro: str, cta_label: str, cta_url: Optional[str], lines: Optional[list] = None) -> str:
    items = "".join(f"<li>{escape(line)}</li>" for line in (lines or []) if line)
    cta = f'<p><a href="{escape(cta_url, quote=True)}">{escape(cta_label)}</a></p>' if cta_url else ""
    return (
        "<div style=\"font-family:Arial,sans-serif;color:#0f172a;\">"
        f"<h1 style=\"font-size:20px;\">{escape(title)}</h1>"
        f"<p>{escape(intro)}</p>"
        f"{f'<ul>{items}</ul>' if items else ''}"
        f"{cta}"
        "<p style=\"font-size:12px;color:#64748b;\">This is an automated notification.</p>"
        "</div>"
    )


def enquiry_invite_email(supplier_name: Optional[str], enquiry_url: str, summary: Optional[str]) -> dict:
    return {
        "subject": "New enquiry matches your listing",
        "html": _wrap(
            "New enquiry",
            f"Hi {supplier_name or 'there'}, a new customer request matches your listing.",
            "View enquiry",
            enquiry_url,
            [summary],
        ),
    }


def quote_sent_email(supplier_name: Optional[str], quote_id: str, supplier_url: str) -> dict:
    return {
        "subject": "Quote sent successfully",
        "html": _wrap(
            "Your quote is now live",
            f"Hi {supplier_name or 'there'}, your quote has been sent to the customer.",
            "Open quote",
            supplier_url,
            [f"Quote: {quote_id}"],
        ),
    }


def quote_outcome_email_to_supplier(
    outcome: str,
    supplier_name: Optional[str],
    quote_id: str,
    customer_name: Optional[str],
    customer_email: Optional[str],
    supplier_url: str,
) -> dict:
    subject = (
        "Great news: your quote was accepted" if outcome == "accepted" else "Update: your quote was declined"
    )
    return {
        "subject": subject,
        "html": _wrap(
            f"Quote {outcome}",
            f"Hi {supplier_name or 'there'}, the customer {outcome} your quote.",
            "View quote",
            supplier_url,
            [
                f"Quote: {quote_id}",
                f"Customer: {customer_name}" if customer_name else None,
                f"Customer email: {customer_email}" if customer_email else None,
            ],
        ),
    }


def quote_outcome_email_to_customer(outcome: str, customer_name: Optional[str], quote_id: str, public_url: Optional[str]) -> dict:
    return {
        "subject": f"Your quote has been {outcome}",
        "html": _wrap(
            f"Quote {outcome}",
            f"Hi {customer_name or 'there'}, thanks for letting us know. The supplier has been notified.",
            "View quote",
            public_url,
            [f"Quote ID: {quote_id}"],
        ),
    }


def message_to_supplier_email(supplier_name: Optional[str], preview: str, thread_url: str) -> dict:
    return {
        "subject": "New customer message",
        "html": _wrap(
            "You have a new message",
            f"Hi {supplier_name or 'there'}, a customer sent a new message.",
            "Open conversation",
            thread_url,
            [f"Message preview: {preview}" if preview else None],
        ),
    }


def message_to_customer_email(preview: str, public_url: Optional[str]) -> dict:
    return {
        "subject": "New message from your supplier",
        "html": _wrap(
            "You have a new message",
            "Your supplier replied about your quote.",
            "Open quote",
            public_url,
            [f"Message preview: {preview}" if preview else None],
        ),
    }


def deposit_paid_email_to_supplier(supplier_name: Optional[str], quote_id: str, amount: str, supplier_url: str) -> dict:
    return {
        "subject": "Deposit received",
        "html": _wrap(
            "Deposit paid",
            f"Hi {supplier_name or 'there'}, the customer has paid the deposit for your quote.",
            "View quote",
            supplier_url,
            [f"Quote: {quote_id}", f"Amount: {amount}"],
        ),
    }
