"""Enquiry scorer — pure normalization, validation and quality scoring of a raw submission.

Nothing here touches the database. ``score_enquiry`` is deterministic for a
fixed ``today``.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

import pytz

from concierge.config import settings

logger = logging.getLogger(__name__)

EVENT_TYPES = {"wedding", "corporate", "birthday", "festival", "school", "other"}
CONTACT_PREFERENCES = {"email", "phone", "whatsapp"}
URGENCY_VALUES = {"flexible", "soon", "urgent"}
INDOOR_OUTDOOR_VALUES = {"indoor", "outdoor", "mixed", "unknown"}
HIGH_REQUIREMENT_EVENT_TYPES = {"wedding", "corporate", "festival"}

MIN_MESSAGE_LENGTH = 80
DETAILED_MESSAGE_LENGTH = 120
URGENT_WITHIN_DAYS = 14
MAX_HINTS = 6

_TRUE_VALUES = {"true", "1", "yes", "y", "on"}
_FALSE_VALUES = {"false", "0", "no", "n", "off"}

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")
_REPEATED_RE = re.compile(r"(.)\1{11,}", re.IGNORECASE)
_EMAIL_LIKE_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_PHONE_LIKE_RE = re.compile(r"\+?[0-9][0-9\s().-]{6,}")


@dataclass
class EnquiryInput:
    """A normalized enquiry submission."""

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    event_type: Optional[str] = None
    category_slug: Optional[str] = None
    event_date: Optional[str] = None
    start_time: Optional[str] = None
    guest_count: Optional[int] = None
    budget_range: Optional[str] = None
    venue_known: bool = False
    venue_name: Optional[str] = None
    venue_postcode: Optional[str] = None
    indoor_outdoor: Optional[str] = None
    power_available: Optional[bool] = None
    dietary_requirements: Optional[str] = None
    contact_preference: Optional[str] = None
    urgency: Optional[str] = None
    message: Optional[str] = None
    structured_answers: dict[str, Any] = field(default_factory=dict)
    source_page: Optional[str] = None
    supplier_id: Optional[str] = None


@dataclass
class ScoreResult:
    ok: bool
    errors: list[str]
    hints: list[str]
    flags: list[str]
    score: int
    normalized_urgency: Optional[str]


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------
def sanitize_text(value: Any, max_length: int = 4000) -> Optional[str]:
    """Trim to ``max_length``; blank values become ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text[:max_length]


def normalize_slug(value: Any) -> str:
    """Lowercase, collapse non-alphanumerics to ``-`` and trim leading/trailing dashes."""
    text = str(value or "").strip().lower()
    return re.sub(r"[^a-z0-9]+", "-", text).strip("-")


def category_label_from_slug(slug: Any) -> Optional[str]:
    normalized = normalize_slug(slug)
    if not normalized:
        return None
    return " ".join(part[:1].upper() + part[1:] for part in normalized.split("-"))


def normalize_postcode(value: Any) -> Optional[str]:
    raw = sanitize_text(value, 24)
    if not raw:
        return None
    return re.sub(r"\s+", " ", raw.upper()).strip()


def to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value if value is not None else "").strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def parse_guest_count(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if n != n or n in (float("inf"), float("-inf")) or n < 1:
        return None
    return int(n)


def _first(body: dict[str, Any], *keys: str) -> Any:
    """Return the first truthy value among ``keys`` (snake_case first, then legacy aliases)."""
    for key in keys:
        value = body.get(key)
        if value not in (None, ""):
            return value
    return None


def _first_present(body: dict[str, Any], *keys: str) -> Any:
    """Like ``_first`` but keeps explicit falsy values such as ``False`` or ``0``."""
    for key in keys:
        if key in body and body[key] is not None:
            return body[key]
    return None


def _lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if value else None


def _parse_structured_answers(raw: Any) -> dict[str, Any]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw or "{}")
        except ValueError:
            return {}
    if not isinstance(raw, dict):
        return {}
    return dict(raw)


def normalize_enquiry_input(body: dict[str, Any], referer: Optional[str] = None) -> EnquiryInput:
    """Build an ``EnquiryInput`` from a raw request body.

    Accepts the snake_case field names and the older camelCase aliases the
    public forms still send.
    """
    body = body or {}

    structured = _parse_structured_answers(
        _first_present(body, "structured_answers", "structuredAnswers") or {}
    )
    if "serving_time_window" not in structured:
        serving = sanitize_text(_first(body, "serving_time_window", "servingTimeWindow"), 120)
        if serving:
            structured["serving_time_window"] = serving
    if "access_notes" not in structured:
        access = sanitize_text(_first(body, "access_notes", "accessNotes"), 400)
        if access:
            structured["access_notes"] = access

    return EnquiryInput(
        full_name=sanitize_text(_first(body, "full_name", "customerName"), 120),
        email=_lower(sanitize_text(_first(body, "email", "customerEmail"), 160)),
        phone=sanitize_text(_first(body, "phone", "customerPhone"), 50),
        event_type=_lower(sanitize_text(body.get("event_type"), 40)),
        category_slug=normalize_slug(
            _first(body, "enquiry_category_slug", "categorySlug", "categoryId", "categoryLabel")
        ) or None,
        event_date=sanitize_text(_first(body, "event_date", "eventDate"), 20),
        start_time=sanitize_text(_first(body, "start_time", "eventTime"), 20),
        guest_count=parse_guest_count(_first_present(body, "guest_count", "guestCount")),
        budget_range=sanitize_text(_first(body, "budget_range", "budgetRange"), 40),
        venue_known=bool(to_bool(_first_present(body, "venue_known", "venueKnown"))),
        venue_name=sanitize_text(_first(body, "venue_name", "venueName", "locationLabel"), 160),
        venue_postcode=normalize_postcode(_first(body, "venue_postcode", "postcode", "venuePostcode")),
        indoor_outdoor=_lower(sanitize_text(_first(body, "indoor_outdoor", "indoorOutdoor"), 24)),
        power_available=to_bool(_first_present(body, "power_available", "powerAvailable")),
        dietary_requirements=sanitize_text(_first(body, "dietary_requirements", "dietarySummary"), 1000),
        contact_preference=_lower(sanitize_text(_first(body, "contact_preference", "contactPreference"), 20)),
        urgency=_lower(sanitize_text(body.get("urgency"), 20)),
        message=sanitize_text(_first(body, "message", "notes"), 4000),
        structured_answers=structured,
        source_page=sanitize_text(_first(body, "source_page", "sourcePage") or referer, 300),
        supplier_id=sanitize_text(_first(body, "supplier_id", "supplierId"), 64),
    )


# ---------------------------------------------------------------------------
# Message heuristics
# ---------------------------------------------------------------------------
def looks_like_repeated_chars(text: Optional[str]) -> bool:
    return bool(_REPEATED_RE.search(text or ""))


def looks_like_contact_only(text: Optional[str]) -> bool:
    """A short message that is mostly an email address or phone number."""
    value = (text or "").strip()
    if not value:
        return False
    letters = len(re.sub(r"[^a-z]", "", value, flags=re.IGNORECASE))
    digits = len(re.sub(r"[^0-9]", "", value))
    email_like = bool(_EMAIL_LIKE_RE.search(value))
    phone_like = bool(_PHONE_LIKE_RE.search(value))
    return letters < 20 and (email_like or phone_like or digits > 9)


def business_today() -> date:
    """Current calendar date in the configured business timezone."""
    tz = pytz.timezone(settings.BUSINESS_TIMEZONE)
    return datetime.now(tz).date()


def parse_event_date(date_text: Optional[str]) -> Optional[date]:
    """``YYYY-MM-DD`` to a date; anything else, including impossible dates, is ``None``."""
    if not date_text or not _DATE_RE.match(date_text):
        return None
    try:
        return datetime.strptime(date_text, "%Y-%m-%d").date()
    except ValueError:
        return None


def days_until(date_text: Optional[str], today: date) -> Optional[int]:
    target = parse_event_date(date_text)
    if target is None:
        return None
    return (target - today).days


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
def score_enquiry(data: EnquiryInput, today: Optional[date] = None) -> ScoreResult:
    """Validate and score an enquiry.

    Every rule runs independently and errors accumulate; the submission is
    rejected when any error is present. Advisory rules only add flags and
    hints. The score starts at 100 and loses points per missing detail,
    clamped to ``[0, 100]``.
    """
    if today is None:
        today = business_today()

    flags: list[str] = []
    errors: list[str] = []
    hints: list[str] = []

    if not data.full_name:
        errors.append("Full name is required.")
    if not data.email:
        errors.append("Email is required.")

    if data.event_type and data.event_type not in EVENT_TYPES:
        errors.append("event_type is invalid.")
    if data.event_date and parse_event_date(data.event_date) is None:
        errors.append("event_date is invalid.")
    if data.start_time and not _TIME_RE.match(data.start_time):
        errors.append("start_time is invalid.")
    if data.contact_preference and data.contact_preference not in CONTACT_PREFERENCES:
        errors.append("contact_preference is invalid.")
    if data.urgency and data.urgency not in URGENCY_VALUES:
        errors.append("urgency is invalid.")
    if data.indoor_outdoor and data.indoor_outdoor not in INDOOR_OUTDOOR_VALUES:
        errors.append("indoor_outdoor is invalid.")

    message_length = len((data.message or "").strip())
    if message_length < MIN_MESSAGE_LENGTH:
        flags.append("too_short")
        errors.append(f"Message must be at least {MIN_MESSAGE_LENGTH} characters.")
        hints.append("Add more detail about guest numbers, venue, timings, and what service you need.")

    has_core_detail = any([
        data.guest_count, data.event_date, data.venue_name, data.venue_postcode, data.budget_range,
    ])
    if not has_core_detail:
        flags.append("low_detail")
        errors.append("Add at least one core detail: guest count, event date, venue info, or budget range.")
        hints.append("Include at least one of guest count, event date, venue name/postcode, or budget.")

    repeated = looks_like_repeated_chars(data.message)
    if repeated:
        flags.append("repeated_chars")
        errors.append("Message looks invalid. Please remove repeated characters.")

    contact_only = looks_like_contact_only(data.message)
    if contact_only:
        flags.append("contact_only")
        errors.append("Message cannot be contact details only.")
        hints.append("Explain your event needs, not just contact information.")

    has_venue = bool(data.venue_name or data.venue_postcode)
    if data.venue_known and not has_venue:
        flags.append("missing_venue")
        errors.append("When venue is known, provide venue name or venue postcode.")
        hints.append("Add venue name or postcode.")

    if data.event_type in HIGH_REQUIREMENT_EVENT_TYPES and not data.guest_count:
        flags.append("missing_guest_count")
        errors.append("Guest count is required for this event type.")
        hints.append("Add an estimated guest count.")

    # Advisory only
    if not data.event_date:
        flags.append("missing_date")
        hints.append("Add an event date if known.")
    if not data.guest_count:
        flags.append("missing_guest_count")
        hints.append("Add expected guest count.")
    if not has_venue:
        flags.append("missing_venue")
        hints.append("Add venue name or postcode.")
    if not data.budget_range:
        flags.append("missing_budget")
        hints.append("Add a budget range so suppliers can tailor quotes.")

    if data.category_slug == "pizza-catering" and data.power_available is None:
        hints.append("For pizza catering, mention whether power is available at the venue.")

    normalized_urgency = data.urgency or None
    days = days_until(data.event_date, today)
    if not normalized_urgency and days is not None and 0 <= days <= URGENT_WITHIN_DAYS:
        normalized_urgency = "urgent"

    answers = data.structured_answers or {}
    score = 100
    if message_length < DETAILED_MESSAGE_LENGTH:
        score -= 10
    if not data.guest_count:
        score -= 12
    if not data.event_date:
        score -= 12
    if not has_venue:
        score -= 12
    if not data.budget_range:
        score -= 8
    if not data.dietary_requirements:
        score -= 4
    if repeated:
        score -= 35
    if contact_only:
        score -= 45
    if not answers.get("serving_time_window"):
        score -= 7
    if not answers.get("access_notes"):
        score -= 6
    score = max(0, min(100, score))

    result = ScoreResult(
        ok=not errors,
        errors=errors,
        hints=_dedupe(hints)[:MAX_HINTS],
        flags=_dedupe(flags),
        score=score,
        normalized_urgency=normalized_urgency,
    )
    if not result.ok:
        logger.info("Enquiry rejected by scorer: flags=%s", result.flags)
    return result
