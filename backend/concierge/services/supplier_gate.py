"""Supplier publish gate — decides whether a listing is complete enough to be shown or matched."""
from typing import Any, Iterable

from concierge.models.supplier import ImageType

MIN_SHORT_DESCRIPTION = 30
MIN_ABOUT = 120
MIN_CATEGORIES = 1
MIN_LOCATION_LABEL = 3
MIN_HERO_IMAGES = 1
MIN_GALLERY_IMAGES = 2
MIN_SERVICES = 3


def _trim(value: Any) -> str:
    return str(value or "").strip()


def _image_type(image: Any) -> str:
    raw = image.get("type") if isinstance(image, dict) else getattr(image, "type", None)
    return raw.value if isinstance(raw, ImageType) else str(raw or "")


def _field(supplier: Any, name: str) -> Any:
    if isinstance(supplier, dict):
        return supplier.get(name)
    return getattr(supplier, name, None)


def compute_supplier_gate(supplier: Any, images: Iterable[Any]) -> dict[str, Any]:
    """Evaluate listing completeness for a supplier row (ORM object or dict) and its images."""
    images = list(images or [])
    short_description = _trim(_field(supplier, "short_description"))
    about = _trim(_field(supplier, "about"))
    categories = _field(supplier, "listing_categories")
    categories = categories if isinstance(categories, list) else []
    location_label = _trim(_field(supplier, "location_label"))
    services = _field(supplier, "services")
    services = [s for s in (_trim(x) for x in services) if s] if isinstance(services, list) else []

    hero_count = sum(1 for img in images if _image_type(img) == ImageType.hero.value)
    gallery_count = sum(1 for img in images if _image_type(img) == ImageType.gallery.value)

    checks = {
        "short_description": len(short_description) >= MIN_SHORT_DESCRIPTION,
        "about": len(about) >= MIN_ABOUT,
        "categories": len(categories) >= MIN_CATEGORIES,
        "location_label": len(location_label) >= MIN_LOCATION_LABEL,
        "hero_image": hero_count >= MIN_HERO_IMAGES,
        "gallery_images": gallery_count >= MIN_GALLERY_IMAGES,
        "services": len(services) >= MIN_SERVICES,
    }

    reasons = []
    if not checks["short_description"]:
        reasons.append(f"Short description must be at least {MIN_SHORT_DESCRIPTION} characters.")
    if not checks["about"]:
        reasons.append(f"About section must be at least {MIN_ABOUT} characters.")
    if not checks["categories"]:
        reasons.append("Select at least one category.")
    if not checks["location_label"]:
        reasons.append(f"Location label must be at least {MIN_LOCATION_LABEL} characters.")
    if not checks["hero_image"]:
        reasons.append("Upload a hero image.")
    if not checks["gallery_images"]:
        reasons.append(f"Upload at least {MIN_GALLERY_IMAGES} gallery images.")
    if not checks["services"]:
        reasons.append(f"Add at least {MIN_SERVICES} services.")

    return {
        "can_publish": not reasons,
        "checks": checks,
        "reasons": reasons,
        "counts": {
            "hero_count": hero_count,
            "gallery_count": gallery_count,
            "services_count": len(services),
            "categories_count": len(categories),
        },
    }
