"""Tests for the supplier publish gate and enquiry matching."""
from concierge.models.supplier import Supplier
from concierge.services.supplier_gate import compute_supplier_gate
from concierge.services.supplier_matcher import match_suppliers, pick_eligible_suppliers
from tests.conftest import make_supplier

GOOD_IMAGES = [{"type": "hero"}, {"type": "gallery"}, {"type": "gallery"}]


def _listing(**overrides) -> dict:
    listing = {
        "short_description": "Wood-fired pizza for weddings and parties",
        "about": "a" * 120,
        "listing_categories": ["Pizza Catering"],
        "location_label": "London",
        "services": ["Buffet", "Desserts", "Late snacks"],
    }
    listing.update(overrides)
    return listing


def _candidate(supplier_id: str, **overrides) -> Supplier:
    fields = _listing(id=supplier_id, base_city=None, base_postcode=None)
    fields.update(overrides)
    return Supplier(**fields)


class TestPublishGate:
    """compute_supplier_gate thresholds."""

    def test_complete_listing_can_publish(self):
        gate = compute_supplier_gate(_listing(), GOOD_IMAGES)
        assert gate["can_publish"] is True
        assert gate["reasons"] == []
        assert gate["counts"] == {
            "hero_count": 1, "gallery_count": 2, "services_count": 3, "categories_count": 1,
        }

    def test_each_failing_check_gives_a_reason(self):
        gate = compute_supplier_gate(
            _listing(short_description="x" * 29, about="y" * 119, listing_categories=[],
                     location_label="  ab ", services=["A", " ", "B"]),
            [{"type": "gallery"}],
        )
        assert gate["can_publish"] is False
        assert not any(gate["checks"].values())
        assert len(gate["reasons"]) == 7

    def test_blank_services_do_not_count(self):
        gate = compute_supplier_gate(_listing(services=["Buffet", "", "   ", "Desserts"]), GOOD_IMAGES)
        assert gate["checks"]["services"] is False
        assert gate["counts"]["services_count"] == 2

    def test_accepts_orm_rows(self):
        gate = compute_supplier_gate(_candidate("s1"), GOOD_IMAGES)
        assert gate["can_publish"] is True


class TestPickEligible:
    """Filtering keeps candidate order and respects the limit."""

    def test_filters_by_gate_category_and_location(self):
        good = _candidate("good", location_label="Central London")
        other_category = _candidate("cat", listing_categories=["Mobile Bar"])
        elsewhere = _candidate("far", location_label="Leeds")
        incomplete = _candidate("bad", about="short")
        images = {s: GOOD_IMAGES for s in ("good", "cat", "far", "bad")}

        result = pick_eligible_suppliers(
            [incomplete, other_category, elsewhere, good], images, "pizza-catering", "london", 10,
        )
        assert [s.id for s in result] == ["good"]

    def test_category_is_slug_normalized(self):
        supplier = _candidate("s", listing_categories=["Pizza  Catering!"])
        result = pick_eligible_suppliers([supplier], {"s": GOOD_IMAGES}, "Pizza Catering", None, 10)
        assert len(result) == 1

    def test_location_matches_city_or_postcode(self):
        by_city = _candidate("city", location_label="South East", base_city="Brighton")
        by_postcode = _candidate("pc", location_label="South East", base_postcode="BN1 1AA")
        images = {"city": GOOD_IMAGES, "pc": GOOD_IMAGES}
        assert [s.id for s in pick_eligible_suppliers([by_city, by_postcode], images, None, "BRIGHTON", 10)] == ["city"]
        assert [s.id for s in pick_eligible_suppliers([by_city, by_postcode], images, None, "bn1", 10)] == ["pc"]

    def test_limit_and_order(self):
        candidates = [_candidate(f"s{i}") for i in range(5)]
        images = {s.id: GOOD_IMAGES for s in candidates}
        result = pick_eligible_suppliers(candidates, images, None, None, 3)
        assert [s.id for s in result] == ["s0", "s1", "s2"]

    def test_missing_images_fail_gate(self):
        assert pick_eligible_suppliers([_candidate("s")], {}, None, None, 10) == []


class TestMatchSuppliers:
    """Database-backed matching."""

    def test_verified_suppliers_come_first(self, db):
        plain = make_supplier(db, name="Plain Pizza")
        verified = make_supplier(db, name="Verified Pizza", is_verified=True)
        result = match_suppliers(db, "pizza-catering", None)
        assert [s.id for s in result] == [verified.id, plain.id]

    def test_unpublished_suppliers_are_excluded(self, db):
        make_supplier(db, name="Hidden Pizza", is_published=False)
        assert match_suppliers(db, "pizza-catering", None) == []

    def test_directed_ignores_location(self, db):
        supplier = make_supplier(db, location_label="Manchester", base_city="Manchester", base_postcode="M1 1AA")
        result = match_suppliers(db, "pizza-catering", "London", supplier_id=supplier.id)
        assert [s.id for s in result] == [supplier.id]

    def test_directed_incomplete_supplier_not_matched(self, db):
        supplier = make_supplier(db, publishable=False)
        assert match_suppliers(db, None, None, supplier_id=supplier.id) == []
