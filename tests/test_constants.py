import pytest

from app.provledger.constants import PRODUCT_STATUSES, lookup_status


class TestLookupStatus:
    @pytest.mark.parametrize("value,expected", [
        ("Created", "Created"),
        ("intransit", "InTransit"),
        (" DELIVERED ", "Delivered"),
        (3, "Verified"),
        ("4", "Recalled"),
    ])
    def test_valid(self, value, expected):
        assert lookup_status(value) == expected

    @pytest.mark.parametrize("value", ["", "Shipped", 5, -1, "-1", None, False, 1.0, "\u00b2", "\u0663"])
    def test_invalid(self, value):
        assert lookup_status(value) is None

    def test_ordinals_follow_declaration_order(self):
        assert [lookup_status(i) for i in range(len(PRODUCT_STATUSES))] == list(PRODUCT_STATUSES)
