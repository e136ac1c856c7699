"""Tests for the targeting matcher."""

from countdown.engine.targeting import clean_ids, matches
from countdown.models.timer import Targeting
from factories import collections, make_fixed, products


class TestMatches:
    def test_no_targeting_applies_everywhere(self):
        timer = make_fixed(targeting=None)
        assert matches(timer)
        assert matches(timer, "p1", ["c1"])

    def test_all_scope_applies_everywhere(self):
        assert matches(make_fixed(targeting=Targeting()), "p1")

    def test_product_scope_requires_listed_product(self):
        timer = make_fixed(targeting=products("p1", "p2"))
        assert matches(timer, "p2")
        assert not matches(timer, "p3")
        assert not matches(timer, None)

    def test_product_ids_match_exactly(self):
        timer = make_fixed(targeting=products("gid://shopify/Product/12"))
        assert not matches(timer, "gid://shopify/Product/1")
        assert matches(timer, " gid://shopify/Product/12 ")

    def test_product_scope_ignores_collections(self):
        timer = make_fixed(targeting=products("p1"))
        assert not matches(timer, None, ["p1"])

    def test_collection_scope_needs_any_overlap(self):
        timer = make_fixed(targeting=collections("c1", "c2"))
        assert matches(timer, None, ["c9", "c2"])
        assert not matches(timer, "c1", ["c3"])
        assert not matches(timer, None, [])
        assert not matches(timer, None, None)


class TestCleanIds:
    def test_trims_and_drops_blanks(self):
        assert clean_ids([" a ", "", "  ", "b", None]) == {"a", "b"}

    def test_empty_input(self):
        assert clean_ids(None) == set()
