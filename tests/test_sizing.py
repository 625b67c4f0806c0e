"""Tests for byte estimation."""

from quota_cache.sizing import estimate_bytes, item_bytes


class TestEstimateBytes:
    def test_two_bytes_per_character(self):
        # {"a":1,"b":2,"c":3} is 19 characters
        assert estimate_bytes({"a": 1, "b": 2, "c": 3}) == 38

    def test_empty_and_missing_maps(self):
        assert estimate_bytes({}) == 4
        assert estimate_bytes(None) == 4

    def test_independent_of_insertion_order(self):
        assert estimate_bytes({"a": 1, "b": [1, 2]}) == estimate_bytes({"b": [1, 2], "a": 1})

    def test_counts_utf16_code_units(self):
        assert estimate_bytes({"k": "é"}) == 18
        # astral characters take a surrogate pair
        assert estimate_bytes({"k": "\U0001F600"}) == 20

    def test_unserializable_returns_zero(self):
        assert estimate_bytes({"a": object()}) == 0
        assert estimate_bytes({"a": {1, 2}}) == 0

    def test_mixed_key_types_return_zero(self):
        assert estimate_bytes({1: "x", "a": "y"}) == 0

    def test_circular_reference_returns_zero(self):
        loop = {}
        loop["self"] = loop
        assert estimate_bytes(loop) == 0


class TestItemBytes:
    def test_key_plus_json_value(self):
        assert item_bytes("x", "abc") == 6

    def test_unserializable_value_counts_key_only(self):
        assert item_bytes("key", object()) == 3
