import pytest
from normalizer import normalize_code, normalize_input, parse_credits, round_credits


class TestNormalizeCode:
    def test_canonical(self):
        assert normalize_code("CS101") == "CS101"

    def test_lowercase_with_space(self):
        assert normalize_code("cs 101") == "CS101"

    def test_hyphen(self):
        assert normalize_code("CS-101") == "CS101"

    def test_surrounding_whitespace(self):
        assert normalize_code("  ece 264 ") == "ECE264"

    def test_decimal_suffix_keeps_digits(self):
        assert normalize_code("CS 111.5") == "CS1115"

    def test_none(self):
        assert normalize_code(None) == ""

    def test_only_punctuation(self):
        assert normalize_code("--- !") == ""

    def test_non_string(self):
        assert normalize_code(101) == "101"


class TestParseCredits:
    @pytest.mark.parametrize("raw, expected", [
        ("3", 3.0),
        ("3.0", 3.0),
        ("2 credits", 2.0),
        ("1.5 cr.", 1.5),
        (4, 4.0),
        (2.5, 2.5),
    ])
    def test_numeric_values(self, raw, expected):
        assert parse_credits(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "TBA", "n/a", float("nan"), True])
    def test_unparsable_is_zero(self, raw):
        assert parse_credits(raw) == 0.0


class TestRoundCredits:
    def test_two_decimals(self):
        assert round_credits(0.1 + 0.2) == 0.3

    def test_no_negative_zero(self):
        assert str(round_credits(-0.0001)) == "0.0"


class TestNormalizeInput:
    CATALOG = {"CS101", "MA111", "PH112"}

    def test_comma_separated(self):
        result = normalize_input("CS 101, MA 111", self.CATALOG)
        assert result["valid"] == ["CS101", "MA111"]
        assert result["invalid"] == []
        assert result["not_in_catalog"] == []

    def test_newline_and_semicolon(self):
        result = normalize_input("cs-101\nMA111; ph 112", self.CATALOG)
        assert result["valid"] == ["CS101", "MA111", "PH112"]

    def test_unknown_course(self):
        result = normalize_input("CS 999", self.CATALOG)
        assert result["not_in_catalog"] == ["CS999"]

    def test_garbage_is_invalid(self):
        result = normalize_input("!!!, CS 101", self.CATALOG)
        assert result["invalid"] == ["!!!"]
        assert result["valid"] == ["CS101"]

    def test_duplicates_collapse(self):
        result = normalize_input("CS 101, cs101, CS-101", self.CATALOG)
        assert result["valid"] == ["CS101"]

    def test_empty(self):
        assert normalize_input("   ", self.CATALOG) == {"valid": [], "invalid": [], "not_in_catalog": []}
