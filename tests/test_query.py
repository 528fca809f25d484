import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from core.errors import ParseError
from core.query import ALL, parse_query


class TestParseQuery:
    def test_include_exclude_and_prices(self):
        parsed = parse_query("foo+bar:baz?min=10&max=20", "chat1")

        assert parsed.chat == "chat1"
        assert parsed.id == "chat1/foo+bar:baz?min=10&max=20"
        assert parsed.spec.include_terms == {"foo", "bar"}
        assert parsed.spec.exclude_terms == {"baz"}
        assert parsed.spec.min_price == 10
        assert parsed.spec.max_price == 20
        assert parsed.spec.area_code is None
        assert parsed.spec.keywords == "foo+bar"

    def test_chat_prefix_overrides_default(self):
        parsed = parse_query(" @Deals /phone", "chat1")
        assert parsed.chat == "@deals"
        assert parsed.id == "@deals/phone"

    def test_normalizes_case_and_spaces(self):
        parsed = parse_query("chat1/  Nintendo Switch  ", "")
        assert parsed.query == "nintendo+switch"
        assert parsed.spec.include_terms == {"nintendo", "switch"}

    def test_ampersand_joins_phrase(self):
        parsed = parse_query("iphone&13+case:broken&screen", "chat1")
        assert parsed.spec.include_terms == {"iphone 13", "case"}
        assert parsed.spec.exclude_terms == {"broken screen"}
        assert parsed.spec.keywords == "iphone+13+case"

    def test_geo_parameters(self):
        parsed = parse_query("bike?code=28001&km=5", "chat1")
        assert parsed.spec.area_code == 28001
        assert parsed.spec.radius_km == 5

    def test_empty_parameter_values_are_unset(self):
        parsed = parse_query("bike?min=&max=300&sort=x", "chat1")
        assert parsed.spec.min_price is None
        assert parsed.spec.max_price == 300

    def test_empty_keywords_are_legal(self):
        parsed = parse_query(":broken?max=50", "chat1")
        assert parsed.spec.keywords == ""
        assert parsed.spec.include_terms == frozenset()
        assert parsed.spec.exclude_terms == {"broken"}

    def test_reparsing_id_is_stable(self):
        parsed = parse_query("Foo Bar:baz?min=1", "Chat1")
        assert parse_query(parsed.id).id == parsed.id

    def test_stop_all_marker(self):
        assert parse_query("*", "chat1").query == ALL

    @pytest.mark.parametrize(
        "raw",
        [
            "foo?min=ten",
            "foo?max=1.5",
            "foo?code=28001&km=far",
            "foo?min=%zz",
            "foo?min=1;max=2",
            "foo?min=%ff",
        ],
    )
    def test_malformed_parameters(self, raw):
        with pytest.raises(ParseError):
            parse_query(raw, "chat1")
