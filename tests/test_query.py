import pytest

from metrics_backend.core.errors import ValidationError
from metrics_backend.core.query import (
    DEFAULT_SORT,
    normalize_query,
    parse_query_string,
    projection_exclusions,
)


class TestParseQueryString:
    def test_nested_brackets(self):
        parsed = parse_query_string("storeLocation=Calgary&sort[createdAt]=1&$or[0][name]=Mouse")
        assert parsed == {
            "storeLocation": "Calgary",
            "sort": {"createdAt": "1"},
            "$or": {"0": {"name": "Mouse"}},
        }

    def test_repeated_and_empty_bracket_keys_collect(self):
        assert parse_query_string("roles=Admin&roles=Manager") == {"roles": ["Admin", "Manager"]}
        assert parse_query_string("projection[]=a&projection[]=b") == {"projection": ["a", "b"]}

    def test_conflicting_keys_rejected(self):
        with pytest.raises(ValidationError):
            parse_query_string("a=1&a[b]=2")


class TestNormalizeQuery:
    def test_absent_query_uses_defaults(self):
        query = normalize_query(None)
        assert query.filter == {}
        assert query.projection == ""
        assert query.limit == 10
        assert query.skip == 0
        assert query.sort == DEFAULT_SORT

    def test_missing_sort_defaults_to_created_at_then_id(self):
        query = normalize_query({"storeLocation": "Calgary"})
        assert query.sort == {"createdAt": -1, "_id": -1}

    @pytest.mark.parametrize("direction", ["1", "-1"])
    def test_single_sort_field_gets_id_tiebreak(self, direction):
        query = normalize_query({"sort": {"username": direction}})
        assert query.sort == {"username": int(direction), "_id": -1}

    def test_sort_on_id_alone_is_kept(self):
        assert normalize_query({"sort": {"_id": "1"}}).sort == {"_id": 1}

    def test_invalid_sort_direction(self):
        with pytest.raises(ValidationError):
            normalize_query({"sort": {"username": "2"}})

    @pytest.mark.parametrize("page,limit", [("1", "10"), ("3", "10"), ("2", "25"), ("7", "1")])
    def test_skip_follows_page_and_limit(self, page, limit):
        query = normalize_query({"page": page, "limit": limit})
        assert query.limit == int(limit)
        assert query.skip == (int(page) - 1) * int(limit)
        assert query.options.limit == int(limit)

    def test_page_defaults_to_one(self):
        assert normalize_query({"limit": "5"}).skip == 0

    def test_non_numeric_limit_rejected(self):
        with pytest.raises(ValidationError):
            normalize_query({"limit": "ten"})

    def test_page_zero_rejected(self):
        with pytest.raises(ValidationError):
            normalize_query({"page": "0"})

    def test_projection_becomes_exclusions(self):
        query = normalize_query({"projection": "a,b"})
        assert query.projection == ["-a", "-b"]
        assert projection_exclusions(query.projection) == {"a", "b"}

    def test_logical_operators_collect_into_lists(self):
        query = normalize_query({"$or": {"0": {"name": "Mouse"}, "1": {"name": "Keyboard"}}})
        assert query.filter == {"$or": [{"name": "Mouse"}, {"name": "Keyboard"}]}

    def test_body_and_options_passthrough(self):
        query = normalize_query({"newQueryFlag": "true", "totalDocuments": "42", "hint": "x"})
        assert query.body.new_query_flag is True
        assert query.body.total_documents == 42
        assert "newQueryFlag" not in query.filter
        assert query.options.model_dump()["hint"] == "x"

    def test_text_search_kept_in_filter(self):
        query = normalize_query({"$text": {"$search": "calgary"}})
        assert query.filter == {"$text": {"$search": "calgary"}}

    def test_descriptor_is_immutable(self):
        query = normalize_query(None)
        with pytest.raises(Exception):
            query.limit = 5
