"""Unit tests for cache and counter key derivation."""

from datetime import datetime, timezone

import pytest

from app.services.search.models import SearchFilters
from app.utils.ids import generate_document_id, index_document_id
from app.utils.keys import (
    canonical_filters,
    derive_doc_key,
    derive_rate_limit_key,
    derive_search_key,
    search_prefix,
)


class TestDeriveSearchKey:
    def test_key_is_deterministic(self):
        filters = SearchFilters(tag="finance")
        first = derive_search_key("t1", "payment", filters, 0, 10)
        second = derive_search_key("t1", "payment", SearchFilters(tag="finance"), 0, 10)
        assert first == second

    def test_key_starts_with_tenant_search_prefix(self):
        key = derive_search_key("acme", "payment", None, 0, 10)
        assert key.startswith(search_prefix("acme"))
        assert key.startswith("search:acme:")

    def test_different_tenants_never_share_a_key(self):
        assert derive_search_key("t1", "payment", None, 0, 10) != derive_search_key("t2", "payment", None, 0, 10)

    @pytest.mark.parametrize(
        "other",
        [
            ("refund", None, 0, 10),
            ("payment", {"tag": "finance"}, 0, 10),
            ("payment", None, 10, 10),
            ("payment", None, 0, 20),
        ],
    )
    def test_any_input_change_changes_key(self, other):
        base = derive_search_key("t1", "payment", None, 0, 10)
        assert derive_search_key("t1", *other) != base

    def test_query_whitespace_is_ignored(self):
        assert derive_search_key("t1", "  payment ", None, 0, 10) == derive_search_key("t1", "payment", None, 0, 10)

    def test_empty_and_missing_query_share_a_key(self):
        assert derive_search_key("t1", None, None, 0, 10) == derive_search_key("t1", "", None, 0, 10)

    def test_filter_mapping_order_does_not_matter(self):
        a = derive_search_key("t1", "q", {"tag": "x", "author": "bob"}, 0, 10)
        b = derive_search_key("t1", "q", {"author": "bob", "tag": "x"}, 0, 10)
        assert a == b

    def test_model_and_mapping_filters_agree(self):
        model = SearchFilters(tag="x", author="bob")
        assert derive_search_key("t1", "q", model, 0, 10) == derive_search_key(
            "t1", "q", {"author": "bob", "tag": "x"}, 0, 10
        )


class TestCanonicalFilters:
    def test_unset_fields_are_dropped(self):
        assert canonical_filters(SearchFilters(tag="x")) == {"tag": "x"}

    def test_none_gives_empty(self):
        assert canonical_filters(None) == {}

    def test_keys_are_sorted(self):
        result = canonical_filters({"tag": "x", "author": "a", "date_to": None})
        assert list(result) == ["author", "tag"]

    def test_dates_are_json_ready(self):
        filters = SearchFilters(date_from=datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert isinstance(canonical_filters(filters)["date_from"], str)


class TestOtherKeys:
    def test_doc_key_is_tenant_scoped_and_hashed(self):
        key = derive_doc_key("t1", "doc/with:odd*chars")
        assert key.startswith("doc:t1:")
        assert len(key.split(":")[-1]) == 64
        assert derive_doc_key("t2", "doc/with:odd*chars") != key

    def test_rate_limit_key_format(self):
        assert derive_rate_limit_key("t1", 1_704_067_200_000) == "ratelimit:t1:1704067200000"


class TestIds:
    def test_generated_ids_are_unique(self):
        ids = {generate_document_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("doc_") for i in ids)

    def test_index_ids_do_not_collide_across_tenants(self):
        assert index_document_id("a", "b_c") != index_document_id("a_b", "c")
