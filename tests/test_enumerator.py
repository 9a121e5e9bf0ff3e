"""Tests for scl/enumerator.py"""

import pytest

from scl.enumerator import enumerate_sources, parse_source_listing
from scl.errors import EnumerationError
from scl.models import Source

from conftest import FakeProducer


class TestParseSourceListing:
    def test_parses_id_name_pairs_in_order(self):
        text = "abc123:web\ndef456:db\n"
        assert parse_source_listing(text) == [
            Source("abc123", "web"),
            Source("def456", "db"),
        ]

    def test_skips_blank_lines(self):
        text = "\nabc123:web\n\n   \ndef456:db\n\n"
        assert len(parse_source_listing(text)) == 2

    def test_empty_listing(self):
        assert parse_source_listing("") == []
        assert parse_source_listing("\n\n") == []

    def test_missing_separator_is_fatal(self):
        with pytest.raises(EnumerationError, match="line 2"):
            parse_source_listing("abc123:web\nnot-a-pair\n")

    def test_empty_id_is_fatal(self):
        with pytest.raises(EnumerationError):
            parse_source_listing(":web\n")

    def test_empty_name_is_fatal(self):
        with pytest.raises(EnumerationError):
            parse_source_listing("abc123:\n")

    def test_splits_on_first_separator_only(self):
        assert parse_source_listing("abc:name:with:colons") == [
            Source("abc", "name:with:colons"),
        ]

    def test_surrounding_whitespace_trimmed(self):
        assert parse_source_listing("  abc : web  \r\n") == [Source("abc", "web")]

    def test_exact_duplicates_kept_once(self):
        assert parse_source_listing("abc:web\nabc:web\n") == [Source("abc", "web")]


class TestEnumerateSources:
    def test_uses_producer_listing(self):
        producer = FakeProducer(listing="abc:web\ndef:db\n")
        sources = enumerate_sources(producer)
        assert [s.name for s in sources] == ["web", "db"]
        assert producer.calls == [("ps",)]

    def test_producer_failure_propagates(self):
        producer = FakeProducer(list_error="Cannot connect to the Docker daemon")
        with pytest.raises(EnumerationError, match="Docker daemon"):
            enumerate_sources(producer)
