"""Tests for scl/matcher.py"""

from scl.matcher import matches


class TestMatches:
    def test_substring_match(self):
        assert matches("2024-01-15 ERROR disk full", "ERROR") is True

    def test_no_match(self):
        assert matches("all good", "ERROR") is False

    def test_case_sensitive(self):
        assert matches("error: disk full", "ERROR") is False

    def test_empty_pattern_matches_everything(self):
        assert matches("anything", "") is True
        assert matches("", "") is True

    def test_empty_line_only_matches_empty_pattern(self):
        assert matches("", "x") is False

    def test_whole_line_match(self):
        assert matches("exact", "exact") is True

    def test_pattern_longer_than_line(self):
        assert matches("err", "error") is False
