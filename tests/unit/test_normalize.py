"""Tests for element name normalization."""

from __future__ import annotations

import pytest

from backbone.canonical.normalize import merge_pages, normalize_name


class TestNormalizeName:
    def test_casefold(self):
        assert normalize_name("John Smith") == normalize_name("JOHN SMITH")

    def test_collapses_whitespace(self):
        assert normalize_name("  JOHN \t  SMITH \n") == "john smith"

    def test_nfkc_folds_fullwidth(self):
        assert normalize_name("ＪＯＨＮ") == "john"

    def test_casefold_handles_sharp_s(self):
        assert normalize_name("STRASSE") == normalize_name("Straße")

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank(self, value):
        assert normalize_name(value) == ""


class TestMergePages:
    def test_union_sorted(self):
        assert merge_pages([12, 3], [3, 7], None) == [3, 7, 12]

    def test_empty(self):
        assert merge_pages() == []
