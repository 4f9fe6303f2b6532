"""Tests for orion_apply.core.editing.text and closest_match -- line handling and fuzzy search."""

from orion_apply.core.editing.closest_match import best_closest_match, find_closest_matches
from orion_apply.core.editing.text import (
    find_all_matches,
    indent_block,
    lines_match_at,
    non_whitespace_length,
    render_diff,
    splice_lines,
    split_lines_with_endings,
)

SOURCE = "def foo():\n    return 1\n\ndef bar():\n    return 2\n"


# =========================================================================
# LINE SPLITTING / SPLICING
# =========================================================================


class TestSplitLines:
    def test_keeps_mixed_endings(self):
        assert split_lines_with_endings("a\r\nb\nc\rd") == ["a\r\n", "b\n", "c\r", "d"]

    def test_no_phantom_last_line(self):
        assert split_lines_with_endings("a\nb\n") == ["a\n", "b\n"]

    def test_empty(self):
        assert split_lines_with_endings("") == []


class TestSpliceLines:
    def test_replaces_range(self):
        assert splice_lines("a\nb\nc\n", 2, 1, "X\nY\n") == "a\nX\nY\nc\n"

    def test_untouched_crlf_lines_survive(self):
        assert splice_lines("a\r\nb\r\nc\r\n", 2, 1, "B\r\n") == "a\r\nB\r\nc\r\n"


class TestLinesMatchAt:
    def test_match(self):
        assert lines_match_at("a\nb\nc\n", 2, ["b\n", "c\n"])

    def test_wrong_line(self):
        assert not lines_match_at("a\nb\nc\n", 3, ["b\n"])

    def test_out_of_bounds(self):
        assert not lines_match_at("a\nb\nc\n", 0, ["a\n"])
        assert not lines_match_at("a\nb\nc\n", 3, ["c\n", "d\n"])


# =========================================================================
# EXACT MATCHES
# =========================================================================


class TestFindAllMatches:
    def test_multiple_occurrences(self):
        locations = find_all_matches("x = 1\ny = 2\nx = 1\n", "x = 1\n")
        assert [loc.start_line for loc in locations] == [1, 3]
        assert [loc.start_index for loc in locations] == [0, 12]
        assert locations[0].context_lines == ("x = 1\n",)

    def test_match_inside_line_is_ignored(self):
        locations = find_all_matches("foo bar\nbar\n", "bar")
        assert [loc.start_line for loc in locations] == [2]

    def test_line_suffix_is_not_a_match(self):
        locations = find_all_matches("barfoo\nfoo\n", "foo\n")
        assert [loc.start_index for loc in locations] == [7]
        assert find_all_matches("barfoo\n", "foo\n") == ()

    def test_empty_part(self):
        assert find_all_matches("abc", "") == ()


class TestHelpers:
    def test_render_diff(self):
        diff = render_diff("a\nb\n", "a\nc\n", "x", "y")
        assert "--- x" in diff
        assert "+++ y" in diff
        assert "-b\n" in diff
        assert "+c\n" in diff

    def test_render_diff_without_headers(self):
        diff = render_diff("a\nb\n", "a\nc\n", headers=False)
        assert diff.startswith("@@")

    def test_render_diff_unterminated(self):
        assert "-a\n+b\n" in render_diff("a", "b")

    def test_indent_block(self):
        assert indent_block("a\nb\n") == "  a\n  b"

    def test_non_whitespace_length(self):
        assert non_whitespace_length(" a b\n c ") == 3


# =========================================================================
# CLOSEST MATCH
# =========================================================================


class TestClosestMatch:
    def test_best_window_first(self):
        matches = find_closest_matches(SOURCE, ["def bar():\n", "    return 3\n"], max_matches=2)
        assert [m.start_line for m in matches] == [4, 1]
        assert matches[0].end_line == 5
        assert matches[0].lines == ("def bar():\n", "    return 2\n")
        assert matches[0].score > matches[1].score

    def test_threshold_filters(self):
        assert find_closest_matches(SOURCE, ["zzz\n"], similarity_threshold=0.9) == []

    def test_window_larger_than_file(self):
        assert find_closest_matches("a\n", ["a\n", "b\n"]) == []

    def test_best_closest_match(self):
        match = best_closest_match(SOURCE, "def bar():\n    return 3\n")
        assert match is not None
        assert match.start_line == 4

    def test_missing_file(self):
        assert best_closest_match(None, "anything\n") is None
