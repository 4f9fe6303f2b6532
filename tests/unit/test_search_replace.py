"""Tests for the search/replace dialect -- block parsing and tolerant matching."""

import asyncio

import pytest

from orion_apply.core.editing.dialects.search_replace import (
    find_blocks,
    process_search_replace,
    replace_most_similar_chunk,
    strip_quoted_wrapping,
)
from orion_apply.core.editing.outcomes import NoMatchFailure, NotUniqueFailure, Success
from orion_apply.core.errors import EditParseError


def _block(path, search, replace, fence="```python"):
    return f"{path}\n{fence}\n<<<<<<< SEARCH\n{search}=======\n{replace}>>>>>>> REPLACE\n```\n"


def _run(content, root, dry_run=False):
    return asyncio.run(process_search_replace(content, root, dry_run=dry_run))


class TestFindBlocks:
    def test_filename_before_fence(self):
        blocks = find_blocks(_block("app.py", "old\n", "new\n"))
        assert len(blocks) == 1
        assert blocks[0].file_path == "app.py"
        assert blocks[0].original == "old\n"
        assert blocks[0].updated == "new\n"

    def test_filename_carries_over(self):
        content = _block("app.py", "a\n", "b\n") + "```python\n<<<<<<< SEARCH\nc\n=======\nd\n>>>>>>> REPLACE\n```\n"
        assert [b.file_path for b in find_blocks(content)] == ["app.py", "app.py"]

    def test_missing_filename(self):
        with pytest.raises(EditParseError, match="Bad/missing filename"):
            find_blocks("<<<<<<< SEARCH\nold\n=======\nnew\n>>>>>>> REPLACE\n")

    def test_missing_divider(self):
        with pytest.raises(EditParseError, match="Expected `=======`"):
            find_blocks("app.py\n<<<<<<< SEARCH\nold\n")


class TestMatching:
    def test_strip_quoted_wrapping(self):
        assert strip_quoted_wrapping("app.py\n```\nx = 1\n```", "src/app.py") == "x = 1\n"

    def test_missing_leading_whitespace(self):
        whole = "def f():\n    a = 1\n    b = 2\n"
        result = replace_most_similar_chunk(whole, "a = 1\nb = 2\n", "a = 10\nb = 2\n")
        assert result == "def f():\n    a = 10\n    b = 2\n"

    def test_dotdotdot_elision(self):
        whole = "a = 1\nb = 2\nc = 3\n"
        result = replace_most_similar_chunk(whole, "a = 1\n...\nc = 3\n", "a = 10\n...\nc = 30\n")
        assert result == "a = 10\nb = 2\nc = 30\n"

    def test_no_match(self):
        assert replace_most_similar_chunk("a = 1\n", "zzz\n", "yyy\n") is None


class TestProcessSearchReplace:
    def test_applies_block(self, tmp_path):
        (tmp_path / "app.py").write_text("x = 1\ny = 2\n")
        outcomes = _run(_block("app.py", "y = 2\n", "y = 3\n"), tmp_path)
        assert outcomes == [Success("app.py", "y = 2\n", "y = 3\n", start_line=2)]
        assert (tmp_path / "app.py").read_text() == "x = 1\ny = 3\n"

    def test_success_records_replaced_region(self, tmp_path):
        (tmp_path / "app.py").write_text("def f():\n    a = 1\n    b = 2\n")
        outcomes = _run(_block("app.py", "a = 1\nb = 2\n", "a = 10\nb = 2\n"), tmp_path, dry_run=True)
        assert outcomes == [Success("app.py", "    a = 1\n", "    a = 10\n", start_line=2)]

    def test_new_file(self, tmp_path):
        outcomes = _run(_block("pkg/new.py", "", "x = 1\n"), tmp_path)
        assert isinstance(outcomes[0], Success)
        assert (tmp_path / "pkg" / "new.py").read_text() == "x = 1\n"

    def test_not_unique(self, tmp_path):
        (tmp_path / "app.py").write_text("x = 1\nx = 1\n")
        outcomes = _run(_block("app.py", "x = 1\n", "x = 2\n"), tmp_path)
        assert isinstance(outcomes[0], NotUniqueFailure)
        assert [loc.start_line for loc in outcomes[0].match_locations] == [1, 2]
        assert (tmp_path / "app.py").read_text() == "x = 1\nx = 1\n"

    def test_no_match(self, tmp_path):
        (tmp_path / "app.py").write_text("x = 1\n")
        outcomes = _run(_block("app.py", "zzz_not_here()\n", "y()\n"), tmp_path)
        assert isinstance(outcomes[0], NoMatchFailure)
        assert outcomes[0].file_path == "app.py"

    def test_sample_prompt_rejected(self, tmp_path):
        with pytest.raises(EditParseError, match="sample prompt"):
            _run(_block("mathweb/flask/app.py", "a\n", "b\n"), tmp_path)
