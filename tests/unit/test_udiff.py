"""Tests for the unified diff dialect -- parsing, hunk application and classification."""

import asyncio

from orion_apply.core.editing.dialects.udiff import (
    find_diffs,
    hunk_to_before_after,
    normalize_hunk,
    process_unified_diff,
)
from orion_apply.core.editing.outcomes import NoMatchFailure, NotUniqueFailure, Success

GREETING = "def greet():\n    return 'hello'\n\n\ndef main():\n    print(greet())\n"

GREETING_DIFF = """I'll update the greeting.

```diff
--- a/app.py
+++ b/app.py
@@ -1,2 +1,2 @@
 def greet():
-    return 'hello'
+    return 'hello, world'
```
"""

SERVICE = (
    "def handler():\n"
    "    value = compute()\n"
    "    return value\n"
    "\n"
    "def other():\n"
    "    value = compute()\n"
    "    return value\n"
)


def _run(content, root, dry_run=False):
    return asyncio.run(process_unified_diff(content, root, dry_run=dry_run))


class TestParsing:
    def test_fenced_diff(self):
        hunks = find_diffs(GREETING_DIFF)
        assert len(hunks) == 1
        assert hunks[0].file_path == "app.py"
        assert hunks[0].lines == [
            " def greet():\n",
            "-    return 'hello'\n",
            "+    return 'hello, world'\n",
        ]

    def test_bare_diff(self):
        content = "--- a/app.py\n+++ b/app.py\n@@ -1 +1 @@\n-x = 1\n+x = 2\n"
        hunks = find_diffs(content)
        assert [h.file_path for h in hunks] == ["app.py"]

    def test_multiple_files_in_one_block(self):
        content = (
            "```diff\n"
            "--- a/one.py\n+++ b/one.py\n@@ -1 +1 @@\n-a = 1\n+a = 2\n"
            "--- a/two.py\n+++ b/two.py\n@@ -1 +1 @@\n-b = 1\n+b = 2\n"
            "```\n"
        )
        assert [h.file_path for h in find_diffs(content)] == ["one.py", "two.py"]

    def test_hunks_without_changes_dropped(self):
        content = "```diff\n--- a/app.py\n+++ b/app.py\n@@ -1 +1 @@\n context\n```\n"
        assert find_diffs(content) == []

    def test_other_fences_ignored(self):
        content = "```python\nprint('--- not a diff')\n```\n"
        assert find_diffs(content) == []


class TestHunkAlgebra:
    def test_before_after(self):
        before, after = hunk_to_before_after([" a\n", "-b\n", "+c\n", "\n"])
        assert before == ["a\n", "b\n", "\n"]
        assert after == ["a\n", "c\n", "\n"]

    def test_normalize_noop_hunk(self):
        assert normalize_hunk(["-a\n", "+a\n"]) == []

    def test_normalize_keeps_changes(self):
        assert normalize_hunk([" a\n", "-b\n", "+c\n"]) == [" a\n", "-b\n", "+c\n"]


class TestProcessUnifiedDiff:
    def test_applies_hunk(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        outcomes = _run(GREETING_DIFF, tmp_path)

        assert outcomes == [
            Success(
                "app.py",
                "def greet():\n    return 'hello'\n",
                "def greet():\n    return 'hello, world'\n",
                start_line=1,
            )
        ]
        assert "return 'hello, world'" in (tmp_path / "app.py").read_text()

    def test_dry_run_leaves_file(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        outcomes = _run(GREETING_DIFF, tmp_path, dry_run=True)
        assert isinstance(outcomes[0], Success)
        assert (tmp_path / "app.py").read_text() == GREETING

    def test_new_file(self, tmp_path):
        content = "```diff\n--- /dev/null\n+++ b/pkg/new_module.py\n@@ -0,0 +1,2 @@\n+x = 1\n+y = 2\n```\n"
        outcomes = _run(content, tmp_path)
        assert outcomes == [Success("pkg/new_module.py", "", "x = 1\ny = 2\n", start_line=0)]
        assert (tmp_path / "pkg" / "new_module.py").read_text() == "x = 1\ny = 2\n"

    def test_no_match_reports_closest(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        content = GREETING_DIFF.replace("-    return 'hello'", "-    return 'hi there'")
        outcomes = _run(content, tmp_path)

        assert len(outcomes) == 1
        failure = outcomes[0]
        assert isinstance(failure, NoMatchFailure)
        assert failure.original_text == "def greet():\n    return 'hi there'\n"
        assert failure.closest_match is not None
        assert failure.closest_match.start_line == 1
        assert (tmp_path / "app.py").read_text() == GREETING

    def test_not_unique_lists_locations(self, tmp_path):
        (tmp_path / "svc.py").write_text(SERVICE)
        content = (
            "```diff\n--- a/svc.py\n+++ b/svc.py\n@@ -2 +2 @@\n"
            "-    value = compute()\n+    value = compute_fast()\n```\n"
        )
        outcomes = _run(content, tmp_path)

        assert len(outcomes) == 1
        failure = outcomes[0]
        assert isinstance(failure, NotUniqueFailure)
        assert [loc.start_line for loc in failure.match_locations] == [2, 6]
        assert (tmp_path / "svc.py").read_text() == SERVICE

    def test_later_hunks_see_earlier_edits(self, tmp_path):
        (tmp_path / "app.py").write_text("x = 1\n")
        content = (
            "```diff\n--- a/app.py\n+++ b/app.py\n"
            "@@ -1 +1 @@\n-x = 1\n+x = 2\n"
            "@@ -1 +1 @@\n-x = 2\n+x = 3\n```\n"
        )
        outcomes = _run(content, tmp_path, dry_run=True)
        assert all(isinstance(o, Success) for o in outcomes)
        assert len(outcomes) == 2

    def test_commentary_paths_skipped(self, tmp_path):
        content = "--- a/some notes\n+++ b/some notes\n@@ -1 +1 @@\n-a\n+b\n"
        assert _run(content, tmp_path) == []
