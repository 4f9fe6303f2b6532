"""Tests for orion_apply.core.editing.interactive -- guided resolution with a scripted prompter."""

import asyncio

from orion_apply.core.editing.closest_match import best_closest_match
from orion_apply.core.editing.interactive import SKIP, resolve_failures_interactively
from orion_apply.core.editing.outcomes import NoMatchFailure, NotUniqueFailure
from orion_apply.core.editing.text import find_all_matches


class ScriptedPrompter:
    """Answers select() from a script; confirm() returns the default."""

    def __init__(self, selections=()):
        self.selections = list(selections)
        self.shown = []
        self.asked = []

    def show(self, text):
        self.shown.append(text)

    async def confirm(self, message, default=True):
        self.asked.append((message, None))
        return default

    async def select(self, message, choices):
        self.asked.append((message, choices))
        return self.selections.pop(0)


class RecordingLauncher:
    def __init__(self):
        self.calls = []

    async def launch(self, target, proposed):
        self.calls.append((target, proposed, proposed.read_text()))
        return 0


class FailingLauncher:
    def __init__(self, exit_code=None):
        self.exit_code = exit_code

    async def launch(self, target, proposed):
        if self.exit_code is None:
            raise FileNotFoundError("Diff tool not found: meld")
        return self.exit_code


GREETING = "def greet():\n    return 'hello'\n"


def _no_match(content, original, updated):
    return NoMatchFailure("app.py", original, updated, best_closest_match(content, original))


def _not_unique(content, original, updated):
    return NotUniqueFailure("app.py", original, updated, find_all_matches(content, original))


def _resolve(failures, root, prompter, **kwargs):
    return asyncio.run(resolve_failures_interactively(failures, root, prompter, **kwargs))


class TestNotUnique:
    def test_pick_location(self, tmp_path):
        content = "x = 1\ny = 0\nx = 1\n"
        (tmp_path / "app.py").write_text(content)
        prompter = ScriptedPrompter([1])

        unresolved = _resolve([_not_unique(content, "x = 1\n", "x = 2\n")], tmp_path, prompter)

        assert unresolved == []
        assert (tmp_path / "app.py").read_text() == "x = 1\ny = 0\nx = 2\n"
        labels = [label for label, _ in prompter.asked[0][1]]
        assert labels[0].startswith("Location 1 (Line 1)")
        assert labels[1].startswith("Location 2 (Line 3)")
        assert labels[-1] == "Skip this edit"

    def test_skip(self, tmp_path):
        content = "x = 1\nx = 1\n"
        (tmp_path / "app.py").write_text(content)

        unresolved = _resolve(
            [_not_unique(content, "x = 1\n", "x = 2\n")], tmp_path, ScriptedPrompter([SKIP])
        )

        assert len(unresolved) == 1
        assert (tmp_path / "app.py").read_text() == content

    def test_locations_refreshed_between_failures(self, tmp_path):
        content = "x = 1\nx = 1\n"
        (tmp_path / "app.py").write_text(content)
        failures = [
            _not_unique(content, "x = 1\n", "x = 2\n"),
            _not_unique(content, "x = 1\n", "x = 3\n"),
        ]
        prompter = ScriptedPrompter([0, 0])

        unresolved = _resolve(failures, tmp_path, prompter)

        assert unresolved == []
        assert (tmp_path / "app.py").read_text() == "x = 2\nx = 3\n"
        second_choices = prompter.asked[1][1]
        assert second_choices[0][0].startswith("Location 1 (Line 2)")

    def test_dry_run(self, tmp_path):
        content = "x = 1\nx = 1\n"
        (tmp_path / "app.py").write_text(content)
        prompter = ScriptedPrompter([0])

        _resolve([_not_unique(content, "x = 1\n", "x = 2\n")], tmp_path, prompter, dry_run=True)

        assert (tmp_path / "app.py").read_text() == content
        assert any(text.startswith("[Dry Run]") for text in prompter.shown)


class TestNoMatch:
    def test_apply_at_closest(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        failure = _no_match(
            GREETING, "def greet():\n    return 'hi there'\n", "def greet():\n    return 'bye'\n"
        )

        unresolved = _resolve([failure], tmp_path, ScriptedPrompter(["apply"]))

        assert unresolved == []
        assert (tmp_path / "app.py").read_text() == "def greet():\n    return 'bye'\n"

    def test_no_candidate_only_skips(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        failure = NoMatchFailure("app.py", "zzz\n", "yyy\n")
        prompter = ScriptedPrompter(["skip"])

        unresolved = _resolve([failure], tmp_path, prompter)

        assert len(unresolved) == 1
        assert prompter.asked[0][1] == [("Skip this edit", "skip")]

    def test_diff_tool(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        failure = _no_match(
            GREETING, "def greet():\n    return 'hi there'\n", "def greet():\n    return 'bye'\n"
        )
        launcher = RecordingLauncher()

        unresolved = _resolve([failure], tmp_path, ScriptedPrompter(["diff"]), launcher=launcher)

        assert unresolved == []
        target, proposed, proposed_text = launcher.calls[0]
        assert target == (tmp_path / "app.py").resolve()
        assert proposed_text == "def greet():\n    return 'bye'\n"
        assert not proposed.exists()
        # the user merges by hand; nothing is written for them
        assert (tmp_path / "app.py").read_text() == GREETING

    def test_missing_diff_tool_leaves_failure_unresolved(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        failure = _no_match(
            GREETING, "def greet():\n    return 'hi there'\n", "def greet():\n    return 'bye'\n"
        )
        prompter = ScriptedPrompter(["diff"])

        unresolved = _resolve([failure], tmp_path, prompter, launcher=FailingLauncher())

        assert unresolved == [failure]
        assert any("Could not open diff tool" in text for text in prompter.shown)
        assert (tmp_path / "app.py").read_text() == GREETING

    def test_diff_tool_nonzero_exit_leaves_failure_unresolved(self, tmp_path):
        (tmp_path / "app.py").write_text(GREETING)
        failure = _no_match(
            GREETING, "def greet():\n    return 'hi there'\n", "def greet():\n    return 'bye'\n"
        )

        unresolved = _resolve([failure], tmp_path, ScriptedPrompter(["diff"]), launcher=FailingLauncher(2))

        assert unresolved == [failure]

    def test_stale_candidate_recomputed(self, tmp_path):
        failure = _no_match(
            GREETING, "def greet():\n    return 'hi there'\n", "def greet():\n    return 'bye'\n"
        )
        (tmp_path / "app.py").write_text("# header\n" + GREETING)

        unresolved = _resolve([failure], tmp_path, ScriptedPrompter(["apply"]))

        assert unresolved == []
        assert (tmp_path / "app.py").read_text() == "# header\ndef greet():\n    return 'bye'\n"
