# Orion Agent
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Orion Agent.
#
# Orion Agent is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
Orion Apply -- Interactive Failure Resolver (v7.5.0)

Walks the user through every failure that survived auto-resolution and
retry:

    No match    show the expected text and the closest fuzzy match, then
                apply at the closest match, open an external diff tool, or skip
    Not unique  list every location with its context, then pick one or skip

Locations are refreshed against the file before each prompt, so earlier
choices in the same session never leave later line numbers stale. Every
splice re-checks bounds and content and keeps each line's own ending.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Any, Protocol

from orion_apply.core.editing.closest_match import DEFAULT_SIMILARITY_THRESHOLD, best_closest_match
from orion_apply.core.editing.outcomes import EditFailure, NoMatchFailure, NotUniqueFailure
from orion_apply.core.editing.safety import read_text, secure_write, validate_path
from orion_apply.core.editing.text import (
    find_all_matches,
    indent_block,
    lines_match_at,
    render_diff,
    splice_lines,
    split_lines_with_endings,
)
from orion_apply.core.logging import get_logger

logger = logging.getLogger("orion_apply.interactive")

SKIP = -1


# ---------------------------------------------------------------------------
# COLLABORATORS
# ---------------------------------------------------------------------------


class Prompter(Protocol):
    """User-facing prompts used by the resolver and the orchestrator."""

    def show(self, text: str) -> None: ...

    async def confirm(self, message: str, default: bool = True) -> bool: ...

    async def select(self, message: str, choices: list[tuple[str, Any]]) -> Any: ...


class DiffLauncher(Protocol):
    """Opens a side-by-side diff of the real file and a proposed copy."""

    async def launch(self, target: Path, proposed: Path) -> int: ...


class ExternalDiffLauncher:
    """Runs an external diff tool (default `nvim -d`) attached to the terminal."""

    def __init__(self, command: list[str] | None = None):
        self.command = list(command or ["nvim", "-d"])

    async def launch(self, target: Path, proposed: Path) -> int:
        if shutil.which(self.command[0]) is None:
            raise FileNotFoundError(f"Diff tool not found: {self.command[0]}")
        logger.info("Run: %s %s %s", " ".join(self.command), target, proposed)
        proc = await asyncio.create_subprocess_exec(*self.command, str(target), str(proposed))
        return await proc.wait()


# ---------------------------------------------------------------------------
# APPLICATION
# ---------------------------------------------------------------------------


def _apply_at(
    failure: EditFailure,
    target_lines: list[str] | tuple[str, ...],
    start_line: int,
    write_root: Path,
    dry_run: bool,
    prompter: Prompter,
) -> bool:
    """Replace `target_lines` at 1-based `start_line` with the failure's updated text."""
    try:
        path = validate_path(write_root, failure.file_path)
        content = read_text(path)
    except OSError as exc:
        logger.error("Failed to read %s: %s", failure.file_path, exc)
        get_logger().edit("failed", failure.file_path, error=str(exc))
        return False

    line_count = len(split_lines_with_endings(content))
    if start_line < 1 or start_line - 1 + len(target_lines) > line_count:
        logger.error(
            "Line range %d-%d is out of bounds for %s (%d lines). Edit may be stale.",
            start_line,
            start_line + len(target_lines) - 1,
            failure.file_path,
            line_count,
        )
        get_logger().edit("stale", failure.file_path, start_line=start_line)
        return False
    if not lines_match_at(content, start_line, target_lines):
        logger.error(
            "Content at line %d of %s changed since it was shown. Edit skipped.",
            start_line,
            failure.file_path,
        )
        get_logger().edit("stale", failure.file_path, start_line=start_line)
        return False

    new_content = splice_lines(content, start_line, len(target_lines), failure.updated_text)
    if dry_run:
        prompter.show(f"[Dry Run] Would apply edit to {failure.file_path} at line {start_line}")
        prompter.show(render_diff(content, new_content, failure.file_path, failure.file_path))
        return True

    try:
        secure_write(write_root, failure.file_path, new_content)
    except OSError as exc:
        logger.error("Failed to write %s: %s", failure.file_path, exc)
        get_logger().edit("failed", failure.file_path, error=str(exc))
        return False
    prompter.show(f"Applied edit to {failure.file_path} at line {start_line}")
    get_logger().edit("applied", failure.file_path, start_line=start_line, source="interactive")
    return True


async def _open_diff_tool(
    failure: NoMatchFailure,
    start_line: int,
    target_lines: tuple[str, ...],
    write_root: Path,
    launcher: DiffLauncher,
    prompter: Prompter,
) -> bool:
    """Seed a temp 'proposed' file and let the user merge by hand.

    Returns False when the tool could not be run or exited non-zero.
    """
    target = validate_path(write_root, failure.file_path)
    temp_dir = Path(tempfile.mkdtemp(prefix="orion-apply-diff-"))
    try:
        proposed = temp_dir / "proposed"
        content = read_text(target)
        proposed.write_text(
            splice_lines(content, start_line, len(target_lines), failure.updated_text),
            encoding="utf-8",
        )
        prompter.show(f"Note: you can save changes directly to {target} in the diff tool.")
        code = await launcher.launch(target, proposed)
        logger.info("Diff tool exited with code %d", code)
    except OSError as exc:
        logger.error("Failed to open diff tool: %s", exc)
        prompter.show(f"Could not open diff tool: {exc}")
        get_logger().edit("failed", failure.file_path, error=str(exc))
        return False
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    if code != 0:
        prompter.show(f"Diff tool exited with code {code}; edit left unresolved")
        get_logger().edit("failed", failure.file_path, exit_code=code)
        return False
    get_logger().edit("manual", failure.file_path, exit_code=code)
    return True


# ---------------------------------------------------------------------------
# PER-FAILURE HANDLERS
# ---------------------------------------------------------------------------


def _refresh(failure: EditFailure, content: str | None, threshold: float) -> EditFailure:
    """Re-locate a failure against the file as it is now."""
    if content is None:
        return failure
    if isinstance(failure, NotUniqueFailure):
        return replace(failure, match_locations=find_all_matches(content, failure.original_text))
    match = failure.closest_match
    if match and lines_match_at(content, match.start_line, match.lines):
        return failure
    return replace(failure, closest_match=best_closest_match(content, failure.original_text, threshold))


async def handle_no_match(
    failure: NoMatchFailure,
    write_root: Path,
    prompter: Prompter,
    launcher: DiffLauncher,
    dry_run: bool,
) -> bool:
    """Returns True when the failure was dealt with (applied or merged by hand)."""
    prompter.show("\n--- Failure: No Exact Match ---")
    prompter.show(f"File: {failure.file_path}")
    prompter.show("The following text block to be replaced was not found:")
    prompter.show(failure.original_text)

    match = failure.closest_match
    if match is None:
        prompter.show("No close match could be found.")
        await prompter.select("How would you like to proceed?", [("Skip this edit", "skip")])
        prompter.show(f"Skipping edit for {failure.file_path}")
        get_logger().edit("skipped", failure.file_path)
        return False

    closest = "".join(match.lines)
    prompter.show(f"\nClosest match found (score: {match.score:.2f}) starting at line {match.start_line}:")
    prompter.show(closest)
    prompter.show("\nDiff between closest match and expected original:")
    prompter.show(
        indent_block(
            render_diff(
                closest, failure.original_text, "closest match", "expected original",
                context=None, headers=False,
            )
        )
    )
    prompter.show("\nProposed change at closest match location:")
    prompter.show(render_diff(closest, failure.updated_text, "current", "proposed", context=None, headers=False))

    choice = await prompter.select(
        "How would you like to proceed?",
        [
            ("Apply edit at closest match location", "apply"),
            ("Open in external diff tool", "diff"),
            ("Skip this edit", "skip"),
        ],
    )
    if choice == "apply":
        return _apply_at(failure, match.lines, match.start_line, write_root, dry_run, prompter)
    if choice == "diff":
        return await _open_diff_tool(failure, match.start_line, match.lines, write_root, launcher, prompter)
    prompter.show(f"Skipping edit for {failure.file_path}")
    get_logger().edit("skipped", failure.file_path)
    return False


async def handle_not_unique(
    failure: NotUniqueFailure,
    write_root: Path,
    prompter: Prompter,
    dry_run: bool,
) -> bool:
    locations = failure.match_locations
    prompter.show("\n--- Failure: Not Unique ---")
    prompter.show(f"File: {failure.file_path}")
    prompter.show(f"The text block to be replaced was found in {len(locations)} locations:")
    prompter.show(failure.original_text)
    prompter.show("\nProposed change:")
    prompter.show(
        indent_block(
            render_diff(
                failure.original_text, failure.updated_text, "original", "proposed",
                context=None, headers=False,
            )
        )
    )

    choices: list[tuple[str, Any]] = []
    for index, location in enumerate(locations):
        context = indent_block("".join(location.context_lines), "      ")
        choices.append((f"Location {index + 1} (Line {location.start_line})\n{context}", index))
    choices.append(("Skip this edit", SKIP))

    selected = await prompter.select("Select the correct location to apply the edit:", choices)
    if selected == SKIP or selected is None:
        prompter.show(f"Skipping edit for {failure.file_path}")
        get_logger().edit("skipped", failure.file_path)
        return False

    location = locations[selected]
    original_lines = split_lines_with_endings(failure.original_text)
    return _apply_at(failure, original_lines, location.start_line, write_root, dry_run, prompter)


async def resolve_failures_interactively(
    failures: list[EditFailure],
    write_root: str | Path,
    prompter: Prompter,
    dry_run: bool = False,
    launcher: DiffLauncher | None = None,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[EditFailure]:
    """Resolve failures one by one; returns the ones left unresolved."""
    root = Path(write_root)
    launcher = launcher or ExternalDiffLauncher()
    unresolved: list[EditFailure] = []

    prompter.show(f"Entering interactive mode to resolve {len(failures)} edit failure(s)...")
    for failure in failures:
        try:
            path = validate_path(root, failure.file_path)
            content = read_text(path) if path.is_file() else None
        except OSError as exc:
            logger.error("Cannot read %s: %s", failure.file_path, exc)
            content = None
        failure = _refresh(failure, content, similarity_threshold)

        if isinstance(failure, NoMatchFailure):
            handled = await handle_no_match(failure, root, prompter, launcher, dry_run)
        else:
            handled = await handle_not_unique(failure, root, prompter, dry_run)
        if not handled:
            unresolved.append(failure)
        prompter.show("---")

    prompter.show("Finished interactive resolution.")
    return unresolved
