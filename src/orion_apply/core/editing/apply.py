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
Orion Apply -- Apply Orchestrator (v7.5.0)

Top-level control flow for one LLM reply:

    DRY_RUN_PROBE --(no failures)--> APPLY_ALL --> DONE
    DRY_RUN_PROBE --> AUTO_RESOLVE --> [RETRY_LOOP] --> INTERACTIVE | PARTIAL | FAIL

Safety invariants:
- Nothing is written before the dry-run probe has classified every edit.
- Files whose edits all succeeded are written before a retry is attempted.
- Each intended edit (file, original, updated) is written at most once per
  invocation, whichever stage produced it.
- Only unresolved failures escape, as ApplyEditsError.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path

from orion_apply.core.config import ApplySettings
from orion_apply.core.context import ContextBuilder
from orion_apply.core.editing.auto_resolve import auto_resolve_not_unique
from orion_apply.core.editing.dialects.common import WorkingTree
from orion_apply.core.editing.dialects.search_replace import process_search_replace
from orion_apply.core.editing.dialects.udiff import process_unified_diff
from orion_apply.core.editing.dialects.whole_file import process_whole_files
from orion_apply.core.editing.dialects.xml_changes import process_xml_changes
from orion_apply.core.editing.formats import EditFormat, detect_edit_format
from orion_apply.core.editing.interactive import (
    DiffLauncher,
    ExternalDiffLauncher,
    Prompter,
    resolve_failures_interactively,
)
from orion_apply.core.editing.outcomes import (
    EditBatch,
    EditFailure,
    EditKey,
    Success,
    edit_key,
    files_with_failures,
    line_span,
)
from orion_apply.core.editing.reporting import print_detailed_failures
from orion_apply.core.editing.retry_context import build_retry_prompt, get_original_request_context
from orion_apply.core.editing.safety import read_if_exists, secure_write
from orion_apply.core.editing.text import find_all_matches
from orion_apply.core.errors import ApplyEditsError, OrionApplyError
from orion_apply.core.llm.providers import LlmRequester
from orion_apply.core.logging import get_logger, quiet_logging

logger = logging.getLogger("orion_apply.apply")


# ---------------------------------------------------------------------------
# OPTIONS / RESULT
# ---------------------------------------------------------------------------


@dataclass
class ApplyOptions:
    """Inputs for one apply_llm_edits() invocation."""

    content: str
    write_root: str | Path
    mode: str | EditFormat | None = None
    dry_run: bool = False
    interactive: bool = False
    apply_partial: bool = False
    # Retry loop
    retry_requester: LlmRequester | None = None
    original_prompt: str | None = None
    repo_root: str | Path | None = None  # where the cached context lives
    base_dir: str | Path | None = None  # cwd for context regeneration
    context_builder: ContextBuilder | None = None
    # Interactive collaborators
    prompter: Prompter | None = None
    diff_launcher: DiffLauncher | None = None
    settings: ApplySettings = field(default_factory=ApplySettings)


@dataclass
class ApplyResult:
    applied_successes: list[Success] = field(default_factory=list)
    remaining_successes: list[Success] = field(default_factory=list)
    failures: list[EditFailure] = field(default_factory=list)


# ---------------------------------------------------------------------------
# APPLY ONCE
# ---------------------------------------------------------------------------


async def apply_edits_internal(
    content: str,
    write_root: str | Path,
    dry_run: bool = False,
    mode: str | EditFormat | None = None,
    settings: ApplySettings | None = None,
) -> EditBatch | None:
    """Parse and apply one reply; None for dialects that do not classify edits."""
    settings = settings or ApplySettings()
    edit_format = detect_edit_format(content, mode)
    logger.debug("Using %s edit format", edit_format.value)

    if edit_format is EditFormat.XML:
        await process_xml_changes(content, write_root, dry_run)
        return None
    if edit_format is EditFormat.WHOLE:
        await process_whole_files(content, write_root, dry_run)
        return None

    tree = WorkingTree(write_root, dry_run)
    process = process_unified_diff if edit_format is EditFormat.UDIFF else process_search_replace
    outcomes = await process(
        content, write_root, dry_run, settings.closest_match_threshold, tree=tree
    )

    batch = EditBatch.from_outcomes(outcomes)
    if batch.has_failures:
        promoted, remaining = await auto_resolve_not_unique(batch.failures, tree)
        batch.successes.extend(promoted)
        batch.failures = remaining
    return batch


# ---------------------------------------------------------------------------
# SUCCESS APPLICATION
# ---------------------------------------------------------------------------


class _ApplySession:
    """Writes successes for one invocation, each intended edit at most once."""

    def __init__(self, write_root: Path, dry_run: bool = False):
        self.write_root = write_root
        self.dry_run = dry_run
        self.applied_keys: set[EditKey] = set()
        self.applied: list[Success] = []
        self._preview: dict[str, str] = {}  # dry-run writes

    def is_applied(self, success: Success) -> bool:
        return edit_key(success) in self.applied_keys

    def pending(self, successes: list[Success]) -> list[Success]:
        return [s for s in successes if not self.is_applied(s)]

    def apply(self, successes: list[Success], source: str = "apply") -> list[Success]:
        groups: OrderedDict[EditKey, list[Success]] = OrderedDict()
        for success in successes:
            groups.setdefault(edit_key(success), []).append(success)

        written: list[Success] = []
        for key, group in groups.items():
            if key in self.applied_keys:
                logger.debug("Edit for %s already applied in this run", key[0])
                continue
            try:
                ok = self._apply_group(group)
            except OSError as exc:
                logger.error("Failed to write %s: %s", key[0], exc)
                get_logger().edit("failed", key[0], error=str(exc), source=source)
                continue
            if not ok:
                get_logger().edit("stale", key[0], source=source)
                continue
            self.applied_keys.add(key)
            self.applied.extend(group)
            written.extend(group)
            if not self.dry_run:
                get_logger().edit("applied", key[0], count=len(group), source=source)
        return written

    def _read(self, file_path: str) -> str | None:
        if file_path in self._preview:
            return self._preview[file_path]
        return read_if_exists(self.write_root, file_path)

    def _apply_group(self, group: list[Success]) -> bool:
        first = group[0]
        content = self._read(first.file_path)
        original, updated = first.original_text, first.updated_text

        if not original.strip():
            new_content = updated if content is None else content + updated
        elif content is None:
            logger.warning("Cannot apply edit: %s does not exist", first.file_path)
            return False
        else:
            offsets = self._locate(content, group)
            if offsets is None:
                return False
            new_content = content
            for offset in sorted(offsets, reverse=True):
                new_content = new_content[:offset] + updated + new_content[offset + len(original) :]

        if self.dry_run:
            self._preview[first.file_path] = new_content
            logger.info("[Dry Run] Would apply %d edit(s) to %s", len(group), first.file_path)
        else:
            secure_write(self.write_root, first.file_path, new_content)
            logger.info("Applied %d edit(s) to %s", len(group), first.file_path)
        return True

    @staticmethod
    def _locate(content: str, group: list[Success]) -> list[int] | None:
        """Character offsets to replace, or None when the edit cannot be placed."""
        first = group[0]
        locations = find_all_matches(content, first.original_text)
        if not locations:
            logger.warning(
                "Original text for %s no longer found (line %d); edit skipped",
                first.file_path,
                first.start_line,
            )
            return None

        by_line = {loc.start_line: loc for loc in locations}
        if len(group) > 1:
            # auto-resolved groups: all-or-nothing
            if len(locations) == len(group):
                return [loc.start_index for loc in locations]
            if all(s.start_line in by_line for s in group):
                return [by_line[s.start_line].start_index for s in group]
            logger.warning(
                "Skipping %d grouped edit(s) for %s: %d location(s) now match",
                len(group),
                first.file_path,
                len(locations),
            )
            return None

        if first.start_line in by_line:
            return [by_line[first.start_line].start_index]
        if len(locations) == 1:
            return [locations[0].start_index]
        nearest = min(locations, key=lambda loc: abs(loc.start_line - first.start_line))
        logger.info(
            "Edit for %s moved from line %d to line %d",
            first.file_path,
            first.start_line,
            nearest.start_line,
        )
        return [nearest.start_index]


# ---------------------------------------------------------------------------
# RETRY LOOP
# ---------------------------------------------------------------------------


def _covered_by_retry(success: Success, retry_successes: list[Success]) -> bool:
    start, end = line_span(success)
    for other in retry_successes:
        if other.file_path != success.file_path:
            continue
        if other.original_text == success.original_text:
            return True
        other_start, other_end = line_span(other)
        if other_start <= end and start <= other_end:
            return True
    return False


async def _retry_with_llm(
    options: ApplyOptions,
    session: _ApplySession,
    successes: list[Success],
    failures: list[EditFailure],
    previous_output: str,
) -> tuple[list[Success], list[EditFailure], str] | None:
    """One retry round; None when no retry could be made."""
    write_root = Path(options.write_root)
    settings = options.settings
    live = get_logger()

    failing_files = files_with_failures(failures)
    clean = [s for s in successes if s.file_path not in failing_files]
    if clean:
        written = session.apply(clean, source="pre-retry")
        logger.info("Applied %d edit(s) in fully successful files before retrying", len(written))

    confirm = None
    if options.interactive and options.prompter is not None:
        confirm = options.prompter.confirm
    try:
        context = await get_original_request_context(
            options.content,
            repo_root=options.repo_root or write_root,
            base_dir=options.base_dir or options.repo_root or write_root,
            original_prompt=options.original_prompt,
            cache_file=settings.context_cache_file,
            builder=options.context_builder,
            confirm=confirm,
        )
    except OrionApplyError as exc:
        logger.warning("Cannot retry: %s", exc)
        live.retry("skipped", reason=str(exc))
        return None

    messages = build_retry_prompt(context, previous_output, failures, settings.max_prompt_block_lines)
    live.retry("requested", failures=len(failures))
    try:
        response = await options.retry_requester(messages)
    except Exception as exc:
        logger.warning("Retry request failed: %s", exc)
        live.retry("failed", error=str(exc))
        return None

    with quiet_logging():
        retry_batch = await apply_edits_internal(
            response, write_root, dry_run=True, mode=options.mode, settings=settings
        )
    if retry_batch is None:
        logger.warning("Retry response is not in a diff format; ignoring it")
        live.retry("ignored", reason="unclassified format")
        return None

    retry_successes = [s for s in retry_batch.successes if not session.is_applied(s)]
    # edits already written earlier in this run no longer match; not a failure
    retry_failures = [f for f in retry_batch.failures if edit_key(f) not in session.applied_keys]

    missing = [
        s for s in session.pending(successes) if not _covered_by_retry(s, retry_batch.successes)
    ]
    if missing:
        logger.info("Carrying over %d edit(s) the retry response left out", len(missing))

    live.retry(
        "completed",
        successes=len(retry_successes),
        failures=len(retry_failures),
        carried_over=len(missing),
    )
    return retry_successes + missing, retry_failures, response


# ---------------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------------


def _failure_message(count: int) -> str:
    return (
        f"Failed to apply {count} edits. Re-run with --interactive to resolve them by hand, "
        "--apply-partial to keep the edits that did apply, or --copy-retry-prompt FILE to "
        "hand the failures back to the model."
    )


def _result(session: _ApplySession, successes: list[Success], failures: list[EditFailure]) -> ApplyResult:
    return ApplyResult(
        applied_successes=list(session.applied),
        remaining_successes=session.pending(successes),
        failures=list(failures),
    )


async def apply_llm_edits(options: ApplyOptions) -> ApplyResult | None:
    """Apply an LLM reply to `options.write_root`. See module docstring."""
    write_root = Path(options.write_root)
    settings = options.settings
    session = _ApplySession(write_root, dry_run=options.dry_run)

    with quiet_logging():
        probe = await apply_edits_internal(
            options.content, write_root, dry_run=True, mode=options.mode, settings=settings
        )

    if probe is None:
        await apply_edits_internal(
            options.content, write_root, dry_run=options.dry_run, mode=options.mode, settings=settings
        )
        return None

    successes, failures = probe.successes, probe.failures
    logger.info("Dry run: %d edit(s) apply cleanly, %d failed", len(successes), len(failures))

    if failures and options.retry_requester is not None:
        previous_output = options.content
        for attempt in range(settings.retry_attempts):
            logger.info("Retry %d/%d for %d failure(s)", attempt + 1, settings.retry_attempts, len(failures))
            retried = await _retry_with_llm(options, session, successes, failures, previous_output)
            if retried is None:
                break
            successes, failures, previous_output = retried
            if not failures:
                break

    if not failures:
        session.apply(successes)
        logger.info("All edits applied successfully")
        return _result(session, successes, failures)

    if options.interactive:
        prompter = options.prompter
        if prompter is None:
            from orion_apply.cli.console import ApplyConsole

            prompter = ApplyConsole()

        pending = session.pending(successes)
        if pending and await prompter.confirm(
            f"{len(pending)} edit(s) applied cleanly. Apply them before resolving failures?",
            default=True,
        ):
            session.apply(pending)

        unresolved = await resolve_failures_interactively(
            failures,
            write_root,
            prompter,
            dry_run=options.dry_run,
            launcher=options.diff_launcher or ExternalDiffLauncher(settings.diff_command),
            similarity_threshold=settings.closest_match_threshold,
        )

        pending = session.pending(successes)
        if pending and await prompter.confirm(
            f"Apply the remaining {len(pending)} successful edit(s)?", default=True
        ):
            session.apply(pending)
        return _result(session, successes, unresolved)

    if options.apply_partial:
        session.apply(successes)
        logger.info("Applied %d successful edit(s); %d failed", len(session.applied), len(failures))

    print_detailed_failures(failures)
    raise ApplyEditsError(_failure_message(len(failures)), failures)
