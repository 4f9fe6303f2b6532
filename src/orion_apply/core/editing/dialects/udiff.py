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
Orion Apply -- Unified Diff Dialect (v7.5.0)

Finds unified diff hunks in an LLM reply (```diff fences, nested fences,
or a bare diff starting with '--- ') and applies them hunk by hunk.

APPLICATION ORDER (per hunk):
    1. Normalise: strip whitespace from blank lines, regenerate the hunk
       with full context.
    2. Direct: replace the hunk's full "before" text. More than one exact
       occurrence is a NotUnique outcome.
    3. Partial: split the hunk into context/change sections and retry each
       change with less context, converting edge change lines to context.
    4. Otherwise: NoMatch, with the closest fuzzy window attached.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from pathlib import Path

from orion_apply.core.editing.closest_match import DEFAULT_SIMILARITY_THRESHOLD, best_closest_match
from orion_apply.core.editing.dialects.common import WorkingTree, success_for
from orion_apply.core.editing.outcomes import (
    EditOutcome,
    NoMatchFailure,
    NotUniqueFailure,
    Success,
)
from orion_apply.core.editing.text import (
    find_all_matches,
    non_whitespace_length,
    split_lines_with_endings,
)

logger = logging.getLogger("orion_apply.editing.dialects.udiff")


class SearchTextNotUnique(Exception):
    """Internal signal: the hunk's "before" text occurs more than once."""


@dataclass
class Hunk:
    file_path: str | None
    lines: list[str]


# ---------------------------------------------------------------------------
# HUNK ALGEBRA
# ---------------------------------------------------------------------------


def hunk_to_before_after(hunk: list[str]) -> tuple[list[str], list[str]]:
    before: list[str] = []
    after: list[str] = []
    for line in hunk:
        if not line.strip("\r\n"):
            # bare blank line: context that lost its leading space
            before.append(line)
            after.append(line)
            continue
        op, text = line[0], line[1:]
        if op == " ":
            before.append(text)
            after.append(text)
        elif op == "-":
            before.append(text)
        elif op == "+":
            after.append(text)
    return before, after


def _joined(hunk: list[str]) -> tuple[str, str]:
    before, after = hunk_to_before_after(hunk)
    return "".join(before), "".join(after)


def _cleanup_whitespace_lines(lines: list[str]) -> list[str]:
    cleaned = []
    for line in lines:
        if line.strip():
            cleaned.append(line)
        else:
            cleaned.append(line[len(line.rstrip("\r\n")) :])
    return cleaned


def normalize_hunk(hunk: list[str]) -> list[str]:
    """Regenerate a hunk with full context from its cleaned before/after."""
    before, after = hunk_to_before_after(hunk)
    before = _cleanup_whitespace_lines(before)
    after = _cleanup_whitespace_lines(after)

    matcher = difflib.SequenceMatcher(None, before, after, autojunk=False)
    normalized: list[str] = []
    changed = False
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            normalized.extend(" " + line for line in before[i1:i2])
            continue
        changed = True
        normalized.extend("-" + line for line in before[i1:i2])
        normalized.extend("+" + line for line in after[j1:j2])
    return normalized if changed else []


# ---------------------------------------------------------------------------
# APPLICATION
# ---------------------------------------------------------------------------


def search_and_replace(whole: str, part: str, replace: str) -> str | None:
    count = whole.count(part)
    if count == 0:
        return None
    if count > 1:
        raise SearchTextNotUnique(f"Search text occurs {count} times.")
    return whole.replace(part, replace, 1)


def directly_apply_hunk(content: str, hunk: list[str]) -> str | None:
    before_text, after_text = _joined(hunk)
    if not before_text.strip():
        return None

    # refuse a repeated replace on a tiny bit of non-whitespace context
    if non_whitespace_length(before_text) < 10 and content.count(before_text) > 1:
        return None

    return search_and_replace(content, before_text, after_text)


def _is_change(line: str) -> bool:
    return bool(line) and line[0] in "+-"


def _to_context(line: str) -> str:
    return " " + line[1:] if _is_change(line) else line


def _try_converted_context(
    content: str,
    preceding: list[str],
    changes: list[str],
    following: list[str],
    convert_preceding: int,
    convert_following: int,
) -> str | None:
    if convert_preceding + convert_following >= len(changes):
        return None
    middle_end = len(changes) - convert_following
    switched = (
        preceding
        + [_to_context(line) for line in changes[:convert_preceding]]
        + changes[convert_preceding:middle_end]
        + [_to_context(line) for line in changes[middle_end:]]
        + following
    )
    return directly_apply_hunk(content, switched)


_CONVERT_TABLE = ((0, 0), (1, 0), (2, 0), (0, 1), (0, 2), (1, 1), (2, 1), (1, 2), (2, 2))


def apply_partial_hunk(
    content: str, preceding: list[str], changes: list[str], following: list[str]
) -> str | None:
    for convert_preceding, convert_following in _CONVERT_TABLE:
        result = _try_converted_context(
            content, preceding, changes, following, convert_preceding, convert_following
        )
        if result is not None:
            return result

    len_prec, len_foll = len(preceding), len(following)
    total = len_prec + len_foll
    # drop context lines, most context first
    for drop in range(total + 1):
        use_context = total - drop
        for use_prec in range(min(len_prec, use_context), -1, -1):
            use_foll = use_context - use_prec
            if use_foll < 0 or use_foll > len_foll:
                continue
            this_prec = preceding[-use_prec:] if use_prec else []
            result = directly_apply_hunk(content, this_prec + changes + following[:use_foll])
            if result is not None:
                return result
    return None


def apply_hunk(content: str, hunk: list[str]) -> str | None:
    result = directly_apply_hunk(content, hunk)
    if result is not None:
        return result

    sections: list[tuple[bool, list[str]]] = []
    for line in hunk:
        change = _is_change(line)
        if sections and sections[-1][0] == change:
            sections[-1][1].append(line)
        else:
            sections.append((change, [line]))

    current = content
    for i, (is_change, lines) in enumerate(sections):
        if not is_change:
            continue
        preceding = sections[i - 1][1] if i > 0 and not sections[i - 1][0] else []
        following = sections[i + 1][1] if i + 1 < len(sections) and not sections[i + 1][0] else []
        partial = apply_partial_hunk(current, preceding, lines, following)
        if partial is None:
            return None
        current = partial
    return current


def do_replace(content: str | None, hunk: list[str]) -> str | None:
    """Apply one hunk; None when it cannot be placed."""
    before_text, after_text = _joined(hunk)
    if content is None:
        return after_text if not before_text.strip() else None
    if not before_text.strip():
        return content + after_text
    return apply_hunk(content, hunk)


# ---------------------------------------------------------------------------
# PARSING
# ---------------------------------------------------------------------------


def _header_path(a_name: str, b_name: str) -> str:
    if (a_name.startswith("a/") or a_name == "/dev/null") and b_name.startswith("b/"):
        return b_name[2:]
    return b_name


def _process_block(lines: list[str], start: int) -> tuple[list[Hunk], int]:
    """Collect hunks from a diff block starting at `start`, up to the next fence."""
    end = start
    while end < len(lines) and not lines[end].startswith("```"):
        end += 1

    block = lines[start:end] + ["@@ @@\n"]
    hunks: list[Hunk] = []
    current_path: str | None = None
    current: list[str] = []
    in_hunk = False
    has_changes = False

    i = 0
    if len(block) >= 2 and block[0].startswith("--- ") and block[1].startswith("+++ "):
        current_path = _header_path(block[0][4:].strip(), block[1][4:].strip())
        i = 2

    while i < len(block):
        line = block[i]
        if line.startswith("@@"):
            if in_hunk and has_changes:
                hunks.append(Hunk(current_path, current))
            current = []
            in_hunk = True
            has_changes = False
        elif line.startswith("--- ") and i + 1 < len(block) and block[i + 1].startswith("+++ "):
            if in_hunk and has_changes:
                if current and current[-1] == "\n":
                    current.pop()
                hunks.append(Hunk(current_path, current))
            current_path = _header_path(line[4:].strip(), block[i + 1][4:].strip())
            i += 1
            current = []
            in_hunk = False
            has_changes = False
        elif in_hunk:
            current.append(line)
            if _is_change(line):
                has_changes = True
        i += 1

    return hunks, end + 1


def find_diffs(content: str) -> list[Hunk]:
    """Extract hunks from fenced ```diff blocks or a bare leading diff."""
    content = content.lstrip()
    if not content.endswith("\n"):
        content += "\n"
    lines = split_lines_with_endings(content)

    hunks: list[Hunk] = []
    fence_stack: list[str] = []
    i = 0
    while i < len(lines):
        line = lines[i].rstrip()

        if line.startswith("```"):
            fence_type = line[3:].strip()
            if fence_type == "diff" and not fence_stack:
                found, i = _process_block(lines, i + 1)
                hunks.extend(found)
                continue
            if fence_type == "diff":
                # nested diff block: collect up to its matching close fence
                nested: list[str] = []
                depth = 1
                j = i
                while j < len(lines) and depth > 0:
                    nested.append(lines[j])
                    if lines[j].startswith("```"):
                        if lines[j].strip() == "```":
                            depth -= 1
                        elif lines[j].startswith("```diff"):
                            depth += 1
                    j += 1
                if nested and nested[-1].strip() == "```":
                    nested.pop()
                hunks.extend(find_diffs("".join(nested)))
                i = j
                continue
            if fence_type or not fence_stack:
                fence_stack.append(fence_type)
            else:
                fence_stack.pop()
        elif not fence_stack and line.startswith("--- "):
            found, _ = _process_block(lines, i)
            hunks.extend(found)
            if found:
                return hunks
        i += 1

    return hunks


# ---------------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------------


def _resolve_paths(raw: list[Hunk]) -> list[Hunk]:
    resolved: list[Hunk] = []
    last_path: str | None = None
    for hunk in raw:
        path = hunk.file_path
        if path == "/dev/null":
            continue
        if path:
            last_path = path
        else:
            path = last_path
        if not path:
            logger.warning("Skipping hunk with no associated file path: %s", "".join(hunk.lines))
            continue
        resolved.append(Hunk(path.replace("\\", "/"), hunk.lines))
    return resolved


async def process_unified_diff(
    content: str,
    write_root: str | Path,
    dry_run: bool = False,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    tree: WorkingTree | None = None,
) -> list[EditOutcome]:
    """Classify and (unless dry_run) apply every hunk in `content`."""
    tree = tree or WorkingTree(write_root, dry_run)
    outcomes: list[EditOutcome] = []

    for hunk in _resolve_paths(find_diffs(content)):
        normalized = normalize_hunk(hunk.lines)
        if not normalized:
            continue
        path = hunk.file_path
        current = tree.read(path)
        if current is None and " " in path:
            logger.info("Skipping nonexistent file that looks more like a comment: %s", path)
            continue

        before_text, after_text = _joined(normalized)
        try:
            new_content = do_replace(current, normalized)
        except SearchTextNotUnique:
            outcomes.append(
                NotUniqueFailure(path, before_text, after_text, find_all_matches(current or "", before_text))
            )
            continue

        if new_content is None:
            outcomes.append(
                NoMatchFailure(
                    path,
                    before_text,
                    after_text,
                    best_closest_match(current, before_text, similarity_threshold),
                )
            )
            continue

        outcomes.append(success_for(path, current, new_content, before_text, after_text))
        logger.info("Applying hunk to %s", path)
        tree.write(path, new_content)

    logger.info(
        "Processing complete. Success: %d, No Match: %d, Not Unique: %d",
        sum(isinstance(o, Success) for o in outcomes),
        sum(isinstance(o, NoMatchFailure) for o in outcomes),
        sum(isinstance(o, NotUniqueFailure) for o in outcomes),
    )
    return outcomes
