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
Orion Apply -- Search/Replace Dialect (v7.5.0)

Parses marker blocks of the form

    path/to/file.py
    <<<<<<< SEARCH
    old lines
    =======
    new lines
    >>>>>>> REPLACE

and applies each block. Matching is tolerant of the usual LLM slips:
uniformly missing indentation, trailing blank lines, a spurious leading
blank line, and `...` elisions.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from orion_apply.core.editing.closest_match import DEFAULT_SIMILARITY_THRESHOLD, best_closest_match
from orion_apply.core.editing.dialects.common import WorkingTree, success_for
from orion_apply.core.editing.outcomes import EditOutcome, NoMatchFailure, NotUniqueFailure
from orion_apply.core.editing.text import find_all_matches, split_lines_with_endings
from orion_apply.core.errors import EditParseError

logger = logging.getLogger("orion_apply.editing.dialects.search_replace")

FENCE = "```"

HEAD_RE = re.compile(r"^<{5,9} SEARCH\s*$")
DIVIDER_RE = re.compile(r"^={5,9}\s*$")
UPDATED_RE = re.compile(r"^>{5,9} REPLACE\s*$")
DOTS_RE = re.compile(r"^\s*\.\.\.\n", re.MULTILINE)

SHELL_FENCES = (
    "```bash", "```sh", "```shell", "```cmd", "```batch", "```powershell",
    "```ps1", "```zsh", "```fish", "```ksh", "```csh", "```tcsh",
)

SAMPLE_PROMPT_PATH = "mathweb/flask"


@dataclass
class SearchReplaceBlock:
    file_path: str
    original: str
    updated: str


# ---------------------------------------------------------------------------
# PARSING
# ---------------------------------------------------------------------------


def strip_filename(line: str) -> str | None:
    name = line.strip()
    if name == "..." or name.startswith(FENCE):
        return None
    if HEAD_RE.match(name) or DIVIDER_RE.match(name) or UPDATED_RE.match(name):
        return None
    name = name.removesuffix(":").removeprefix("#").strip()
    name = name.strip("`").strip("*")
    return name or None


def find_filename(preceding: list[str]) -> str | None:
    """Pick a filename from up to three lines before a SEARCH marker."""
    candidates = []
    for line in reversed(preceding[-3:]):
        name = strip_filename(line)
        if name:
            candidates.append(name)
        # keep looking back only across fence lines
        if not line.startswith(FENCE):
            break
    if not candidates:
        return None
    for name in candidates:
        if "." in name:
            return name
    return candidates[0]


def find_blocks(content: str) -> list[SearchReplaceBlock]:
    lines = split_lines_with_endings(content)
    blocks: list[SearchReplaceBlock] = []
    current_filename: str | None = None
    i = 0

    while i < len(lines):
        line = lines[i]

        next_is_block = i + 1 < len(lines) and HEAD_RE.match(lines[i + 1].strip())
        if line.strip().startswith(SHELL_FENCES) and not next_is_block:
            i += 1
            while i < len(lines) and not lines[i].strip().startswith(FENCE):
                i += 1
            i += 1
            continue

        if HEAD_RE.match(line.strip()):
            try:
                filename = find_filename(lines[max(0, i - 3) : i])
                if filename:
                    current_filename = filename
                elif not current_filename:
                    raise ValueError(
                        "Bad/missing filename. The filename must be alone on the line "
                        f"before the opening fence {FENCE}"
                    )

                original: list[str] = []
                i += 1
                while i < len(lines) and not DIVIDER_RE.match(lines[i].strip()):
                    original.append(lines[i])
                    i += 1
                if i >= len(lines):
                    raise ValueError("Expected `=======`")

                updated: list[str] = []
                i += 1
                while (
                    i < len(lines)
                    and not UPDATED_RE.match(lines[i].strip())
                    and not DIVIDER_RE.match(lines[i].strip())
                ):
                    updated.append(lines[i])
                    i += 1
                if i >= len(lines):
                    raise ValueError("Expected `>>>>>>> REPLACE` or `=======`")

                blocks.append(
                    SearchReplaceBlock(current_filename, "".join(original), "".join(updated))
                )
            except ValueError as exc:
                processed = "".join(lines[: i + 1])
                raise EditParseError(f"{processed}\n^^^ {exc}") from None
        i += 1

    return blocks


# ---------------------------------------------------------------------------
# MATCHING
# ---------------------------------------------------------------------------


def _prep(text: str) -> tuple[str, list[str]]:
    if text and not text.endswith("\n"):
        text += "\n"
    return text, split_lines_with_endings(text)


def strip_quoted_wrapping(text: str, file_path: str | None = None) -> str:
    """Drop a leading filename line and surrounding fences from a block body."""
    if not text:
        return text
    lines = text.split("\n")
    if file_path and lines[0].strip().endswith(PurePosixPath(file_path).name):
        lines = lines[1:]
    if lines and lines[0].startswith(FENCE) and lines[-1].startswith(FENCE):
        lines = lines[1:-1]
    result = "\n".join(lines)
    if result and not result.endswith("\n"):
        result += "\n"
    return result


def perfect_replace(whole: list[str], part: list[str], replace: list[str]) -> str | None:
    size = len(part)
    for i in range(len(whole) - size + 1):
        if whole[i : i + size] == part:
            return "".join(whole[:i] + replace + whole[i + size :])
    return None


def _leading(line: str) -> int:
    return len(line) - len(line.lstrip())


def match_but_for_leading_whitespace(whole: list[str], part: list[str]) -> str | None:
    if any(w.strip() != p.strip() for w, p in zip(whole, part)):
        return None
    offsets = {
        w[: _leading(w) - _leading(p)]
        for w, p in zip(whole, part)
        if w.strip() and _leading(w) >= _leading(p)
    }
    if len(offsets) != 1:
        return None
    return offsets.pop()


def replace_with_missing_leading_whitespace(
    whole: list[str], part: list[str], replace: list[str]
) -> str | None:
    leading = [_leading(p) for p in part if p.strip()] + [_leading(r) for r in replace if r.strip()]
    if leading and min(leading) > 0:
        trim = min(leading)
        part = [p[trim:].rstrip() + "\n" for p in part]
        replace = [r[trim:].rstrip() + "\n" for r in replace]

    size = len(part)
    for i in range(len(whole) - size + 1):
        add = match_but_for_leading_whitespace(whole[i : i + size], part)
        if add is None:
            continue
        adjusted = [add + r if r.strip() else r for r in replace]
        return "".join(whole[:i] + adjusted + whole[i + size :])
    return None


def _without_trailing_blank_lines(lines: list[str]) -> list[str] | None:
    for index in range(len(lines) - 1, -1, -1):
        if lines[index].strip():
            return lines[: index + 1]
    return None


def replace_with_extra_trailing_newlines(
    whole: list[str], part: list[str], replace: list[str]
) -> str | None:
    trimmed = [_without_trailing_blank_lines(x) for x in (whole, part, replace)]
    if any(t is None for t in trimmed):
        return None
    return perfect_replace(*trimmed)


def perfect_or_whitespace(whole: list[str], part: list[str], replace: list[str]) -> str | None:
    return (
        perfect_replace(whole, part, replace)
        or replace_with_missing_leading_whitespace(whole, part, replace)
        or replace_with_extra_trailing_newlines(whole, part, replace)
    )


def try_dotdotdots(whole: str, part: str, replace: str) -> str | None:
    """Apply an edit whose blocks elide unchanged code with `...` lines."""
    part_pieces = DOTS_RE.split(part)
    replace_pieces = DOTS_RE.split(replace)
    if len(part_pieces) != len(replace_pieces) or len(part_pieces) == 1:
        return None

    result = whole
    for part_piece, replace_piece in zip(part_pieces, replace_pieces):
        if not part_piece and not replace_piece:
            continue
        if not part_piece:
            if not result.endswith("\n"):
                result += "\n"
            result += replace_piece
            continue
        if result.count(part_piece) != 1:
            return None
        result = result.replace(part_piece, replace_piece, 1)
    return result


def replace_most_similar_chunk(whole: str, part: str, replace: str) -> str | None:
    whole, whole_lines = _prep(whole)
    part, part_lines = _prep(part)
    replace, replace_lines = _prep(replace)

    result = perfect_or_whitespace(whole_lines, part_lines, replace_lines)
    if result:
        return result

    if len(part_lines) > 2 and not part_lines[0].strip():
        result = perfect_or_whitespace(whole_lines, part_lines[1:], replace_lines)
        if result:
            return result

    return try_dotdotdots(whole, part, replace)


def do_replace(file_path: str, content: str | None, before: str, after: str) -> str | None:
    if content is None:
        return after if not before.strip() else None
    if not before.strip():
        return content + after
    return replace_most_similar_chunk(content, before, after)


# ---------------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------------


async def process_search_replace(
    content: str,
    write_root: str | Path,
    dry_run: bool = False,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    tree: WorkingTree | None = None,
) -> list[EditOutcome]:
    """Classify and (unless dry_run) apply every SEARCH/REPLACE block."""
    tree = tree or WorkingTree(write_root, dry_run)
    outcomes: list[EditOutcome] = []

    for block in find_blocks(content):
        path = block.file_path.replace("\\", "/")
        if SAMPLE_PROMPT_PATH in path:
            raise EditParseError(
                "Found edits from the sample prompt. Perhaps you forgot to copy the results?"
            )

        current = tree.read(path)
        if current is None and " " in path:
            logger.info("Skipping nonexistent file that looks more like a comment: %s", path)
            continue

        before = strip_quoted_wrapping(block.original, path)
        after = strip_quoted_wrapping(block.updated, path)

        locations = find_all_matches(current, before) if current is not None and before.strip() else ()
        if len(locations) > 1:
            outcomes.append(NotUniqueFailure(path, before, after, locations))
            continue

        new_content = do_replace(path, current, before, after)
        if new_content is None:
            outcomes.append(
                NoMatchFailure(path, before, after, best_closest_match(current, before, similarity_threshold))
            )
            continue

        outcomes.append(success_for(path, current, new_content, before, after))
        logger.info("Applying edit to %s", path)
        tree.write(path, new_content)

    return outcomes
