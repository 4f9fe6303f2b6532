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
Orion Apply -- Line & Diff Helpers (v7.5.0)

Line splitting keeps each line's own ending (\n, \r\n or \r) so that
splicing a replacement into a file never rewrites untouched lines.
"""

from __future__ import annotations

import bisect
import difflib
import re

from orion_apply.core.editing.outcomes import MatchLocation

_LINE_RE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+\Z")


def split_lines_with_endings(text: str) -> list[str]:
    """Split text into lines, keeping line endings attached."""
    if not text:
        return []
    return _LINE_RE.findall(text)


def splice_lines(
    content: str, start_line: int, line_count: int, updated_text: str
) -> str:
    """Replace `line_count` lines starting at 1-based `start_line`."""
    lines = split_lines_with_endings(content)
    index = start_line - 1
    return "".join(lines[:index] + split_lines_with_endings(updated_text) + lines[index + line_count :])


def lines_match_at(content: str, start_line: int, expected_lines: list[str] | tuple[str, ...]) -> bool:
    """True when `expected_lines` appear verbatim at 1-based `start_line`."""
    lines = split_lines_with_endings(content)
    index = start_line - 1
    if index < 0 or index + len(expected_lines) > len(lines):
        return False
    return lines[index : index + len(expected_lines)] == list(expected_lines)


def non_whitespace_length(text: str) -> int:
    return len("".join(text.split()))


def find_all_matches(whole: str, part: str) -> tuple[MatchLocation, ...]:
    """Locate every non-overlapping occurrence of `part` that starts a line."""
    if not part or not whole:
        return ()

    file_lines = split_lines_with_endings(whole)
    line_offsets = []
    offset = 0
    for line in file_lines:
        line_offsets.append(offset)
        offset += len(line)

    part_line_count = len(split_lines_with_endings(part))
    locations = []
    index = whole.find(part)
    while index != -1:
        line_index = bisect.bisect_right(line_offsets, index) - 1
        if index != line_offsets[line_index]:
            index = whole.find(part, index + 1)
            continue
        context = tuple(file_lines[line_index : line_index + part_line_count])
        locations.append(
            MatchLocation(start_line=line_index + 1, context_lines=context, start_index=index)
        )
        index = whole.find(part, index + len(part))
    return tuple(locations)


# ---------------------------------------------------------------------------
# DIFF RENDERING
# ---------------------------------------------------------------------------


def _terminated(lines: list[str]) -> list[str]:
    if lines and not lines[-1].endswith(("\n", "\r")):
        return lines[:-1] + [lines[-1] + "\n"]
    return lines


def render_diff(
    before: str,
    after: str,
    from_label: str = "before",
    to_label: str = "after",
    context: int | None = 3,
    headers: bool = True,
) -> str:
    """Unified diff of two texts. `context=None` shows every line."""
    before_lines = _terminated(split_lines_with_endings(before))
    after_lines = _terminated(split_lines_with_endings(after))
    if context is None:
        context = max(len(before_lines), len(after_lines))
    diff_lines = list(
        difflib.unified_diff(before_lines, after_lines, from_label, to_label, n=context)
    )
    if not headers:
        diff_lines = diff_lines[2:]
    return "".join(diff_lines)


def indent_block(text: str, prefix: str = "  ") -> str:
    return "\n".join(prefix + line for line in text.rstrip("\n").split("\n"))
