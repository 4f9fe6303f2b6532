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
Orion Apply -- Failure Reporter (v7.5.0)

Renders unresolved edit failures twice over:

    console   detailed per-failure report, enough to fix things by hand
    LLM       compact description embedded in the retry prompt
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from orion_apply.core.editing.outcomes import EditFailure, NoMatchFailure
from orion_apply.core.editing.text import indent_block, render_diff, split_lines_with_endings

logger = logging.getLogger("orion_apply.editing.reporting")

DEFAULT_MAX_BLOCK_LINES = 10


def failure_label(failure: EditFailure) -> str:
    return "No Exact Match" if isinstance(failure, NoMatchFailure) else "Not Unique"


def trim_block(text: str, max_lines: int = DEFAULT_MAX_BLOCK_LINES) -> str:
    """Keep the first and last max_lines/2 lines of a long block."""
    lines = split_lines_with_endings(text)
    if len(lines) <= max_lines:
        return text
    keep = max(max_lines // 2, 1)
    head = "".join(lines[:keep])
    tail = "".join(lines[-keep:])
    if not head.endswith("\n"):
        head += "\n"
    return f"{head}... (trimmed {len(lines) - 2 * keep} lines) ...\n{tail}"


def _fenced(text: str) -> str:
    body = text if text.endswith("\n") else text + "\n"
    return f"```\n{body}```"


def _closest_diff(closest: str, original: str) -> str:
    return render_diff(
        closest, original, "closest match", "expected original", context=None, headers=False
    )


# ---------------------------------------------------------------------------
# LLM-FACING
# ---------------------------------------------------------------------------


def _describe_for_llm(index: int, failure: EditFailure, max_lines: int) -> str:
    parts = [
        f"Failure {index}: {failure_label(failure)}",
        f"File: {failure.file_path}",
        "Original text that was supposed to be replaced:",
        _fenced(trim_block(failure.original_text, max_lines)),
        "Intended replacement text:",
        _fenced(trim_block(failure.updated_text, max_lines)),
    ]

    if isinstance(failure, NoMatchFailure):
        parts.append("The original text was not found in the file.")
        match = failure.closest_match
        if match:
            closest = "".join(match.lines)
            parts.append(
                f"Closest match (lines {match.start_line}-{match.end_line}, "
                f"similarity {match.score:.2f}):"
            )
            parts.append(_fenced(trim_block(closest, max_lines)))
            diff = _closest_diff(closest, failure.original_text)
            parts.append("Diff from the closest match to the expected original text:")
            parts.append(_fenced(indent_block(diff)))
    else:
        locations = failure.match_locations
        parts.append(f"The original text was found in {len(locations)} locations:")
        for location in locations:
            parts.append(f"- Starting at line {location.start_line}:")
            parts.append(_fenced(trim_block("".join(location.context_lines), max_lines)))

    return "\n".join(parts)


def format_failures_for_llm(
    failures: list[EditFailure], max_block_lines: int = DEFAULT_MAX_BLOCK_LINES
) -> str:
    """Describe failures for a retry prompt; empty string when there are none."""
    if not failures:
        return ""
    sections = [
        _describe_for_llm(i, failure, max_block_lines) for i, failure in enumerate(failures, 1)
    ]
    return "The following edit(s) failed to apply:\n\n" + "\n\n---\n\n".join(sections)


# ---------------------------------------------------------------------------
# CONSOLE
# ---------------------------------------------------------------------------


def describe_failure(failure: EditFailure) -> str:
    """Full console report for one failure, no trimming."""
    lines = [
        f"--- Failure: {failure_label(failure)} ---",
        f"File: {failure.file_path}",
    ]

    if isinstance(failure, NoMatchFailure):
        lines.append("The following text block to be replaced was not found:")
        lines.append(indent_block(failure.original_text))
        match = failure.closest_match
        if match:
            closest = "".join(match.lines)
            lines.append(
                f"Closest match found (score: {match.score:.2f}) at lines "
                f"{match.start_line}-{match.end_line}:"
            )
            lines.append(indent_block(closest))
            lines.append("Diff between closest match and expected original:")
            lines.append(
                indent_block(_closest_diff(closest, failure.original_text))
            )
        else:
            lines.append("No close match could be found.")
    else:
        lines.append(
            f"The text block to be replaced was found in {len(failure.match_locations)} locations:"
        )
        lines.append(indent_block(failure.original_text))
        for number, location in enumerate(failure.match_locations, 1):
            lines.append(f"Location {number} (Line {location.start_line}):")
            lines.append(indent_block("".join(location.context_lines), "    "))

    return "\n".join(lines)


def print_detailed_failures(
    failures: list[EditFailure], emit: Callable[[str], None] = print
) -> None:
    """Print every failure in full and log a one-line summary per failure."""
    if not failures:
        return
    emit(f"\n{len(failures)} edit(s) could not be applied:\n")
    for failure in failures:
        logger.warning("Unresolved %s in %s", failure_label(failure).lower(), failure.file_path)
        emit(describe_failure(failure))
        emit("")
