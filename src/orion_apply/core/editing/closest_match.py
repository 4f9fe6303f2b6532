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
Orion Apply -- Closest Match Finder (v7.5.0)

When an edit's original text is not found verbatim, slide a window the
size of the search block over the file and rank every window by
SequenceMatcher similarity. The best candidates are offered to the user
(interactive mode) and to the model (retry prompt).
"""

from __future__ import annotations

import difflib

from orion_apply.core.editing.outcomes import ClosestMatch
from orion_apply.core.editing.text import split_lines_with_endings

DEFAULT_SIMILARITY_THRESHOLD = 0.6


def find_closest_matches(
    file_content: str,
    search_lines: list[str],
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    max_matches: int = 1,
) -> list[ClosestMatch]:
    """Return up to `max_matches` windows scoring at least the threshold, best first."""
    file_lines = split_lines_with_endings(file_content)
    window = len(search_lines)
    if window == 0 or window > len(file_lines):
        return []

    target = "".join(search_lines)
    matcher = difflib.SequenceMatcher(autojunk=False)
    matcher.set_seq2(target)

    candidates: list[ClosestMatch] = []
    for i in range(len(file_lines) - window + 1):
        chunk = file_lines[i : i + window]
        matcher.set_seq1("".join(chunk))
        if matcher.real_quick_ratio() < similarity_threshold:
            continue
        if matcher.quick_ratio() < similarity_threshold:
            continue
        score = matcher.ratio()
        if score >= similarity_threshold:
            candidates.append(
                ClosestMatch(start_line=i + 1, end_line=i + window, lines=tuple(chunk), score=score)
            )

    # stable sort keeps the earliest window first on ties
    candidates.sort(key=lambda match: match.score, reverse=True)
    return candidates[:max_matches]


def best_closest_match(
    file_content: str | None,
    original_text: str,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> ClosestMatch | None:
    if not file_content:
        return None
    matches = find_closest_matches(
        file_content, split_lines_with_endings(original_text), similarity_threshold
    )
    return matches[0] if matches else None
