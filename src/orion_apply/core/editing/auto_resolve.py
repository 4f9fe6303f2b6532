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
Orion Apply -- Not-Unique Auto-Resolver (v7.5.0)

When a model repeats the same edit once per occurrence, every copy comes
back NotUnique. If the number of copies equals the number of places the
original text occurs, the model meant "change all of them": apply each
occurrence once.

Safety invariants:
- Counts must match exactly; otherwise every copy stays a failure.
- Occurrences are spliced bottom-to-top so earlier line numbers hold.
- Each splice re-verifies the original text at its location first. One
  mismatch aborts the whole group and nothing in it is written.
"""

from __future__ import annotations

import logging
from collections import OrderedDict

from orion_apply.core.editing.dialects.common import WorkingTree
from orion_apply.core.editing.outcomes import (
    EditFailure,
    EditKey,
    NotUniqueFailure,
    Success,
    edit_key,
)
from orion_apply.core.editing.text import (
    find_all_matches,
    lines_match_at,
    splice_lines,
    split_lines_with_endings,
)
from orion_apply.core.logging import get_logger

logger = logging.getLogger("orion_apply.editing.auto_resolve")


def _group_not_unique(failures: list[EditFailure]) -> OrderedDict[EditKey, list[NotUniqueFailure]]:
    groups: OrderedDict[EditKey, list[NotUniqueFailure]] = OrderedDict()
    for failure in failures:
        if isinstance(failure, NotUniqueFailure):
            groups.setdefault(edit_key(failure), []).append(failure)
    return groups


def _resolve_group(tree: WorkingTree, group: list[NotUniqueFailure]) -> list[Success] | None:
    first = group[0]
    content = tree.read(first.file_path)
    if content is None:
        return None

    locations = find_all_matches(content, first.original_text)
    if len(locations) != len(group):
        logger.info(
            "Not auto-resolving %s: %d edit(s) for %d location(s)",
            first.file_path,
            len(group),
            len(locations),
        )
        return None

    original_lines = split_lines_with_endings(first.original_text)
    updated = content
    for location in sorted(locations, key=lambda loc: loc.start_line, reverse=True):
        if not lines_match_at(updated, location.start_line, original_lines):
            logger.warning(
                "Auto-resolve aborted for %s: text no longer matches at line %d",
                first.file_path,
                location.start_line,
            )
            return None
        updated = splice_lines(updated, location.start_line, len(original_lines), first.updated_text)

    tree.write(first.file_path, updated)
    return [
        Success(first.file_path, first.original_text, first.updated_text, start_line=loc.start_line)
        for loc in locations
    ]


async def auto_resolve_not_unique(
    failures: list[EditFailure], tree: WorkingTree
) -> tuple[list[Success], list[EditFailure]]:
    """Promote NotUnique groups whose edit count equals their location count.

    Returns (promoted successes, failures left untouched).
    """
    resolved: set[EditKey] = set()
    promoted: list[Success] = []

    for key, group in _group_not_unique(failures).items():
        successes = _resolve_group(tree, group)
        if successes is None:
            continue
        resolved.add(key)
        promoted.extend(successes)
        logger.info("Auto-resolved %d identical edit(s) in %s", len(successes), key[0])
        if not tree.dry_run:
            get_logger().edit("auto-resolved", key[0], count=len(successes))

    remaining = [
        failure
        for failure in failures
        if not (isinstance(failure, NotUniqueFailure) and edit_key(failure) in resolved)
    ]
    return promoted, remaining
