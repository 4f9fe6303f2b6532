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
Orion Apply -- Shared Dialect Plumbing (v7.5.0)

Edits inside one reply are evaluated in order against a per-call working
copy of each file, so a dry run classifies exactly like a real run would.
"""

from __future__ import annotations

import logging
from pathlib import Path

from orion_apply.core.editing.outcomes import Success
from orion_apply.core.editing.safety import read_if_exists, secure_write
from orion_apply.core.editing.text import find_all_matches, split_lines_with_endings

logger = logging.getLogger("orion_apply.editing.dialects")


class WorkingTree:
    """Per-call view of files as earlier edits in the same reply left them."""

    def __init__(self, write_root: str | Path, dry_run: bool = False):
        self.write_root = Path(write_root)
        self.dry_run = dry_run
        self._contents: dict[str, str | None] = {}

    def read(self, file_path: str) -> str | None:
        if file_path not in self._contents:
            self._contents[file_path] = read_if_exists(self.write_root, file_path)
        return self._contents[file_path]

    def write(self, file_path: str, content: str) -> None:
        self._contents[file_path] = content
        if not self.dry_run:
            secure_write(self.write_root, file_path, content)


def _replaced_region(old: str, new: str) -> tuple[int, str, str]:
    """Smallest line range that differs between `old` and `new`."""
    a = split_lines_with_endings(old)
    b = split_lines_with_endings(new)
    limit = min(len(a), len(b))

    prefix = 0
    while prefix < limit and a[prefix] == b[prefix]:
        prefix += 1
    suffix = 0
    while suffix < limit - prefix and a[len(a) - 1 - suffix] == b[len(b) - 1 - suffix]:
        suffix += 1

    # a pure insertion still needs an anchor line to be locatable later
    if prefix == len(a) - suffix:
        if prefix > 0:
            prefix -= 1
        elif suffix > 0:
            suffix -= 1

    return prefix + 1, "".join(a[prefix : len(a) - suffix]), "".join(b[prefix : len(b) - suffix])


def success_for(
    file_path: str, current: str | None, new_content: str, original: str, updated: str
) -> Success:
    """Describe an applied edit by the region it actually replaced."""
    if current is None or not original.strip():
        return Success(file_path, original, updated, start_line=0)

    matches = find_all_matches(current, original)
    if (
        len(matches) == 1
        and current.count(original) == 1
        and current.replace(original, updated, 1) == new_content
    ):
        location = matches[0]
        return Success(file_path, original, updated, start_line=location.start_line)

    start_line, removed, inserted = _replaced_region(current, new_content)
    return Success(file_path, removed, inserted, start_line=start_line)
