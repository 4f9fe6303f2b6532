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
Orion Apply -- Whole File Dialect (v7.5.0)

Each fenced block carries a complete file. The path is either the first
line inside the fence or the line just above it:

    ```                          src/app.py
    ./src/app.py                 ```python
    <full content>               <full content>
    ```                          ```

Writes happen directly; nothing is classified or returned.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from orion_apply.core.editing.dialects.search_replace import FENCE, strip_filename
from orion_apply.core.editing.safety import secure_write
from orion_apply.core.editing.text import split_lines_with_endings

logger = logging.getLogger("orion_apply.editing.dialects.whole_file")

_PATH_RE = re.compile(r"^[\w./\\@+-]+$")


def _as_path(candidate: str | None) -> str | None:
    if not candidate:
        return None
    candidate = candidate.strip()
    if not _PATH_RE.match(candidate):
        return None
    name = candidate.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in name and "/" not in candidate:
        return None
    return candidate.removeprefix("./")


def find_whole_files(content: str) -> list[tuple[str, str]]:
    """Return (path, content) pairs for every fenced whole-file block."""
    lines = split_lines_with_endings(content)
    files: list[tuple[str, str]] = []
    i = 0
    while i < len(lines):
        if not lines[i].strip().startswith(FENCE):
            i += 1
            continue

        start = i + 1
        end = start
        while end < len(lines) and not lines[end].strip().startswith(FENCE):
            end += 1
        body = lines[start:end]

        path = _as_path(body[0]) if body else None
        if path:
            body = body[1:]
        elif i > 0:
            path = _as_path(strip_filename(lines[i - 1]))

        if path:
            files.append((path, "".join(body)))
        else:
            logger.warning("Skipping fenced block without a file path at line %d", i + 1)
        i = end + 1
    return files


async def process_whole_files(content: str, write_root: str | Path, dry_run: bool = False) -> None:
    for path, body in find_whole_files(content):
        if dry_run:
            logger.info("[Dry Run] Would write %s (%d lines)", path, len(split_lines_with_endings(body)))
            continue
        secure_write(write_root, path, body)
        logger.info("Wrote %s", path)
