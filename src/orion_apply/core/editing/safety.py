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
Orion Apply -- Write Safety (v7.5.0)

Every path an LLM names is resolved against the write root and rejected
if it escapes it. Files are read and written without newline translation
so CRLF and CR files keep their line endings byte for byte.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from orion_apply.core.errors import PathEscapeError

logger = logging.getLogger("orion_apply.editing.safety")


def validate_path(write_root: str | Path, file_path: str) -> Path:
    """Resolve `file_path` under `write_root`, refusing traversal and escapes."""
    if not file_path or not file_path.strip():
        raise PathEscapeError("Empty file path")

    normalized = file_path.replace("\\", "/")
    root = Path(write_root).resolve()
    target = (root / normalized).resolve()

    try:
        target.relative_to(root)
    except ValueError:
        raise PathEscapeError(
            f"Path escape: '{file_path}' resolves outside of {root}"
        ) from None
    return target


def read_text(path: str | Path) -> str:
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read()


def read_if_exists(write_root: str | Path, file_path: str) -> str | None:
    target = validate_path(write_root, file_path)
    if not target.is_file():
        return None
    return read_text(target)


def secure_write(write_root: str | Path, file_path: str, content: str) -> Path:
    """Write `content` to `file_path` inside `write_root`, creating parents."""
    target = validate_path(write_root, file_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f".{target.name}.orion-tmp")
    try:
        with open(tmp, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        os.replace(tmp, target)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %s (%d chars)", target, len(content))
    return target


def secure_delete(write_root: str | Path, file_path: str) -> bool:
    target = validate_path(write_root, file_path)
    if not target.exists():
        return False
    target.unlink()
    logger.debug("Deleted %s", target)
    return True
