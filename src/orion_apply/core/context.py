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
Orion Apply -- Request Context Regeneration (v7.5.0)

When the cached request context is stale, the context command that built
it (default: `rmfilter`) is re-run with the arguments recorded in the LLM
reply, and its stdout becomes the new context.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from pathlib import Path
from typing import Protocol

from orion_apply.core.errors import ContextBuildError, RetryContextError

logger = logging.getLogger("orion_apply.context")


def parse_cli_args(command_string: str) -> list[str]:
    """Split a command string shell-style (quotes and escaped quotes honoured)."""
    if not command_string or not command_string.strip():
        return []
    try:
        return shlex.split(command_string)
    except ValueError as exc:
        raise RetryContextError(f"Malformed context command {command_string!r}: {exc}") from None


class ContextBuilder(Protocol):
    async def build(self, args: list[str], repo_root: Path, base_dir: Path) -> str: ...


class CommandContextBuilder:
    """Regenerates context by running an external command."""

    def __init__(self, command: list[str] | None = None):
        self.command = list(command or ["rmfilter"])

    async def build(self, args: list[str], repo_root: Path, base_dir: Path) -> str:
        cmd = self.command + list(args)
        logger.info("Regenerating context: %s (cwd=%s)", shlex.join(cmd), base_dir)
        env = dict(os.environ, ORION_APPLY_REPO_ROOT=str(repo_root))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(base_dir),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ContextBuildError(f"Could not start {cmd[0]}: {exc}") from exc

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[:500]
            raise ContextBuildError(f"{cmd[0]} exited with code {proc.returncode}: {detail}")
        return stdout.decode("utf-8", errors="replace")
