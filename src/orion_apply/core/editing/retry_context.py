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
Orion Apply -- Retry Context Builder (v7.5.0)

A retry prompt replays the conversation that produced the failing edits,
so the model needs the original request context. Resolution order:

    1. an explicit original prompt
    2. the cached context file, if its <rmfilter_command> matches the reply's
    3. a fresh context from the context command, using the reply's arguments

Marker tags embedded in the text:
    <rmfilter_command>     arguments of the invocation that built the context
    <rmfilter_instructions> / <instructions>  folded in as --instructions
    <command_id>           detects a cache/reply pair from different runs
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from orion_apply.core.context import CommandContextBuilder, ContextBuilder, parse_cli_args
from orion_apply.core.editing.outcomes import EditFailure
from orion_apply.core.editing.reporting import DEFAULT_MAX_BLOCK_LINES, format_failures_for_llm
from orion_apply.core.editing.safety import read_text
from orion_apply.core.errors import RetryContextError

logger = logging.getLogger("orion_apply.retry")

_COMMAND_RE = re.compile(r"<rmfilter_command>(.*?)</rmfilter_command>", re.DOTALL)
_INSTRUCTIONS_RE = re.compile(
    r"<(rmfilter_instructions|instructions)>(.*?)</\1>", re.DOTALL
)
_COMMAND_ID_RE = re.compile(r"<command_id>\s*(.*?)\s*</command_id>", re.DOTALL)

ID_MISMATCH_MESSAGE = "The saved command file ID does not match the response's ID. Continue anyway?"
ID_MISSING_MESSAGE = "The response does not contain a command file ID. Continue anyway?"

RETRY_INSTRUCTIONS = (
    "Please review the original request context, your previous response, and the errors "
    "listed above. Provide a corrected set of edits in the same format as before, addressing "
    "these issues. Ensure the SEARCH blocks exactly match the current file content where the "
    "changes should be applied, or provide correct unified diffs."
)


@dataclass
class CommandArgs:
    commands: list[str]
    prompt_message: str | None = None


def _command_id(text: str) -> str | None:
    match = _COMMAND_ID_RE.search(text)
    return match.group(1) if match else None


def extract_command_args(content: str, response_content: str | None = None) -> CommandArgs | None:
    """Arguments from the first <rmfilter_command> tag in `content`.

    When `content` carries a <command_id>, it is compared with the one in
    `response_content` and a confirmation message is attached on mismatch.
    """
    match = _COMMAND_RE.search(content)
    if not match or not match.group(1).strip():
        return None

    commands = parse_cli_args(match.group(1))
    if not commands:
        return None

    instructions = _INSTRUCTIONS_RE.search(content)
    if instructions and instructions.group(2).strip():
        commands += ["--instructions", instructions.group(2).strip()]

    prompt_message = None
    saved_id = _command_id(content)
    if saved_id is not None and response_content is not None:
        response_id = _command_id(response_content)
        if response_id is None:
            prompt_message = ID_MISSING_MESSAGE
        elif response_id != saved_id:
            prompt_message = ID_MISMATCH_MESSAGE

    return CommandArgs(commands, prompt_message)


async def get_original_request_context(
    content: str,
    repo_root: str | Path,
    base_dir: str | Path,
    original_prompt: str | None = None,
    cache_file: str = "repomix-output.xml",
    builder: ContextBuilder | None = None,
    confirm: Callable[[str], Awaitable[bool]] | None = None,
) -> str:
    """Resolve the context the failing reply was generated from.

    `confirm` is an optional async callable(message) -> bool used to ask
    the user about mismatched command ids; without it the run continues.
    """
    if original_prompt:
        return original_prompt

    args = extract_command_args(content)
    if args is None:
        raise RetryContextError(
            "Cannot retry: Original prompt not provided and <rmfilter_command> tag not found in content."
        )

    root = Path(repo_root)
    cache_path = root / cache_file
    if cache_path.is_file():
        cached = read_text(cache_path)
        cached_args = extract_command_args(cached, content)
        if cached_args is not None and set(cached_args.commands) == set(args.commands):
            if cached_args.prompt_message and confirm is not None:
                if not await confirm(cached_args.prompt_message):
                    raise RetryContextError("Retry cancelled: command file ID mismatch")
            logger.info("Using cached context from %s", cache_path)
            return cached
        logger.warning("Cached context at %s is stale; regenerating", cache_path)
    else:
        logger.info("No cached context at %s; regenerating", cache_path)

    builder = builder or CommandContextBuilder()
    return await builder.build(args.commands, root, Path(base_dir))


def build_retry_prompt(
    original_context: str,
    failed_output: str,
    failures: list[EditFailure],
    max_block_lines: int = DEFAULT_MAX_BLOCK_LINES,
) -> list[dict[str, str]]:
    """Three-message exchange: context, failing reply, failure follow-up."""
    failure_text = format_failures_for_llm(failures, max_block_lines)
    follow_up = (
        "The previous attempt to apply the edits resulted in the following errors:\n\n"
        f"{failure_text}\n\n{RETRY_INSTRUCTIONS}"
    )
    return [
        {"role": "user", "content": original_context},
        {"role": "assistant", "content": failed_output},
        {"role": "user", "content": follow_up},
    ]
