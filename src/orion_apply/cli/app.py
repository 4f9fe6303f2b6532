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
Orion Apply CLI -- Main entry point.

Usage:
    orion-apply reply.md                  # Apply a saved LLM reply
    pbpaste | orion-apply -               # Apply from stdin
    orion-apply reply.md --interactive    # Resolve failures by hand
    orion-apply reply.md --retry          # Ask the model to fix failures
    orion-apply --version                 # Version info
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from orion_apply import __version__
from orion_apply.core.config import load_settings
from orion_apply.core.context import CommandContextBuilder
from orion_apply.core.editing.apply import ApplyOptions, apply_llm_edits
from orion_apply.core.editing.formats import EditFormat
from orion_apply.core.editing.reporting import format_failures_for_llm
from orion_apply.core.errors import ApplyEditsError, EditParseError, OrionApplyError

logger = logging.getLogger("orion_apply.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orion-apply",
        description="Apply LLM-produced code edits to a working tree.",
    )
    parser.add_argument("file", nargs="?", default="-", help="reply to apply, or - for stdin")
    parser.add_argument("--version", action="store_true", help="print version and exit")
    parser.add_argument("--cwd", help="directory edits are written under (default: .)")
    parser.add_argument(
        "--mode",
        choices=[fmt.value for fmt in EditFormat],
        help="force an edit format instead of detecting it",
    )
    parser.add_argument("--interactive", action="store_true", help="resolve failures by hand")
    parser.add_argument(
        "--apply-partial", action="store_true", help="keep successful edits when some fail"
    )
    parser.add_argument("--dry-run", action="store_true", help="report without writing")
    parser.add_argument("--retry", action="store_true", help="send failures back to the model")
    parser.add_argument("--original-prompt", help="file holding the prompt the reply answered")
    parser.add_argument("--base-dir", help="directory the context command runs in")
    parser.add_argument(
        "--copy-retry-prompt", metavar="FILE", help="write the failure report for the model to FILE"
    )
    parser.add_argument("--config", help="settings file (default: $ORION_APPLY_HOME/apply.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log progress to stderr")
    return parser


def _read_input(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    if args.version:
        print(f"orion-apply {__version__}")
        return 0

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.config)
    content = _read_input(args.file)
    write_root = Path(args.cwd or ".").resolve()

    requester = None
    if args.retry:
        from orion_apply.core.llm.providers import OpenAICompatibleRequester

        requester = OpenAICompatibleRequester(settings)

    original_prompt = None
    if args.original_prompt:
        original_prompt = Path(args.original_prompt).read_text(encoding="utf-8")

    options = ApplyOptions(
        content=content,
        write_root=write_root,
        mode=args.mode,
        dry_run=args.dry_run,
        interactive=args.interactive or settings.interactive,
        apply_partial=args.apply_partial or settings.apply_partial,
        retry_requester=requester,
        original_prompt=original_prompt,
        repo_root=write_root,
        base_dir=Path(args.base_dir).resolve() if args.base_dir else write_root,
        context_builder=CommandContextBuilder(settings.context_command),
        settings=settings,
    )

    try:
        result = asyncio.run(apply_llm_edits(options))
    except ApplyEditsError as exc:
        if args.copy_retry_prompt:
            report = format_failures_for_llm(exc.failures, settings.max_prompt_block_lines)
            Path(args.copy_retry_prompt).write_text(report, encoding="utf-8")
            print(f"  [info] Failure report written to {args.copy_retry_prompt}")
        print(f"  [error] {exc}", file=sys.stderr)
        return 1
    except EditParseError as exc:
        print(f"  [error] Could not parse edits: {exc}", file=sys.stderr)
        return 1
    except OrionApplyError as exc:
        print(f"  [error] {exc}", file=sys.stderr)
        return 1

    if result is None:
        print("  [ok] Edits applied")
    elif result.failures:
        print(f"  [info] {len(result.failures)} edit(s) left unresolved")
    else:
        print(f"  [ok] Applied {len(result.applied_successes)} edit(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
