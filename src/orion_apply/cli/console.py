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
Orion Apply -- Console (v7.5.0)

Terminal prompter for interactive resolution. Blocking input() calls run
in a worker thread so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
from typing import Any


class ApplyConsole:
    """Minimal console. Provides print helpers and prompts."""

    def print_info(self, msg: str):
        print(f"  [info] {msg}")

    def print_success(self, msg: str):
        print(f"  [ok] {msg}")

    def print_error(self, msg: str):
        print(f"  [error] {msg}")

    def show(self, text: str) -> None:
        print(text)

    async def _ask(self, prompt: str) -> str:
        try:
            return (await asyncio.to_thread(input, prompt)).strip()
        except EOFError:
            return ""

    async def confirm(self, message: str, default: bool = True) -> bool:
        hint = "[Y/n]" if default else "[y/N]"
        resp = (await self._ask(f"\n  {message} {hint}: ")).lower()
        if not resp:
            return default
        return resp in ("y", "yes")

    async def select(self, message: str, choices: list[tuple[str, Any]]) -> Any:
        print(f"\n  {message}")
        for i, (label, _value) in enumerate(choices, 1):
            first, *rest = label.split("\n")
            print(f"    {i}. {first}")
            for line in rest:
                print(f"       {line}")

        while True:
            resp = await self._ask(f"  Choice [1-{len(choices)}]: ")
            if not resp:
                # EOF or empty answer picks the last choice (skip)
                return choices[-1][1]
            if resp.isdigit() and 1 <= int(resp) <= len(choices):
                return choices[int(resp) - 1][1]
            self.print_error(f"Enter a number between 1 and {len(choices)}")
