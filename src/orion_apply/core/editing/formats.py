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
Orion Apply -- Edit Format Detection (v7.5.0)

LLM replies arrive in one of four dialects:

    DIFF   search/replace marker blocks  (<<<<<<< SEARCH / ======= / >>>>>>> REPLACE)
    UDIFF  unified diff hunks, bare or in ```diff fences
    XML    <code_changes> file operation lists
    WHOLE  fenced blocks holding complete file contents

DIFF and UDIFF are classified per edit (success / no match / not unique).
XML and WHOLE write directly and report nothing back.
"""

from __future__ import annotations

import re
from enum import Enum

# ---------------------------------------------------------------------------
# EDIT FORMATS
# ---------------------------------------------------------------------------


class EditFormat(Enum):
    """Available edit dialects."""

    DIFF = "diff"
    UDIFF = "udiff"
    XML = "xml"
    WHOLE = "whole"

    @property
    def classifies_edits(self) -> bool:
        """True when the dialect reports per-edit outcomes."""
        return self in (EditFormat.DIFF, EditFormat.UDIFF)

    @classmethod
    def parse(cls, value: str | EditFormat) -> EditFormat:
        if isinstance(value, EditFormat):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown edit format '{value}' (expected one of: {choices})") from None


# ---------------------------------------------------------------------------
# CONTENT SNIFFING
# ---------------------------------------------------------------------------

_FENCED_UDIFF_RE = re.compile(r"^```diff[ \t]*\r?\n.*?^@@", re.MULTILINE | re.DOTALL)


def detect_edit_format(content: str, mode: str | EditFormat | None = None) -> EditFormat:
    """Pick the dialect for `content`; an explicit `mode` always wins."""
    if mode:
        return EditFormat.parse(mode)
    if "<code_changes>" in content:
        return EditFormat.XML
    if "<<<<<<< SEARCH" in content:
        return EditFormat.DIFF
    if content.lstrip().startswith("--- ") or _FENCED_UDIFF_RE.search(content):
        return EditFormat.UDIFF
    return EditFormat.WHOLE
