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
Orion Apply -- Edit Outcome Model (v7.5.0)

Every candidate edit instruction is classified against the current file
content into exactly one of three outcomes:

    Success           the original text was found once and can be replaced
    NoMatchFailure    the original text was not found (maybe a closest match)
    NotUniqueFailure  the original text was found in several places

The triple (file_path, original_text, updated_text) identifies one intended
edit. The same triple may appear several times when the model issued one
instruction per occurrence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union

# ---------------------------------------------------------------------------
# LOCATIONS
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchLocation:
    """One exact occurrence of an edit's original text."""

    start_line: int  # 1-based
    context_lines: tuple[str, ...] = ()
    start_index: int = 0  # character offset into the file content


@dataclass(frozen=True)
class ClosestMatch:
    """Fuzzy candidate for an original text that did not match exactly."""

    start_line: int  # 1-based, inclusive
    end_line: int  # 1-based, inclusive
    lines: tuple[str, ...]
    score: float


# ---------------------------------------------------------------------------
# OUTCOMES
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    kind: ClassVar[str] = "success"

    file_path: str
    original_text: str
    updated_text: str
    start_line: int = 0  # 1-based; 0 when unknown (file creation, append)


@dataclass(frozen=True)
class NoMatchFailure:
    kind: ClassVar[str] = "noMatch"

    file_path: str
    original_text: str
    updated_text: str
    closest_match: ClosestMatch | None = None


@dataclass(frozen=True)
class NotUniqueFailure:
    kind: ClassVar[str] = "notUnique"

    file_path: str
    original_text: str
    updated_text: str
    match_locations: tuple[MatchLocation, ...] = ()


EditFailure = Union[NoMatchFailure, NotUniqueFailure]
EditOutcome = Union[Success, NoMatchFailure, NotUniqueFailure]
EditKey = tuple[str, str, str]


@dataclass
class EditBatch:
    """Classified result of one apply pass."""

    successes: list[Success] = field(default_factory=list)
    failures: list[EditFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @classmethod
    def from_outcomes(cls, outcomes: list[EditOutcome]) -> EditBatch:
        batch = cls()
        for outcome in outcomes:
            if isinstance(outcome, Success):
                batch.successes.append(outcome)
            else:
                batch.failures.append(outcome)
        return batch


# ---------------------------------------------------------------------------
# HELPERS
# ---------------------------------------------------------------------------


def edit_key(outcome: EditOutcome) -> EditKey:
    """Identity of the intended edit behind an outcome."""
    return (outcome.file_path, outcome.original_text, outcome.updated_text)


def line_span(success: Success) -> tuple[int, int]:
    """Inclusive 1-based line range a success replaces."""
    start = max(success.start_line, 1)
    count = max(len(success.original_text.splitlines()), 1)
    return start, start + count - 1


def files_with_failures(failures: list[EditFailure]) -> set[str]:
    return {failure.file_path for failure in failures}
