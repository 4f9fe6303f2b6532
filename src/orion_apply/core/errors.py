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
Orion Apply -- Error types (v7.5.0)

Classification failures (no match / not unique) are never raised; they
travel as data. Only the conditions below escape as exceptions.
"""

from __future__ import annotations

from typing import Any


class OrionApplyError(Exception):
    """Base class for all orion-apply errors."""


class EditParseError(OrionApplyError):
    """Raised when an LLM reply cannot be parsed into edits."""


class PathEscapeError(OrionApplyError):
    """Raised when an edit targets a path outside the write root."""


class RetryContextError(OrionApplyError):
    """Raised when the original request context cannot be reconstructed."""


class ContextBuildError(RetryContextError):
    """Raised when the external context command fails."""


class RequesterError(OrionApplyError):
    """Raised when the retry request to the LLM fails."""


class ApplyEditsError(OrionApplyError):
    """Terminal error: failures remain after every recovery avenue."""

    def __init__(self, message: str, failures: list[Any] | None = None):
        super().__init__(message)
        self.failures = list(failures or [])
