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
Orion Apply -- Live Edit Logger (v7.5.0)

Every write, skip, retry and LLM call made while applying an LLM reply is
recorded to a rotating log file, so a user can tail exactly what happened
to their tree.

LOG LOCATION:
    $ORION_APPLY_HOME/logs/orion_apply.log      (current)
    $ORION_APPLY_HOME/logs/orion_apply.log.1    (previous rotation)

RULES:
    - Single log file, max 10 MB before rotation
    - Log folder purges oldest files once it exceeds 1 GB
    - Human-readable format with structured fields
    - Warnings and errors are mirrored to stderr

USAGE:
    from orion_apply.core.logging import get_logger
    log = get_logger()
    log.edit("applied", "src/app.py", start_line=12, source="retry")
    log.retry("requested", failures=2)
    log.llm("Retry", model="gpt-4o", latency_ms=1500)
"""

from __future__ import annotations

import contextlib
import logging
import logging.handlers
import sys
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

from orion_apply.core.config import orion_home

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_LOG_FILE_BYTES = 10 * 1024 * 1024  # 10 MB per file
MAX_LOG_FOLDER_BYTES = 1024 * 1024 * 1024  # 1 GB total
LOG_BACKUP_COUNT = 50
LOG_FILENAME = "orion_apply.log"

_internal = logging.getLogger("orion_apply.logging")


def log_dir() -> Path:
    return orion_home() / "logs"


# =============================================================================
# CUSTOM FORMATTER -- human-readable + structured
# =============================================================================


class ApplyLogFormatter(logging.Formatter):
    """
    Format: TIMESTAMP | LEVEL | COMPONENT | MESSAGE | {structured fields}

    Example:
    2026-02-09T17:30:45.123Z | EDIT  | Editor       | Edit applied | action="applied" file="src/app.py"
    2026-02-09T17:30:46.500Z | RETRY | Retry        | Retry requested | failures=2
    """

    LEVEL_WIDTH = 5
    COMPONENT_WIDTH = 12

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        ts = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

        level = getattr(record, "orion_level", record.levelname)
        component = getattr(record, "component", "System")
        message = record.getMessage()

        fields = getattr(record, "fields", {})
        field_str = ""
        if fields:
            parts = []
            for k, v in fields.items():
                if isinstance(v, str):
                    parts.append(f'{k}="{v}"')
                elif isinstance(v, float):
                    parts.append(f"{k}={v:.3f}")
                else:
                    parts.append(f"{k}={v}")
            field_str = " | " + " ".join(parts)

        return (
            f"{ts} | {level:<{self.LEVEL_WIDTH}} | "
            f"{component:<{self.COMPONENT_WIDTH}} | {message}{field_str}"
        )


# =============================================================================
# FOLDER PURGE
# =============================================================================


def _purge_old_logs(directory: Path, max_bytes: int = MAX_LOG_FOLDER_BYTES) -> None:
    """Delete oldest log files if the folder exceeds max_bytes."""
    try:
        log_files = sorted(
            (f for f in directory.iterdir() if f.is_file() and f.name.startswith(LOG_FILENAME)),
            key=lambda f: f.stat().st_mtime,
        )
        total_size = sum(f.stat().st_size for f in log_files)
        while total_size > max_bytes and len(log_files) > 1:
            oldest = log_files.pop(0)
            total_size -= oldest.stat().st_size
            oldest.unlink()
    except OSError as exc:
        _internal.debug("Log purge skipped: %s", exc)


# =============================================================================
# APPLY LOGGER
# =============================================================================


class ApplyLogger:
    """
    Structured event logger for the apply pipeline.

    Component-tagged entries go to the rotating file; WARNING and above
    are also echoed to stderr.
    """

    def __init__(self, directory: Path | None = None):
        self._dir = Path(directory) if directory else log_dir()
        self._dir.mkdir(parents=True, exist_ok=True)
        self._file = self._dir / LOG_FILENAME

        self._logger = logging.getLogger("orion_apply.live")
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        for handler in list(self._logger.handlers):
            handler.close()
        self._logger.handlers.clear()

        file_handler = logging.handlers.RotatingFileHandler(
            str(self._file),
            maxBytes=MAX_LOG_FILE_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(ApplyLogFormatter())
        self._logger.addHandler(file_handler)

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(ApplyLogFormatter())
        self._logger.addHandler(stderr_handler)

        self._session_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        self._edit_count = 0

        _purge_old_logs(self._dir)

    def _log(self, level: int, orion_level: str, component: str, message: str, **fields):
        fields["session"] = self._session_id
        record = self._logger.makeRecord(
            name="orion_apply.live",
            level=level,
            fn="",
            lno=0,
            msg=message,
            args=(),
            exc_info=None,
        )
        record.component = component
        record.orion_level = orion_level
        record.fields = fields
        self._logger.handle(record)

    # =========================================================================
    # PUBLIC API -- Standard levels
    # =========================================================================

    def info(self, component: str, message: str, **fields):
        self._log(logging.INFO, "INFO", component, message, **fields)

    def warn(self, component: str, message: str, **fields):
        self._log(logging.WARNING, "WARN", component, message, **fields)

    def error(self, component: str, message: str, **fields):
        self._log(logging.ERROR, "ERROR", component, message, **fields)

    def debug(self, component: str, message: str, **fields):
        self._log(logging.DEBUG, "DEBUG", component, message, **fields)

    # =========================================================================
    # PUBLIC API -- Domain-specific log methods
    # =========================================================================

    def edit(self, action: str, file_path: str = "", **fields):
        """Log a file edit event (applied, skipped, failed, ...)."""
        fields.update(action=action, file=file_path)
        level = logging.WARNING if action in ("failed", "stale") else logging.INFO
        if action == "applied":
            self._edit_count += 1
        self._log(level, "EDIT", "Editor", f"Edit {action}", **fields)

    def retry(self, action: str, **fields):
        """Log a retry loop event."""
        fields.update(action=action)
        self._log(logging.INFO, "RETRY", "Retry", f"Retry {action}", **fields)

    def llm(
        self,
        component: str,
        model: str = "",
        latency_ms: int = 0,
        success: bool = True,
        **fields,
    ):
        """Log an LLM call."""
        fields.update(model=model, latency_ms=latency_ms, success=success)
        level = "LLM" if success else "LLM-ERR"
        self._log(logging.INFO, level, component, "LLM call", **fields)

    # =========================================================================
    # UTILITY
    # =========================================================================

    @property
    def log_file(self) -> str:
        return str(self._file)

    @property
    def edits_applied(self) -> int:
        return self._edit_count


# =============================================================================
# SINGLETON
# =============================================================================

_instance: ApplyLogger | None = None


def get_logger() -> ApplyLogger:
    """Get the global ApplyLogger instance."""
    global _instance
    if _instance is None:
        _instance = ApplyLogger()
    return _instance


def reset_logger() -> None:
    """Drop the global instance (used when ORION_APPLY_HOME changes)."""
    global _instance
    _instance = None


@contextlib.contextmanager
def quiet_logging(name: str = "orion_apply.editing") -> Iterator[None]:
    """Silence a logger subtree, e.g. while running a dry-run probe."""
    target = logging.getLogger(name)
    previous = target.level
    target.setLevel(logging.CRITICAL + 1)
    try:
        yield
    finally:
        target.setLevel(previous)
