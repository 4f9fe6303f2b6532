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
Orion Apply -- Settings (v7.5.0)

User-level settings for the apply pipeline, stored as YAML.

Config location: $ORION_APPLY_HOME/apply.yaml  (default ~/.orion/apply.yaml)

Resolution order (later wins):
    1. Built-in defaults (ApplySettings)
    2. apply.yaml
    3. ORION_APPLY_* environment variables
    4. Explicit CLI flags (applied by the caller)
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("orion_apply.config")

CONFIG_FILENAME = "apply.yaml"


def orion_home() -> Path:
    return Path(os.environ.get("ORION_APPLY_HOME", Path.home() / ".orion"))


def default_config_path() -> Path:
    return orion_home() / CONFIG_FILENAME


@dataclass
class ApplySettings:
    """Knobs for one apply invocation."""

    interactive: bool = False
    apply_partial: bool = False
    retry_attempts: int = 1
    closest_match_threshold: float = 0.6
    max_prompt_block_lines: int = 10
    # Cached context produced by the context command, relative to the repo root
    context_cache_file: str = "repomix-output.xml"
    context_command: list[str] = field(default_factory=lambda: ["rmfilter"])
    diff_command: list[str] = field(default_factory=lambda: ["nvim", "-d"])
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o"
    llm_api_key_env: str = "OPENAI_API_KEY"
    llm_timeout: float = 120.0
    llm_max_retries: int = 3


_ENV_OVERRIDES: dict[str, str] = {
    "ORION_APPLY_INTERACTIVE": "interactive",
    "ORION_APPLY_PARTIAL": "apply_partial",
    "ORION_APPLY_RETRY_ATTEMPTS": "retry_attempts",
    "ORION_APPLY_CONTEXT_COMMAND": "context_command",
    "ORION_APPLY_DIFF_COMMAND": "diff_command",
    "ORION_APPLY_LLM_BASE_URL": "llm_base_url",
    "ORION_APPLY_LLM_MODEL": "llm_model",
}

_TRUE_VALUES = ("1", "true", "yes", "on")


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Coerce a raw YAML/env value to the type of the field's default."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_VALUES
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, list):
        if isinstance(value, str):
            return shlex.split(value)
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        raise ValueError(f"{name} must be a list or a command string")
    return str(value)


def _parse_settings(raw: dict) -> ApplySettings:
    """Parse a raw YAML dict into ApplySettings, skipping bad values."""
    defaults = ApplySettings()
    known = {f.name for f in fields(ApplySettings)}
    values: dict[str, Any] = {}

    for key, value in raw.items():
        if key not in known:
            logger.warning("Unknown setting '%s' in apply config -- ignored", key)
            continue
        try:
            values[key] = _coerce(key, value, getattr(defaults, key))
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid value for '%s': %s -- using default", key, exc)

    return ApplySettings(**values)


def apply_env_overrides(settings: ApplySettings) -> ApplySettings:
    for env_name, attr in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            setattr(settings, attr, _coerce(attr, raw, getattr(settings, attr)))
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring %s=%r: %s", env_name, raw, exc)
    return settings


def load_settings(path: Path | str | None = None, use_env: bool = True) -> ApplySettings:
    """Load settings from YAML, falling back to defaults on any problem."""
    config_path = Path(path) if path else default_config_path()

    if not config_path.exists():
        logger.debug("No apply config at %s -- using defaults", config_path)
        settings = ApplySettings()
    else:
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
            if not isinstance(raw, dict):
                logger.warning("Invalid apply config (not a dict) -- using defaults")
                settings = ApplySettings()
            else:
                settings = _parse_settings(raw)
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Failed to load apply config: %s -- using defaults", exc)
            settings = ApplySettings()

    if use_env:
        apply_env_overrides(settings)
    return settings


def save_settings(settings: ApplySettings, path: Path | str | None = None) -> None:
    """Save settings to YAML."""
    config_path = Path(path) if path else default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.dump(asdict(settings), default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    logger.info("Saved apply config to %s", config_path)
