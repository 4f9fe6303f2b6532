# Orion Agent
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for apply settings: YAML loading, defaults and environment overrides."""

import pytest
import yaml

from orion_apply.core.config import (
    ApplySettings,
    default_config_path,
    load_settings,
    save_settings,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "ORION_APPLY_INTERACTIVE",
        "ORION_APPLY_PARTIAL",
        "ORION_APPLY_RETRY_ATTEMPTS",
        "ORION_APPLY_CONTEXT_COMMAND",
        "ORION_APPLY_DIFF_COMMAND",
        "ORION_APPLY_LLM_BASE_URL",
        "ORION_APPLY_LLM_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    """Tests for settings file loading."""

    def test_default_values(self):
        settings = ApplySettings()
        assert settings.retry_attempts == 1
        assert settings.closest_match_threshold == 0.6
        assert settings.context_command == ["rmfilter"]
        assert settings.diff_command == ["nvim", "-d"]

    def test_load_nonexistent_returns_defaults(self, tmp_path):
        assert load_settings(tmp_path / "missing.yaml") == ApplySettings()

    def test_load_values(self, tmp_path):
        path = tmp_path / "apply.yaml"
        path.write_text(
            yaml.dump(
                {
                    "interactive": True,
                    "retry_attempts": "3",
                    "context_command": "rmfilter --quiet",
                    "diff_command": ["code", "--diff", "--wait"],
                }
            )
        )
        settings = load_settings(path)
        assert settings.interactive is True
        assert settings.retry_attempts == 3
        assert settings.context_command == ["rmfilter", "--quiet"]
        assert settings.diff_command == ["code", "--diff", "--wait"]

    def test_unknown_and_bad_values_ignored(self, tmp_path):
        path = tmp_path / "apply.yaml"
        path.write_text("colour: blue\nretry_attempts: lots\n")
        settings = load_settings(path)
        assert settings.retry_attempts == 1
        assert not hasattr(settings, "colour")

    def test_load_invalid_yaml_returns_defaults(self, tmp_path):
        path = tmp_path / "apply.yaml"
        path.write_text("retry_attempts: [unclosed\n")
        assert load_settings(path) == ApplySettings()

    def test_load_non_dict_returns_defaults(self, tmp_path):
        path = tmp_path / "apply.yaml"
        path.write_text("- just\n- a list\n")
        assert load_settings(path) == ApplySettings()

    def test_save_and_load_roundtrip(self, tmp_path):
        path = tmp_path / "nested" / "apply.yaml"
        original = ApplySettings(apply_partial=True, llm_model="gpt-4o-mini", closest_match_threshold=0.75)
        save_settings(original, path)
        assert load_settings(path) == original

    def test_default_path_follows_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ORION_APPLY_HOME", str(tmp_path))
        assert default_config_path() == tmp_path / "apply.yaml"


class TestEnvOverrides:
    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "apply.yaml"
        path.write_text("retry_attempts: 2\nllm_model: gpt-4o\n")
        monkeypatch.setenv("ORION_APPLY_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("ORION_APPLY_LLM_MODEL", "local-model")
        monkeypatch.setenv("ORION_APPLY_PARTIAL", "yes")

        settings = load_settings(path)
        assert settings.retry_attempts == 5
        assert settings.llm_model == "local-model"
        assert settings.apply_partial is True

    def test_bad_env_value_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ORION_APPLY_RETRY_ATTEMPTS", "many")
        assert load_settings(tmp_path / "missing.yaml").retry_attempts == 1

    def test_env_can_be_disabled(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ORION_APPLY_INTERACTIVE", "1")
        assert load_settings(tmp_path / "missing.yaml", use_env=False).interactive is False
