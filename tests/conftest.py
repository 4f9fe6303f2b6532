"""Pytest configuration for orion-apply tests."""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure src/orion_apply is importable
src_path = str(Path(__file__).parent.parent / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

# Keep settings and live logs out of the real home directory
os.environ["ORION_APPLY_HOME"] = tempfile.mkdtemp(prefix="orion-apply-tests-")

from orion_apply.core.logging import reset_logger  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_live_logger():
    reset_logger()
    yield
    reset_logger()
