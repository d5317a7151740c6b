"""Pytest configuration for repository test runs."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import sys

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture
def strata_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Runtime config rooted in a per-test config directory."""
    from core.config import StrataConfig

    monkeypatch.delenv("STRATA_CONFIG_DIR", raising=False)
    monkeypatch.delenv("STRATA_LOG_LEVEL", raising=False)
    monkeypatch.setenv("STRATA_DURABLE_WRITES", "false")
    return replace(StrataConfig.from_env(), config_dir=tmp_path / "config")


@pytest.fixture
def sample_registry():
    """Fresh registry holding every shared sample schema and migration."""
    from tests.sample_schemas import build_sample_registry

    return build_sample_registry()
