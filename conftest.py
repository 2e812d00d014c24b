"""Pytest bootstrap: repo root on `sys.path` plus shared paths.

Tests import `control`, `envs` and `tools` as top-level packages regardless
of the invocation cwd, and read the shipped JSON configs through the
`critter_configs` fixture.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def critter_configs() -> Path:
    return ROOT / "configs" / "critter"
