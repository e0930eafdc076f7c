"""Centralized configuration for contractdiff.

Typed constants with environment overrides. Safe defaults mean the tool runs
without any env configuration; the CLI loads a local ``.env`` first.
"""

from __future__ import annotations

import os

# --- Git ---
GIT_TIMEOUT_SECONDS: float | None = (
    float(os.environ["CONTRACTDIFF_GIT_TIMEOUT"]) if os.getenv("CONTRACTDIFF_GIT_TIMEOUT") else None
)
DEFAULT_VERSION_PATTERN: str = os.getenv("CONTRACTDIFF_VERSION_PATTERN", r"^v\d+\.\d+\.\d+.*$")
TEMP_DIR_PREFIX: str = os.getenv("CONTRACTDIFF_TEMP_PREFIX", "contractdiff-git-")

# --- Persistence ---
CONTRACT_FILE_MODE: int = 0o600
JSON_INDENT: int = 2

# --- Source discovery ---
SOURCE_SUFFIX: str = ".py"
TEST_FILE_PREFIXES: tuple[str, ...] = ("test_",)
TEST_FILE_SUFFIXES: tuple[str, ...] = ("_test.py",)
TEST_FILE_NAMES: frozenset[str] = frozenset({"conftest.py"})
INTERNAL_SEGMENTS: frozenset[str] = frozenset({"internal", "_internal"})
