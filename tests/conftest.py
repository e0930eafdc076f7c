"""
Pytest configuration for contractdiff tests

Provides fixtures for writing throwaway packages to disk, plus default
extractor and differ instances.
"""

from __future__ import annotations

import importlib
import sys
import textwrap
import uuid
from pathlib import Path

import pytest

from contractdiff.contract.builder import ExtractorOptions
from contractdiff.contract.differ import Differ
from contractdiff.contract.extractor import Extractor


def _write_tree(root: Path, files: dict[str, str]) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
    return root


@pytest.fixture
def write_package(tmp_path):
    """Write ``{relative_path: source}`` under ``tmp_path/<name>`` and return the directory."""

    def _write(files: dict[str, str], name: str = "pkg") -> Path:
        return _write_tree(tmp_path / name, files)

    return _write


@pytest.fixture
def importable_package(tmp_path, monkeypatch):
    """
    Write a uniquely named package onto ``sys.path`` and return its import name.

    Modules imported from it are dropped from ``sys.modules`` afterwards.
    """
    site = tmp_path / "site"
    site.mkdir()
    monkeypatch.syspath_prepend(str(site))
    created: list[str] = []

    def _write(files: dict[str, str]) -> str:
        name = f"cdpkg_{uuid.uuid4().hex[:10]}"
        _write_tree(site / name, files)
        importlib.invalidate_caches()
        created.append(name)
        return name

    yield _write

    for name in created:
        for module in [m for m in sys.modules if m == name or m.startswith(f"{name}.")]:
            del sys.modules[module]


@pytest.fixture
def extractor():
    return Extractor(ExtractorOptions())


@pytest.fixture
def differ():
    return Differ()
