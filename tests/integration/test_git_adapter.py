"""
Integration tests for the git reference adapter.

Builds a throwaway repository with real git commits and tags, then extracts
and compares contracts at those references. Skipped when git is unavailable.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path

import pytest

from contractdiff.cli import EXIT_BREAKING, main
from contractdiff.contract.extractor import Extractor
from contractdiff.errors import (
    GitCommandError,
    InputError,
    InvalidPatternError,
    NotARepositoryError,
    NotFoundError,
    RefMaterializationError,
)
from contractdiff.vcs.git import GitReferenceAdapter

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")

V1_API = '''
MAX_RETRIES = 3


def connect(host: str) -> None:
    """Open a connection."""
'''

V2_API = V1_API + '''

def dial(host: str, port: int) -> None:
    """Dial a host."""
'''

V3_API = '''
MAX_RETRIES = 3


def dial(host: str, port: int) -> None:
    """Dial a host."""
'''


def _run_git(repo: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=repo, capture_output=True, text=True, check=True)
    return result.stdout.strip()


def _commit_api(repo: Path, source: str, message: str) -> str:
    api = repo / "pkg" / "api.py"
    api.parent.mkdir(parents=True, exist_ok=True)
    api.write_text(source.lstrip("\n"), encoding="utf-8")
    _run_git(repo, "add", "-A")
    _run_git(repo, "commit", "-q", "-m", message)
    return _run_git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path, monkeypatch):
    """
    Repository with three tagged versions of ``pkg``.

    v1.0.0 (annotated) has connect; v1.2.0 adds dial; v1.10.0 drops connect.
    A non-version tag ``nightly`` points at the last commit.
    """
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")

    repo = tmp_path / "repo"
    repo.mkdir()
    _run_git(repo, "init", "-q")

    first = _commit_api(repo, V1_API, "first")
    _run_git(repo, "tag", "-a", "v1.0.0", "-m", "First release")
    _commit_api(repo, V2_API, "add dial")
    _run_git(repo, "tag", "v1.2.0")
    _commit_api(repo, V3_API, "drop connect")
    _run_git(repo, "tag", "v1.10.0")
    _run_git(repo, "tag", "nightly")

    return repo, first


def _worktree_count(repo: Path) -> int:
    return len(_run_git(repo, "worktree", "list").splitlines())


# ---------------------------------------------------------------------------
# Repository queries
# ---------------------------------------------------------------------------


def test_list_version_tags_newest_first(git_repo):
    repo, _ = git_repo

    tags = GitReferenceAdapter(repo).list_version_tags()

    assert [tag.name for tag in tags] == ["v1.10.0", "v1.2.0", "v1.0.0"]
    assert all(tag.is_version for tag in tags)
    assert tags[-1].message == "First release"
    assert tags[-1].date.tzinfo is not None


def test_find_latest_version_tag(git_repo):
    repo, _ = git_repo

    assert GitReferenceAdapter(repo).find_latest_version_tag() == "v1.10.0"


def test_pattern_without_matches_raises_not_found(git_repo):
    repo, _ = git_repo
    adapter = GitReferenceAdapter(repo)

    assert adapter.list_version_tags(r"^release-\d+$") == []
    with pytest.raises(NotFoundError):
        adapter.find_latest_version_tag(r"^release-\d+$")


def test_invalid_pattern_is_rejected(git_repo):
    repo, _ = git_repo

    with pytest.raises(InvalidPatternError):
        GitReferenceAdapter(repo).list_version_tags("[unclosed")


def test_directory_outside_repository(tmp_path, monkeypatch):
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    plain = tmp_path / "plain"
    plain.mkdir()
    adapter = GitReferenceAdapter(plain)

    assert adapter.is_git_repository() is False
    with pytest.raises(NotARepositoryError):
        adapter.list_version_tags()


def test_current_ref_prefers_branch_then_tag(git_repo):
    repo, _ = git_repo
    adapter = GitReferenceAdapter(repo)

    assert adapter.current_ref() == _run_git(repo, "rev-parse", "--abbrev-ref", "HEAD")

    _run_git(repo, "checkout", "-q", "v1.0.0")
    assert adapter.current_ref() == "v1.0.0"


def test_current_ref_falls_back_to_commit(git_repo):
    repo, _ = git_repo
    _commit_api(repo, V3_API + "\nEXTRA = 1\n", "untagged")
    detached = _run_git(repo, "rev-parse", "HEAD")
    _run_git(repo, "checkout", "-q", detached)

    assert GitReferenceAdapter(repo).current_ref() == detached


def test_available_refs_include_tags(git_repo):
    repo, _ = git_repo

    refs = GitReferenceAdapter(repo).available_refs()

    assert refs == sorted(refs)
    assert {"nightly", "v1.0.0", "v1.10.0", "v1.2.0"} <= set(refs)


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


def test_materialize_tag_uses_clone_and_cleans_up(git_repo):
    repo, _ = git_repo
    adapter = GitReferenceAdapter(repo)

    with adapter.materialize("v1.0.0") as workspace:
        assert "def connect" in (workspace / "pkg" / "api.py").read_text(encoding="utf-8")
        assert _worktree_count(repo) == 1

    assert not workspace.exists()


def test_materialize_commit_falls_back_to_worktree(git_repo):
    repo, first = git_repo
    adapter = GitReferenceAdapter(repo)

    with adapter.materialize(first) as workspace:
        assert "def dial" not in (workspace / "pkg" / "api.py").read_text(encoding="utf-8")
        assert _worktree_count(repo) == 2

    assert not workspace.exists()
    assert _worktree_count(repo) == 1


def test_materialize_unknown_ref_fails(git_repo):
    repo, _ = git_repo

    with pytest.raises(RefMaterializationError) as excinfo:
        with GitReferenceAdapter(repo).materialize("v9.9.9"):
            pass

    assert excinfo.value.ref == "v9.9.9"
    assert "failed to checkout ref v9.9.9" in str(excinfo.value)
    assert _worktree_count(repo) == 1


def test_workspace_removed_when_extraction_fails(git_repo):
    repo, _ = git_repo
    adapter = GitReferenceAdapter(repo)
    seen: list[Path] = []

    with pytest.raises(RuntimeError):
        with adapter.materialize("v1.0.0") as workspace:
            seen.append(workspace)
            raise RuntimeError("extraction failed")

    assert not seen[0].exists()


@pytest.fixture
def scratch_dir(tmp_path, monkeypatch):
    """Send temporary checkouts to a directory the test can inspect."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


def _timeout_after(monkeypatch, *git_args: str) -> None:
    """Run the matching git command for real, then report it as timed out."""
    real_run = subprocess.run

    def fake_run(command, **kwargs):
        result = real_run(command, **kwargs)
        if command[1 : 1 + len(git_args)] == list(git_args):
            raise subprocess.TimeoutExpired(command, kwargs.get("timeout") or 30)
        return result

    monkeypatch.setattr(subprocess, "run", fake_run)


def test_worktree_timeout_unregisters_worktree(git_repo, scratch_dir, monkeypatch):
    repo, first = git_repo
    _timeout_after(monkeypatch, "worktree", "add")

    with pytest.raises(RefMaterializationError) as excinfo:
        with GitReferenceAdapter(repo, timeout=30).materialize(first):
            pass

    assert "timed out" in str(excinfo.value)
    assert list(scratch_dir.iterdir()) == []
    assert _worktree_count(repo) == 1


def test_clone_timeout_falls_back_and_cleans_up(git_repo, scratch_dir, monkeypatch):
    repo, _ = git_repo
    _timeout_after(monkeypatch, "clone")

    with GitReferenceAdapter(repo, timeout=30).materialize("v1.0.0") as workspace:
        assert "def connect" in (workspace / "pkg" / "api.py").read_text(encoding="utf-8")
        assert _worktree_count(repo) == 2

    assert list(scratch_dir.iterdir()) == []
    assert _worktree_count(repo) == 1


class _TimingOutExtractor(Extractor):
    def extract_from_directory(self, path):
        raise GitCommandError(["status"], "timed out after 30s")


def test_timeout_during_extraction_releases_worktree(git_repo, scratch_dir):
    repo, first = git_repo

    with pytest.raises(GitCommandError):
        GitReferenceAdapter(repo).extract_contract_from_ref(first, "pkg", _TimingOutExtractor())

    assert list(scratch_dir.iterdir()) == []
    assert _worktree_count(repo) == 1


def test_fallback_is_logged_at_debug(git_repo, caplog):
    repo, first = git_repo
    caplog.set_level(logging.DEBUG, logger="contractdiff.vcs.git")

    with GitReferenceAdapter(repo).materialize(first):
        pass

    fallback = [r for r in caplog.records if "falling back to worktree" in r.getMessage()]
    assert [r.levelno for r in fallback] == [logging.DEBUG]


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def test_extract_contract_from_ref_records_version(git_repo):
    repo, _ = git_repo

    contract = GitReferenceAdapter(repo).extract_contract_from_ref("v1.2.0", "pkg", Extractor())

    assert contract.version == "v1.2.0"
    assert contract.package_name == "pkg"
    assert [f.name for f in contract.functions] == ["connect", "dial"]


def test_compare_refs_addition_only(git_repo):
    repo, _ = git_repo

    diff = GitReferenceAdapter(repo).compare_refs("v1.0.0", "v1.2.0", "pkg", Extractor())

    assert (diff.old_version, diff.new_version) == ("v1.0.0", "v1.2.0")
    assert diff.summary.has_breaking_changes is False
    assert [(a.type, a.item) for a in diff.added_items] == [("function", "dial")]


def test_compare_refs_removal_is_breaking(git_repo):
    repo, _ = git_repo

    diff = GitReferenceAdapter(repo).compare_refs("v1.2.0", "v1.10.0", "./pkg", Extractor())

    assert [(c.type, c.item) for c in diff.breaking_changes] == [("removed_function", "connect")]


def test_compare_ref_with_worktree_sees_uncommitted_changes(git_repo):
    repo, _ = git_repo
    api = repo / "pkg" / "api.py"
    api.write_text(api.read_text(encoding="utf-8") + "\n\ndef hang_up() -> None:\n    pass\n", encoding="utf-8")

    diff = GitReferenceAdapter(repo).compare_ref_with_worktree("v1.10.0", "pkg", Extractor())

    assert diff.old_version == "v1.10.0"
    assert diff.new_version == ""
    assert [(a.type, a.item) for a in diff.added_items] == [("function", "hang_up")]
    assert diff.breaking_changes == []


def test_absolute_package_path_inside_repository(git_repo):
    repo, _ = git_repo
    api = repo / "pkg" / "api.py"
    api.write_text(api.read_text(encoding="utf-8") + "\n\ndef hang_up() -> None:\n    pass\n", encoding="utf-8")
    adapter = GitReferenceAdapter(repo)

    diff = adapter.compare_ref_with_worktree("v1.10.0", str(repo / "pkg"), Extractor())

    assert [(a.type, a.item) for a in diff.added_items] == [("function", "hang_up")]
    assert diff.breaking_changes == []
    assert adapter.relative_package_path(str(repo / "pkg")) == "pkg"
    assert adapter.relative_package_path(str(repo)) == "."


def test_absolute_package_path_outside_repository(git_repo, tmp_path):
    repo, _ = git_repo
    outside = tmp_path / "elsewhere"
    outside.mkdir()

    with pytest.raises(InputError, match="outside repository"):
        GitReferenceAdapter(repo).compare_refs("v1.0.0", "v1.2.0", str(outside), Extractor())


def test_cli_git_diff_reports_breaking_changes(git_repo, capsys):
    repo, _ = git_repo

    code = main(["git-diff", "v1.0.0", "v1.10.0", "pkg", "--repo", str(repo), "--format", "text"])

    captured = capsys.readouterr()
    assert code == EXIT_BREAKING
    assert "- removed_function: connect - Function connect was removed" in captured.out
    assert "Versions: v1.0.0 -> v1.10.0" in captured.out


def test_cli_tags_lists_version_tags(git_repo, capsys):
    repo, _ = git_repo

    assert main(["tags", str(repo)]) == 0

    out = capsys.readouterr().out
    assert "Available version tags (3 found):" in out
    assert "  v1.10.0" in out
    assert "nightly" not in out
