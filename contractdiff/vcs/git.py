"""
Git reference adapter.

Module: git
Purpose: extract and compare contracts at arbitrary git references (tags,
branches, commits) by materializing each reference into a temporary workspace.
Dependencies: git executable on PATH, contractdiff.contract

Every git call runs through ``subprocess.run`` with the adapter's timeout.
Temporary workspaces are removed on every exit path, including timeouts and
extraction failures.
"""

from __future__ import annotations

import contextlib
import re
import shutil
import subprocess
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from contractdiff.config import DEFAULT_VERSION_PATTERN, GIT_TIMEOUT_SECONDS, TEMP_DIR_PREFIX
from contractdiff.contract.differ import Differ, DifferOptions
from contractdiff.contract.extractor import Extractor
from contractdiff.contract.models import Contract, ContractDiff
from contractdiff.errors import (
    GitCommandError,
    InputError,
    InvalidPatternError,
    NotARepositoryError,
    NotFoundError,
    RefMaterializationError,
)
from contractdiff.observability.logging import get_logger
from contractdiff.observability.telemetry import log_event, time_block

logger = get_logger(__name__)

_TAG_FORMAT = "%(refname:short)|%(objectname)|%(creatordate:iso8601)|%(subject)"
_TAG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


@dataclass(frozen=True)
class TagInfo:
    """One git tag with its commit, creation date and subject line."""

    name: str
    commit: str
    date: datetime
    message: str = ""
    is_version: bool = False


def _parse_tag_date(text: str) -> datetime | None:
    try:
        return datetime.strptime(text, _TAG_DATE_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _parse_tag_line(line: str, version_regex: re.Pattern[str]) -> TagInfo | None:
    parts = line.strip().split("|", 3)
    if len(parts) < 3:
        return None
    date = _parse_tag_date(parts[2])
    if date is None:
        logger.debug("Skipping tag %s with unparseable date %r", parts[0], parts[2])
        return None
    return TagInfo(
        name=parts[0],
        commit=parts[1],
        date=date,
        message=parts[3] if len(parts) > 3 else "",
        is_version=bool(version_regex.search(parts[0])),
    )


class GitReferenceAdapter:
    """Runs contract extraction against references of one git repository."""

    def __init__(self, repo_path: str | Path = ".", timeout: float | None = GIT_TIMEOUT_SECONDS) -> None:
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    # -- subprocess -------------------------------------------------------

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """
        Run one git command in the repository.

        Raises:
            GitCommandError: non-zero exit (when ``check``) or timeout
        """
        command = ["git", *args]
        try:
            result = subprocess.run(
                command,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(list(args), f"timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise GitCommandError(list(args), str(exc)) from exc
        if check and result.returncode != 0:
            raise GitCommandError(list(args), result.stderr.strip() or f"exit status {result.returncode}")
        return result

    def _require_repository(self) -> None:
        if not self.is_git_repository():
            raise NotARepositoryError(str(self.repo_path))

    # -- queries ----------------------------------------------------------

    def is_git_repository(self) -> bool:
        if not self.repo_path.is_dir():
            return False
        try:
            return self._git("rev-parse", "--git-dir", check=False).returncode == 0
        except GitCommandError:
            return False

    def repository_root(self) -> Path:
        self._require_repository()
        return Path(self._git("rev-parse", "--show-toplevel").stdout.strip())

    def list_version_tags(self, pattern: str = DEFAULT_VERSION_PATTERN) -> list[TagInfo]:
        """
        List tags whose name matches ``pattern``, newest version first.

        Raises:
            InvalidPatternError: ``pattern`` is not a valid regular expression
            NotARepositoryError: ``repo_path`` is not inside a git work tree
        """
        try:
            version_regex = re.compile(pattern or DEFAULT_VERSION_PATTERN)
        except re.error as exc:
            raise InvalidPatternError(f"invalid version pattern {pattern!r}: {exc}") from exc
        self._require_repository()

        output = self._git("tag", "-l", "--sort=-version:refname", f"--format={_TAG_FORMAT}").stdout
        tags = []
        for line in output.splitlines():
            if not line.strip():
                continue
            tag = _parse_tag_line(line, version_regex)
            if tag is not None and tag.is_version:
                tags.append(tag)
        return tags

    def find_latest_version_tag(self, pattern: str = DEFAULT_VERSION_PATTERN) -> str:
        tags = self.list_version_tags(pattern)
        if not tags:
            raise NotFoundError(f"no version tags found matching pattern: {pattern}")
        return tags[0].name

    def current_ref(self) -> str:
        """Branch name, else the tag pointing exactly at HEAD, else the commit id."""
        self._require_repository()
        branch = self._git("rev-parse", "--abbrev-ref", "HEAD", check=False)
        if branch.returncode == 0 and branch.stdout.strip() not in ("", "HEAD"):
            return branch.stdout.strip()

        tag = self._git("describe", "--tags", "--exact-match", "HEAD", check=False)
        if tag.returncode == 0 and tag.stdout.strip():
            return tag.stdout.strip()

        return self._git("rev-parse", "HEAD").stdout.strip()

    def available_refs(self) -> list[str]:
        """Sorted, de-duplicated remote branch names (without ``origin/``) and tags."""
        self._require_repository()
        refs: set[str] = set()

        branches = self._git("branch", "-r", "--format=%(refname:short)", check=False)
        if branches.returncode == 0:
            for line in branches.stdout.splitlines():
                name = line.strip()
                if name and "HEAD" not in name:
                    refs.add(name.removeprefix("origin/"))

        tags = self._git("tag", "-l", check=False)
        if tags.returncode == 0:
            refs.update(line.strip() for line in tags.stdout.splitlines() if line.strip())

        return sorted(refs)

    # -- materialization --------------------------------------------------

    @contextlib.contextmanager
    def materialize(self, ref: str) -> Iterator[Path]:
        """
        Yield a temporary directory holding the tree at ``ref``.

        A shallow clone of the repository root is tried first; when it fails
        (commit ids are not valid clone branches) a detached worktree is added
        instead.

        Raises:
            NotARepositoryError: ``repo_path`` is not inside a git work tree
            RefMaterializationError: both strategies failed

        Side Effects:
            - Creates and always removes a temporary directory
            - Registers and always unregisters a git worktree on fallback
        """
        root = self.repository_root()
        workspace = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
        used_worktree = False
        try:
            with time_block("git.materialize.latency"):
                try:
                    self._git("clone", "--depth=1", "--branch", ref, str(root), str(workspace))
                    log_event("git.materialized", ref=ref, strategy="clone")
                except GitCommandError as clone_error:
                    logger.debug("Shallow clone of %s failed, falling back to worktree: %s", ref, clone_error.reason)
                    shutil.rmtree(workspace, ignore_errors=True)
                    # A timed out add may already have registered the worktree
                    used_worktree = True
                    try:
                        self._git("worktree", "add", "--detach", str(workspace), ref)
                    except GitCommandError as exc:
                        raise RefMaterializationError(ref, exc.reason) from exc
                    log_event("git.materialized", ref=ref, strategy="worktree")
            yield workspace
        finally:
            self._release(workspace, used_worktree)

    def _release(self, workspace: Path, used_worktree: bool) -> None:
        if used_worktree:
            try:
                self._git("worktree", "remove", "--force", str(workspace), check=False)
            except GitCommandError as exc:
                logger.warning("Failed to unregister worktree %s: %s", workspace, exc)
        shutil.rmtree(workspace, ignore_errors=True)
        if used_worktree:
            try:
                self._git("worktree", "prune", check=False)
            except GitCommandError as exc:
                logger.warning("Failed to prune worktrees: %s", exc)

    # -- extraction and comparison ----------------------------------------

    def relative_package_path(self, package_path: str) -> str:
        """
        Express ``package_path`` relative to the repository root.

        Relative paths are taken as already relative to the root; absolute
        paths must lie inside it.

        Raises:
            InputError: an absolute ``package_path`` lies outside the repository
        """
        path = Path(package_path)
        if not path.is_absolute():
            return package_path
        root = self.repository_root().resolve()
        try:
            relative = path.resolve().relative_to(root)
        except ValueError:
            raise InputError(f"package path {package_path} is outside repository {root}") from None
        return relative.as_posix()

    def extract_contract_from_ref(self, ref: str, package_path: str, extractor: Extractor) -> Contract:
        """
        Extract the contract of ``package_path`` (relative to the repository
        root, or absolute inside it) as it exists at ``ref``. The contract's version is the ref name.
        """
        relative = self.relative_package_path(package_path)
        with self.materialize(ref) as workspace:
            target = _package_dir(workspace, relative)
            contract = extractor.extract_from_directory(target)
        return contract.with_version(ref)

    def compare_refs(
        self,
        old_ref: str,
        new_ref: str,
        package_path: str,
        extractor: Extractor,
        differ: Differ | None = None,
    ) -> ContractDiff:
        old_contract = self.extract_contract_from_ref(old_ref, package_path, extractor)
        new_contract = self.extract_contract_from_ref(new_ref, package_path, extractor)
        return (differ or Differ(DifferOptions(ignore_positions=True))).compare(old_contract, new_contract)

    def compare_ref_with_worktree(
        self,
        old_ref: str,
        package_path: str,
        extractor: Extractor,
        differ: Differ | None = None,
    ) -> ContractDiff:
        """Compare ``old_ref`` against the live working tree using the same extractor for both sides."""
        relative = self.relative_package_path(package_path)
        old_contract = self.extract_contract_from_ref(old_ref, relative, extractor)
        new_contract = extractor.extract_from_directory(_package_dir(self.repository_root(), relative))
        return (differ or Differ(DifferOptions(ignore_positions=True))).compare(old_contract, new_contract)


def _package_dir(root: Path, package_path: str) -> Path:
    if package_path in ("", "."):
        return root
    return root / package_path.removeprefix("./")
