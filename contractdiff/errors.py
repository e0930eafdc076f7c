"""
Error taxonomy for contract extraction, diffing and git reference handling.

Every failure surfaces to the immediate caller as one of these types; callers
can catch the category (InputError, ParseOrCompileError, NotFoundError,
FormatError, ContractIOError) or the base ContractError.
"""

from __future__ import annotations


class ContractError(Exception):
    """Base class for all contractdiff failures."""


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(ContractError, ValueError):
    """Raised when a caller supplies unusable input."""


class NilContractsError(InputError):
    """Raised when a comparison receives a missing contract."""

    def __init__(self) -> None:
        super().__init__("contracts cannot be None")


class NoPackagesFoundError(InputError):
    """Raised when an import path resolves to no module."""

    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(f"no packages found: {target}")


class NoSourceFilesFoundError(InputError):
    """Raised when a directory holds no eligible source files."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        super().__init__(f"no Python source files found in {directory}")


class InvalidPatternError(InputError):
    """Raised when a version tag pattern fails to compile."""


# ---------------------------------------------------------------------------
# Parse / compile errors
# ---------------------------------------------------------------------------


class ParseOrCompileError(ContractError):
    """Raised when source cannot be parsed or imported.

    All underlying messages are aggregated into one failure.
    """

    prefix = "source errors"

    def __init__(self, messages: list[str]) -> None:
        self.messages = list(messages)
        super().__init__(f"{self.prefix}: {'; '.join(self.messages)}")


class ParseError(ParseOrCompileError):
    """Raised when one or more files fail to parse."""

    prefix = "failed to parse sources"


class PackageErrors(ParseOrCompileError):
    """Raised when a package or one of its modules fails to import."""

    prefix = "package import errors"


# ---------------------------------------------------------------------------
# Lookup errors
# ---------------------------------------------------------------------------


class NotFoundError(ContractError, LookupError):
    """Raised when a named reference or persisted file does not exist."""


class NotARepositoryError(NotFoundError):
    """Raised when a path is not inside a git work tree."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"not a git repository: {path}")


class RefMaterializationError(NotFoundError):
    """Raised when a git reference cannot be cloned or checked out."""

    def __init__(self, ref: str, reason: str) -> None:
        self.ref = ref
        super().__init__(f"failed to checkout ref {ref}: {reason}")


class GitCommandError(NotFoundError):
    """Raised when a git command exits non-zero or exceeds its timeout."""

    def __init__(self, args: list[str], reason: str) -> None:
        self.command = list(args)
        self.reason = reason
        super().__init__(f"git {' '.join(self.command)} failed: {reason}")


# ---------------------------------------------------------------------------
# Output / persistence errors
# ---------------------------------------------------------------------------


class FormatError(ContractError, ValueError):
    """Raised when a report format is not supported."""


class ContractIOError(ContractError, OSError):
    """Raised when a contract or diff file cannot be read or written."""
