"""
Contract data model (Pydantic v2).

A Contract is a snapshot of one package's public API surface; a ContractDiff is
the classified result of comparing two of them. Both are frozen after
construction and persist as indented JSON with empty values omitted, so two
contract files diff cleanly under ordinary text tools.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_serializer

from contractdiff.config import CONTRACT_FILE_MODE, JSON_INDENT
from contractdiff.errors import ContractIOError, NotFoundError

_EMPTY_VALUES: tuple[Any, ...] = ("", None)


class ContractModel(BaseModel):
    """Base model: frozen, and omits empty optional values when serialized."""

    model_config = ConfigDict(frozen=True)

    # Keys written even when empty
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset()

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        return {
            key: value
            for key, value in data.items()
            if key in self.KEEP_KEYS or not (value in _EMPTY_VALUES or value == [])
        }


class PositionInfo(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"filename", "line", "column"})

    filename: str = ""
    line: int = 0
    column: int = 0


class ParameterInfo(ContractModel):
    """One parameter or result; only ``type`` takes part in comparisons."""

    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"type"})

    name: str = ""
    type: str = ""


class ReceiverInfo(ContractModel):
    """Method receiver. ``pointer`` is true when the receiver binds the class (classmethod)."""

    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"type", "pointer"})

    name: str = ""
    type: str
    pointer: bool = False


class MethodContract(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "position"})

    name: str
    doc_comment: str = ""
    receiver: ReceiverInfo | None = None
    parameters: list[ParameterInfo] = Field(default_factory=list)
    results: list[ParameterInfo] = Field(default_factory=list)
    position: PositionInfo = Field(default_factory=PositionInfo)


class FunctionContract(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "package", "position"})

    name: str
    package: str = ""
    doc_comment: str = ""
    parameters: list[ParameterInfo] = Field(default_factory=list)
    results: list[ParameterInfo] = Field(default_factory=list)
    position: PositionInfo = Field(default_factory=PositionInfo)


class FieldContract(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "type", "position"})

    name: str
    type: str = ""
    tag: str = ""
    doc_comment: str = ""
    position: PositionInfo = Field(default_factory=PositionInfo)


class InterfaceContract(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "package", "position"})

    name: str
    package: str = ""
    doc_comment: str = ""
    methods: list[MethodContract] = Field(default_factory=list)
    embedded: list[str] = Field(default_factory=list)
    position: PositionInfo = Field(default_factory=PositionInfo)


class TypeContract(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "package", "kind", "position"})

    name: str
    package: str = ""
    kind: str  # "struct" | "basic" | "alias"
    doc_comment: str = ""
    fields: list[FieldContract] = Field(default_factory=list)
    methods: list[MethodContract] = Field(default_factory=list)
    underlying: str = ""
    position: PositionInfo = Field(default_factory=PositionInfo)


class VariableContract(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "package", "type", "position"})

    name: str
    package: str = ""
    type: str = ""
    doc_comment: str = ""
    position: PositionInfo = Field(default_factory=PositionInfo)


class ConstantContract(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "package", "type", "position"})

    name: str
    package: str = ""
    type: str = ""
    value: str = ""
    doc_comment: str = ""
    position: PositionInfo = Field(default_factory=PositionInfo)


def _now() -> datetime:
    return datetime.now(UTC)


class Contract(ContractModel):
    """API contract of one package at one point in time."""

    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"package_name", "timestamp"})

    package_name: str
    module_path: str = ""
    version: str = ""
    # Informational only; never part of a semantic comparison
    timestamp: datetime = Field(default_factory=_now)
    interfaces: list[InterfaceContract] = Field(default_factory=list)
    types: list[TypeContract] = Field(default_factory=list)
    functions: list[FunctionContract] = Field(default_factory=list)
    variables: list[VariableContract] = Field(default_factory=list)
    constants: list[ConstantContract] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(indent=JSON_INDENT)

    def semantic_dump(self) -> dict[str, Any]:
        """Serialized form without the timestamp, for equality checks."""
        data = self.model_dump(mode="json")
        data.pop("timestamp", None)
        return data

    def with_version(self, version: str) -> Contract:
        return self.model_copy(update={"version": version})

    def save(self, path: str | Path) -> None:
        """Persist the contract as indented JSON.

        Side Effects:
            - Writes the file at ``path`` with mode 0600
        """
        _write_json(Path(path), self.to_json(), "contract")


class BreakingChange(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"type", "item", "description"})

    type: str
    item: str
    description: str
    old_value: str = ""
    new_value: str = ""


class AddedItem(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"type", "item", "description"})

    type: str
    item: str
    description: str


class ModifiedItem(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"type", "item", "description"})

    type: str
    item: str
    description: str
    old_value: str = ""
    new_value: str = ""


class DiffSummary(ContractModel):
    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset(
        {
            "total_breaking_changes",
            "total_additions",
            "total_modifications",
            "has_breaking_changes",
        }
    )

    total_breaking_changes: int = 0
    total_additions: int = 0
    total_modifications: int = 0
    has_breaking_changes: bool = False


class ContractDiff(ContractModel):
    """Classified differences between two contracts."""

    KEEP_KEYS: ClassVar[frozenset[str]] = frozenset({"package_name", "summary"})

    package_name: str
    old_version: str = ""
    new_version: str = ""
    breaking_changes: list[BreakingChange] = Field(default_factory=list)
    added_items: list[AddedItem] = Field(default_factory=list)
    modified_items: list[ModifiedItem] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)

    def to_json(self) -> str:
        return self.model_dump_json(indent=JSON_INDENT)

    def save(self, path: str | Path) -> None:
        """Persist the diff as indented JSON.

        Side Effects:
            - Writes the file at ``path`` with mode 0600
        """
        _write_json(Path(path), self.to_json(), "diff")


# ---------------------------------------------------------------------------
# File persistence
# ---------------------------------------------------------------------------


def _write_json(path: Path, payload: str, what: str) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONTRACT_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
    except OSError as exc:
        raise ContractIOError(f"failed to write {what} file {path}: {exc}") from exc


def _read_json(path: Path, what: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NotFoundError(f"{what} file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ContractIOError(f"failed to read {what} file {path}: {exc}") from exc


def load_contract(path: str | Path) -> Contract:
    """Load a contract previously written by ``Contract.save``."""
    path = Path(path)
    raw = _read_json(path, "contract")
    try:
        return Contract.model_validate_json(raw)
    except ValidationError as exc:
        raise ContractIOError(f"failed to unmarshal contract {path}: {exc}") from exc


def load_diff(path: str | Path) -> ContractDiff:
    """Load a diff previously written by ``ContractDiff.save``."""
    path = Path(path)
    raw = _read_json(path, "diff")
    try:
        return ContractDiff.model_validate_json(raw)
    except ValidationError as exc:
        raise ContractIOError(f"failed to unmarshal diff {path}: {exc}") from exc
