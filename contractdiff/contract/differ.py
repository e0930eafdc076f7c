"""
Contract comparison.

Module: differ
Purpose: classify the differences between two Contracts into breaking changes,
additions and non-breaking modifications.
Dependencies: contractdiff.contract.models, contractdiff.contract.setdiff,
contractdiff.contract.signature

Comparison is a pure function of its two inputs. Collections are visited in a
fixed order (interfaces, types, functions, variables, constants) and, within
each, removed names come first, then added names, then changes to names
present on both sides, all in ascending name order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from contractdiff.contract.builder import KIND_ALIAS, KIND_STRUCT
from contractdiff.contract.models import (
    AddedItem,
    BreakingChange,
    ConstantContract,
    Contract,
    ContractDiff,
    DiffSummary,
    FunctionContract,
    InterfaceContract,
    MethodContract,
    ModifiedItem,
    ParameterInfo,
    TypeContract,
    VariableContract,
)
from contractdiff.contract.setdiff import T, by_name, partition
from contractdiff.contract.signature import (
    constant_signature,
    field_signature,
    function_signature,
    interface_signature,
    method_signature,
    type_signature,
    variable_signature,
)
from contractdiff.errors import NilContractsError
from contractdiff.observability.telemetry import log_event


@dataclass(frozen=True)
class DifferOptions:
    """Comparison options, fixed for the lifetime of a Differ.

    ``ignore_positions`` is kept for forward compatibility; positions are
    never compared.
    """

    ignore_positions: bool = True
    ignore_comments: bool = False


def _qualified(owner: str, name: str) -> str:
    return f"{owner}.{name}" if owner else name


def _types_of(params: list[ParameterInfo]) -> list[str]:
    return [param.type for param in params]


def _same_signature(old: MethodContract | FunctionContract, new: MethodContract | FunctionContract) -> bool:
    """Compare parameter and result types positionally; names never matter."""
    return _types_of(old.parameters) == _types_of(new.parameters) and _types_of(old.results) == _types_of(
        new.results
    )


def _same_receiver(old: MethodContract, new: MethodContract) -> bool:
    if old.receiver is None or new.receiver is None:
        return old.receiver is None and new.receiver is None
    return old.receiver.type == new.receiver.type and old.receiver.pointer == new.receiver.pointer


@dataclass
class _DiffCollector:
    """Accumulates classified changes while a single comparison runs."""

    breaking: list[BreakingChange] = field(default_factory=list)
    added: list[AddedItem] = field(default_factory=list)
    modified: list[ModifiedItem] = field(default_factory=list)

    def breaking_change(self, kind: str, item: str, description: str, old: str = "", new: str = "") -> None:
        self.breaking.append(
            BreakingChange(type=kind, item=item, description=description, old_value=old, new_value=new)
        )

    def addition(self, kind: str, item: str, description: str) -> None:
        self.added.append(AddedItem(type=kind, item=item, description=description))

    def modification(self, kind: str, item: str, description: str, old: str = "", new: str = "") -> None:
        self.modified.append(
            ModifiedItem(type=kind, item=item, description=description, old_value=old, new_value=new)
        )

    def removed_and_added(
        self,
        kind: str,
        removed: list[T],
        added: list[T],
        signature: Callable[[T], str],
        owner: str = "",
        owner_kind: str = "",
    ) -> None:
        """
        Record removals as breaking and additions as additions for one collection.

        Members of an owner (methods, fields) are reported as ``Owner.member``
        and their descriptions name the owner.
        """
        label = kind.capitalize()
        removed_from = f" from {owner_kind} {owner}" if owner else ""
        added_to = f" to {owner_kind} {owner}" if owner else ""
        for entry in removed:
            self.breaking_change(
                f"removed_{kind}",
                _qualified(owner, entry.name),
                f"{label} {entry.name} was removed{removed_from}",
                old=signature(entry),
            )
        for entry in added:
            self.addition(kind, _qualified(owner, entry.name), f"New {kind} {entry.name} was added{added_to}")


class Differ:
    """Compares two Contracts of the same package."""

    def __init__(self, options: DifferOptions | None = None) -> None:
        self.options = options or DifferOptions()

    def compare(self, old: Contract | None, new: Contract | None) -> ContractDiff:
        """
        Classify every difference between ``old`` and ``new``.

        Raises:
            NilContractsError: when either contract is missing
        """
        if old is None or new is None:
            raise NilContractsError()

        changes = _DiffCollector()
        self._compare_interfaces(old.interfaces, new.interfaces, changes)
        self._compare_types(old.types, new.types, changes)
        self._compare_functions(old.functions, new.functions, changes)
        self._compare_variables(old.variables, new.variables, changes)
        self._compare_constants(old.constants, new.constants, changes)

        summary = DiffSummary(
            total_breaking_changes=len(changes.breaking),
            total_additions=len(changes.added),
            total_modifications=len(changes.modified),
            has_breaking_changes=len(changes.breaking) > 0,
        )
        log_event(
            "contract.compared",
            package=new.package_name,
            breaking=summary.total_breaking_changes,
            additions=summary.total_additions,
            modifications=summary.total_modifications,
        )
        return ContractDiff(
            package_name=new.package_name,
            old_version=old.version,
            new_version=new.version,
            breaking_changes=changes.breaking,
            added_items=changes.added,
            modified_items=changes.modified,
            summary=summary,
        )

    # -- interfaces -------------------------------------------------------

    def _compare_interfaces(
        self, old: list[InterfaceContract], new: list[InterfaceContract], changes: _DiffCollector
    ) -> None:
        removed, added, common = partition(by_name(old), by_name(new))
        changes.removed_and_added("interface", removed, added, interface_signature)
        for old_iface, new_iface in common:
            self._compare_embedded(old_iface, new_iface, changes)
            self._compare_methods(old_iface.name, "interface", old_iface.methods, new_iface.methods, changes)

    def _compare_embedded(
        self, old: InterfaceContract, new: InterfaceContract, changes: _DiffCollector
    ) -> None:
        old_bases, new_bases = set(old.embedded), set(new.embedded)
        for base in sorted(old_bases - new_bases):
            changes.breaking_change(
                "removed_embedded_interface",
                f"{old.name}.{base}",
                f"Interface {old.name} no longer embeds {base}",
                old=base,
            )
        for base in sorted(new_bases - old_bases):
            changes.addition(
                "embedded_interface",
                f"{new.name}.{base}",
                f"Interface {new.name} now embeds {base}",
            )

    def _compare_methods(
        self,
        owner: str,
        owner_kind: str,
        old: list[MethodContract],
        new: list[MethodContract],
        changes: _DiffCollector,
    ) -> None:
        removed, added, common = partition(by_name(old), by_name(new))
        changes.removed_and_added("method", removed, added, method_signature, owner=owner, owner_kind=owner_kind)
        for old_method, new_method in common:
            item = f"{owner}.{new_method.name}"
            if not (_same_receiver(old_method, new_method) and _same_signature(old_method, new_method)):
                changes.breaking_change(
                    "changed_method_signature",
                    item,
                    f"Method {new_method.name} signature changed in {owner_kind} {owner}",
                    old=method_signature(old_method),
                    new=method_signature(new_method),
                )
            elif not self.options.ignore_comments and old_method.doc_comment != new_method.doc_comment:
                changes.modification(
                    "method_comment",
                    item,
                    f"Method {new_method.name} documentation changed in {owner_kind} {owner}",
                    old=old_method.doc_comment,
                    new=new_method.doc_comment,
                )

    # -- types ------------------------------------------------------------

    def _compare_types(self, old: list[TypeContract], new: list[TypeContract], changes: _DiffCollector) -> None:
        removed, added, common = partition(by_name(old), by_name(new))
        changes.removed_and_added("type", removed, added, type_signature)
        for old_type, new_type in common:
            self._compare_type(old_type, new_type, changes)

    def _compare_type(self, old: TypeContract, new: TypeContract, changes: _DiffCollector) -> None:
        if old.kind != new.kind:
            changes.breaking_change(
                "changed_type_kind",
                old.name,
                f"Type {old.name} kind changed from {old.kind} to {new.kind}",
                old=old.kind,
                new=new.kind,
            )
            return

        if old.kind == KIND_STRUCT:
            self._compare_fields(old, new, changes)
        elif old.kind == KIND_ALIAS and old.underlying != new.underlying:
            changes.breaking_change(
                "changed_type_underlying",
                old.name,
                f"Type alias {old.name} underlying type changed",
                old=old.underlying,
                new=new.underlying,
            )

        self._compare_methods(old.name, "type", old.methods, new.methods, changes)

    def _compare_fields(self, old: TypeContract, new: TypeContract, changes: _DiffCollector) -> None:
        removed, added, common = partition(by_name(old.fields), by_name(new.fields))
        changes.removed_and_added("field", removed, added, field_signature, owner=new.name, owner_kind="struct")
        for old_field, new_field in common:
            item = f"{new.name}.{new_field.name}"
            if old_field.type != new_field.type:
                changes.breaking_change(
                    "changed_field_type",
                    item,
                    f"Field {new_field.name} type changed in struct {new.name}",
                    old=old_field.type,
                    new=new_field.type,
                )
            elif old_field.tag != new_field.tag:
                changes.modification(
                    "field_tag",
                    item,
                    f"Field {new_field.name} tag changed in struct {new.name}",
                    old=old_field.tag,
                    new=new_field.tag,
                )

    # -- functions, variables, constants -----------------------------------

    def _compare_functions(
        self, old: list[FunctionContract], new: list[FunctionContract], changes: _DiffCollector
    ) -> None:
        removed, added, common = partition(by_name(old), by_name(new))
        changes.removed_and_added("function", removed, added, function_signature)
        for old_func, new_func in common:
            if not _same_signature(old_func, new_func):
                changes.breaking_change(
                    "changed_function_signature",
                    new_func.name,
                    f"Function {new_func.name} signature changed",
                    old=function_signature(old_func),
                    new=function_signature(new_func),
                )

    def _compare_variables(
        self, old: list[VariableContract], new: list[VariableContract], changes: _DiffCollector
    ) -> None:
        removed, added, common = partition(by_name(old), by_name(new))
        changes.removed_and_added("variable", removed, added, variable_signature)
        for old_var, new_var in common:
            if old_var.type != new_var.type:
                changes.breaking_change(
                    "changed_variable_type",
                    new_var.name,
                    f"Variable {new_var.name} type changed",
                    old=old_var.type,
                    new=new_var.type,
                )

    def _compare_constants(
        self, old: list[ConstantContract], new: list[ConstantContract], changes: _DiffCollector
    ) -> None:
        removed, added, common = partition(by_name(old), by_name(new))
        changes.removed_and_added("constant", removed, added, constant_signature)
        for old_const, new_const in common:
            if old_const.type != new_const.type:
                changes.breaking_change(
                    "changed_constant_type",
                    new_const.name,
                    f"Constant {new_const.name} type changed",
                    old=old_const.type,
                    new=new_const.type,
                )
            elif old_const.value != new_const.value:
                # Value drift is reported but never treated as breaking
                changes.modification(
                    "constant_value",
                    new_const.name,
                    f"Constant {new_const.name} value changed",
                    old=old_const.value,
                    new=new_const.value,
                )
