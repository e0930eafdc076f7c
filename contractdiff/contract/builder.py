"""
Contract assembly shared by both extraction strategies.

Module: builder
Purpose: visibility filtering, class classification, duplicate handling and
the final sort that makes every extracted Contract deterministic.
Dependencies: contractdiff.contract.models

Strategies (syntax-only and import-based) only discover declarations; every
decision about what ends up in the Contract is made here, once.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Protocol

from contractdiff.contract.models import (
    ConstantContract,
    Contract,
    FieldContract,
    FunctionContract,
    InterfaceContract,
    MethodContract,
    PositionInfo,
    TypeContract,
    VariableContract,
)
from contractdiff.observability.logging import get_logger

logger = get_logger(__name__)

KIND_STRUCT = "struct"
KIND_BASIC = "basic"
KIND_ALIAS = "alias"

# Bases that make a class an interface
INTERFACE_BASES: frozenset[str] = frozenset({"Protocol", "ABC"})
INTERFACE_METACLASSES: frozenset[str] = frozenset({"ABCMeta"})
# Bases never reported as embedded interfaces
IGNORED_BASES: frozenset[str] = frozenset({"Protocol", "ABC", "Generic", "object"})
PRIMITIVE_TYPES: frozenset[str] = frozenset({"int", "str", "float", "bytes", "bool", "complex"})


@dataclass(frozen=True)
class ExtractorOptions:
    """Filtering options, fixed for the lifetime of an Extractor."""

    include_private: bool = False
    include_tests: bool = False
    include_internal: bool = False


@dataclass(frozen=True)
class PackageInfo:
    """Identity of the package a source is about to populate."""

    name: str
    module_path: str = ""


@dataclass
class ClassSpec:
    """A discovered class, before classification."""

    name: str
    package: str
    doc_comment: str
    position: PositionInfo
    base_names: list[str] = field(default_factory=list)
    metaclass: str | None = None
    methods: list[MethodContract] = field(default_factory=list)
    fields: list[FieldContract] = field(default_factory=list)


class ContractSource(Protocol):
    """One way of discovering a package's declarations.

    ``load`` validates the target and raises before anything is built;
    ``populate`` feeds every discovered declaration to the builder.
    """

    def load(self) -> PackageInfo: ...

    def populate(self, builder: ContractBuilder) -> None: ...


def base_name(rendered: str) -> str:
    """Strip subscripts and module prefixes from a rendered base class."""
    return rendered.split("[", 1)[0].rsplit(".", 1)[-1]


def is_interface(base_names: Collection[str], metaclass: str | None) -> bool:
    if any(base_name(name) in INTERFACE_BASES for name in base_names):
        return True
    return metaclass is not None and base_name(metaclass) in INTERFACE_METACLASSES


def is_dunder(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


class ContractBuilder:
    """Collects declarations for one package and produces a sorted Contract.

    The first declaration seen for a name wins; strategies feed ``__init__``
    first and the remaining modules in sorted order.
    """

    def __init__(self, package: PackageInfo, options: ExtractorOptions) -> None:
        self.package = package
        self.options = options
        self._exports: frozenset[str] | None = None
        self._interfaces: dict[str, InterfaceContract] = {}
        self._types: dict[str, TypeContract] = {}
        self._functions: dict[str, FunctionContract] = {}
        self._variables: dict[str, VariableContract] = {}
        self._constants: dict[str, ConstantContract] = {}

    # -- visibility -------------------------------------------------------

    def begin_module(self, exports: Collection[str] | None) -> None:
        """Switch to a new module; ``exports`` is its ``__all__`` when defined."""
        self._exports = frozenset(exports) if exports is not None else None

    def exported(self, name: str) -> bool:
        """Top-level visibility: public name, listed in ``__all__`` when present."""
        if is_dunder(name):
            return False
        if self.options.include_private:
            return True
        if name.startswith("_"):
            return False
        return self._exports is None or name in self._exports

    def member_visible(self, name: str) -> bool:
        """Method visibility: public names and dunder protocol methods."""
        return self.options.include_private or not name.startswith("_") or is_dunder(name)

    def field_visible(self, name: str) -> bool:
        return self.options.include_private or not name.startswith("_")

    # -- collection -------------------------------------------------------

    def _add(self, bucket: dict, name: str, entity: object, kind: str) -> None:
        if name in bucket:
            logger.debug("Skipping duplicate %s %s in %s", kind, name, self.package.name)
            return
        bucket[name] = entity

    def add_class(self, spec: ClassSpec) -> None:
        methods = [m for m in spec.methods if self.member_visible(m.name)]
        if is_interface(spec.base_names, spec.metaclass):
            embedded = sorted(
                {base_name(b) for b in spec.base_names} - IGNORED_BASES,
            )
            interface = InterfaceContract(
                name=spec.name,
                package=spec.package,
                doc_comment=spec.doc_comment,
                methods=methods,
                embedded=embedded,
                position=spec.position,
            )
            self._add(self._interfaces, spec.name, interface, "interface")
            return

        fields = [f for f in spec.fields if self.field_visible(f.name)]
        bases = [base_name(b) for b in spec.base_names if base_name(b) != "object"]
        if len(bases) == 1 and bases[0] in PRIMITIVE_TYPES and not fields and not methods:
            self.add_basic(spec.name, spec.package, spec.doc_comment, spec.position, bases[0])
            return

        type_contract = TypeContract(
            name=spec.name,
            package=spec.package,
            kind=KIND_STRUCT,
            doc_comment=spec.doc_comment,
            fields=fields,
            methods=methods,
            position=spec.position,
        )
        self._add(self._types, spec.name, type_contract, "type")

    def add_basic(
        self, name: str, package: str, doc_comment: str, position: PositionInfo, underlying: str
    ) -> None:
        """A named type over a primitive; anything else becomes an alias."""
        kind = KIND_BASIC if underlying in PRIMITIVE_TYPES else KIND_ALIAS
        type_contract = TypeContract(
            name=name,
            package=package,
            kind=kind,
            doc_comment=doc_comment,
            underlying=underlying,
            position=position,
        )
        self._add(self._types, name, type_contract, "type")

    def add_alias(
        self, name: str, package: str, doc_comment: str, position: PositionInfo, underlying: str
    ) -> None:
        type_contract = TypeContract(
            name=name,
            package=package,
            kind=KIND_ALIAS,
            doc_comment=doc_comment,
            underlying=underlying,
            position=position,
        )
        self._add(self._types, name, type_contract, "type")

    def add_function(self, function: FunctionContract) -> None:
        self._add(self._functions, function.name, function, "function")

    def add_variable(self, variable: VariableContract) -> None:
        self._add(self._variables, variable.name, variable, "variable")

    def add_constant(self, constant: ConstantContract) -> None:
        self._add(self._constants, constant.name, constant, "constant")

    def build(self) -> Contract:
        contract = Contract(
            package_name=self.package.name,
            module_path=self.package.module_path,
            interfaces=list(self._interfaces.values()),
            types=list(self._types.values()),
            functions=list(self._functions.values()),
            variables=list(self._variables.values()),
            constants=list(self._constants.values()),
        )
        return sort_contract(contract)


def _by_name(items: list) -> list:
    return sorted(items, key=lambda item: item.name)


def sort_contract(contract: Contract) -> Contract:
    """Return a copy with every collection, method set and field list sorted by name.

    Idempotent: sorting an already sorted contract yields an equal contract.
    """
    interfaces = [
        iface.model_copy(update={"methods": _by_name(iface.methods)})
        for iface in _by_name(contract.interfaces)
    ]
    types = [
        typ.model_copy(update={"methods": _by_name(typ.methods), "fields": _by_name(typ.fields)})
        for typ in _by_name(contract.types)
    ]
    return contract.model_copy(
        update={
            "interfaces": interfaces,
            "types": types,
            "functions": _by_name(contract.functions),
            "variables": _by_name(contract.variables),
            "constants": _by_name(contract.constants),
        }
    )
