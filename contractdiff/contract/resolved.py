"""
Import-based contract extraction.

Module: resolved
Purpose: build a Contract from an importable module or package. Annotations
are resolved with ``typing.get_type_hints`` (forward references, string
annotations and aliases all evaluate to real types), constant values are the
evaluated runtime values, and doc comments still come from the parsed source.
Dependencies: contractdiff.contract.builder, contractdiff.contract.signature

Importing executes module code; only point this at packages you trust.
"""

from __future__ import annotations

import ast
import dataclasses
import enum
import importlib
import importlib.util
import inspect
import pkgutil
import types
import typing
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any

from contractdiff.contract.builder import (
    ClassSpec,
    ContractBuilder,
    ExtractorOptions,
    PackageInfo,
)
from contractdiff.contract.docs import DocIndex
from contractdiff.contract.models import (
    ConstantContract,
    FieldContract,
    FunctionContract,
    MethodContract,
    PositionInfo,
    ReceiverInfo,
    VariableContract,
)
from contractdiff.contract.signature import (
    parameters_from_signature,
    render_type,
    results_from_signature,
)
from contractdiff.contract.syntax import CONSTANT_NAME, is_internal_module, is_test_file
from contractdiff.errors import NoPackagesFoundError, PackageErrors
from contractdiff.observability.logging import get_logger

logger = get_logger(__name__)


def _safe_hints(obj: Any) -> dict[str, Any]:
    """Resolved annotations, falling back to the raw ones when resolution fails."""
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except Exception:  # noqa: BLE001 - unresolvable forward refs are common
        raw = getattr(obj, "__annotations__", None)
        return dict(raw) if isinstance(raw, dict) else {}


def _unwrap_final(annotation: Any) -> tuple[bool, Any]:
    if annotation is typing.Final:
        return True, inspect.Parameter.empty
    if typing.get_origin(annotation) is typing.Final:
        return True, typing.get_args(annotation)[0]
    if isinstance(annotation, str) and annotation.startswith("Final"):
        inner = annotation[len("Final") :].strip()
        return True, inner[1:-1] if inner.startswith("[") else inspect.Parameter.empty
    return False, annotation


def _source_line(obj: Any) -> int:
    code = getattr(obj, "__code__", None)
    if code is not None:
        return code.co_firstlineno
    try:
        return inspect.getsourcelines(obj)[1]
    except (OSError, TypeError):
        return 0


def _stable_repr(value: Any) -> str:
    text = repr(value)
    if " at 0x" in text:
        return f"<{type(value).__name__}>"
    return text


def _type_of(value: Any) -> str:
    return render_type(type(value))


def _is_type_alias_value(value: Any) -> bool:
    if type(value).__name__ == "TypeAliasType":
        return True
    if isinstance(value, types.UnionType | types.GenericAlias):
        return True
    return typing.get_origin(value) is not None and not inspect.isclass(value)


@dataclass
class _LoadedModule:
    module: ModuleType
    docs: DocIndex | None
    # Top-level assigned names and their lines, when source is available
    assignments: dict[str, int] | None = field(default=None)


class ImportedContractSource:
    """Imports a module (and, for packages, its direct submodules) and inspects it."""

    def __init__(self, import_path: str, options: ExtractorOptions) -> None:
        self.import_path = import_path
        self.options = options
        self._modules: list[_LoadedModule] = []

    def load(self) -> PackageInfo:
        try:
            spec = importlib.util.find_spec(self.import_path)
        except (ImportError, ValueError) as exc:
            raise NoPackagesFoundError(self.import_path) from exc
        if spec is None:
            raise NoPackagesFoundError(self.import_path)

        errors: list[str] = []
        root = self._import(self.import_path, errors)
        if root is None:
            raise PackageErrors(errors)
        modules = [root]

        if hasattr(root, "__path__"):
            for info in sorted(pkgutil.iter_modules(root.__path__), key=lambda i: i.name):
                if info.ispkg:
                    continue
                if not self.options.include_tests and is_test_file(f"{info.name}.py"):
                    continue
                if not self.options.include_internal and is_internal_module(info.name):
                    continue
                submodule = self._import(f"{self.import_path}.{info.name}", errors)
                if submodule is not None:
                    modules.append(submodule)

        if errors:
            raise PackageErrors(errors)

        self._modules = [self._load_source(module) for module in modules]
        logger.debug("Imported %d modules for %s", len(self._modules), self.import_path)
        return PackageInfo(name=self.import_path.rsplit(".", 1)[-1], module_path=self.import_path)

    def _import(self, name: str, errors: list[str]) -> ModuleType | None:
        try:
            return importlib.import_module(name)
        except Exception as exc:  # noqa: BLE001 - every import failure is aggregated
            errors.append(f"{name}: {type(exc).__name__}: {exc}")
            return None

    def _load_source(self, module: ModuleType) -> _LoadedModule:
        try:
            source = inspect.getsource(module)
            tree = ast.parse(source)
        except (OSError, TypeError, SyntaxError):
            return _LoadedModule(module=module, docs=None)

        assignments: dict[str, int] = {}
        for node in tree.body:
            targets: list[ast.expr] = []
            if isinstance(node, ast.Assign):
                targets = list(node.targets)
            elif isinstance(node, ast.AnnAssign):
                targets = [node.target]
            elif hasattr(ast, "TypeAlias") and isinstance(node, ast.TypeAlias):
                targets = [node.name]
            for target in targets:
                elts = target.elts if isinstance(target, ast.Tuple | ast.List) else [target]
                for elt in elts:
                    if isinstance(elt, ast.Name):
                        assignments.setdefault(elt.id, node.lineno)
        return _LoadedModule(module=module, docs=DocIndex(tree, source), assignments=assignments)

    # -- population -------------------------------------------------------

    def populate(self, builder: ContractBuilder) -> None:
        for loaded in self._modules:
            module = loaded.module
            exports = getattr(module, "__all__", None)
            builder.begin_module(list(exports) if exports is not None else None)
            hints = _safe_hints(module)
            raw_annotations = dict(getattr(module, "__annotations__", {}) or {})

            for name, value in list(vars(module).items()):
                if not builder.exported(name) or inspect.ismodule(value):
                    continue
                if inspect.isclass(value):
                    if value.__module__ != module.__name__:
                        continue
                    # A class bound under another name is an alias of it
                    if name == value.__name__:
                        builder.add_class(self._class_spec(loaded, value))
                    else:
                        self._add_class_alias(builder, loaded, name, value)
                elif inspect.isfunction(value) and name == value.__name__:
                    if value.__module__ == module.__name__:
                        builder.add_function(self._function(loaded, value))
                elif self._is_own_value(loaded, name, raw_annotations):
                    self._add_value(builder, loaded, name, value, hints, raw_annotations)

    def _add_class_alias(self, builder: ContractBuilder, loaded: _LoadedModule, name: str, cls: type) -> None:
        line = (loaded.assignments or {}).get(name, 0)
        doc = loaded.docs.lookup(line) if loaded.docs is not None and line else ""
        builder.add_alias(name, loaded.module.__name__, doc, self._position(loaded, line), render_type(cls))

    def _is_own_value(self, loaded: _LoadedModule, name: str, annotations: dict[str, Any]) -> bool:
        if loaded.assignments is None:
            return True
        return name in loaded.assignments or name in annotations

    def _doc(self, loaded: _LoadedModule, obj: Any, line: int) -> str:
        if loaded.docs is not None and line:
            return loaded.docs.lookup(line)
        own = obj.__dict__.get("__doc__") if inspect.isclass(obj) else getattr(obj, "__doc__", None)
        return inspect.cleandoc(own).strip() if isinstance(own, str) else ""

    def _position(self, loaded: _LoadedModule, line: int) -> PositionInfo:
        filename = getattr(loaded.module, "__file__", None) or ""
        return PositionInfo(filename=filename.rsplit("/", 1)[-1], line=line, column=1 if line else 0)

    def _add_value(
        self,
        builder: ContractBuilder,
        loaded: _LoadedModule,
        name: str,
        value: Any,
        hints: dict[str, Any],
        raw_annotations: dict[str, Any],
    ) -> None:
        if isinstance(value, typing.TypeVar | typing.ParamSpec):
            return

        line = (loaded.assignments or {}).get(name, 0)
        doc = loaded.docs.lookup(line) if loaded.docs is not None and line else ""
        position = self._position(loaded, line)
        package = loaded.module.__name__
        raw = raw_annotations.get(name, inspect.Parameter.empty)
        annotation = hints.get(name, raw)

        if annotation is typing.TypeAlias or raw == "TypeAlias" or _is_type_alias_value(value):
            underlying = getattr(value, "__value__", value)
            builder.add_alias(name, package, doc, position, render_type(underlying))
            return
        if isinstance(value, typing.NewType):
            builder.add_basic(name, package, doc, position, render_type(value.__supertype__))
            return

        is_final, inner = _unwrap_final(annotation)
        if is_final or CONSTANT_NAME.match(name):
            builder.add_constant(
                ConstantContract(
                    name=name,
                    package=package,
                    type=render_type(inner) or _type_of(value),
                    value=_stable_repr(value),
                    doc_comment=doc,
                    position=position,
                )
            )
        else:
            builder.add_variable(
                VariableContract(
                    name=name,
                    package=package,
                    type=render_type(annotation) or _type_of(value),
                    doc_comment=doc,
                    position=position,
                )
            )

    def _function(self, loaded: _LoadedModule, func: Any) -> FunctionContract:
        line = _source_line(func)
        signature = inspect.signature(func)
        hints = _safe_hints(func)
        return FunctionContract(
            name=func.__name__,
            package=loaded.module.__name__,
            doc_comment=self._doc(loaded, func, line),
            parameters=parameters_from_signature(signature, hints),
            results=results_from_signature(signature, hints),
            position=self._position(loaded, line),
        )

    # -- classes ----------------------------------------------------------

    def _class_spec(self, loaded: _LoadedModule, cls: type) -> ClassSpec:
        line = _source_line(cls)
        orig_bases = cls.__dict__.get("__orig_bases__", cls.__bases__)
        base_names = [render_type(base) for base in orig_bases]
        metaclass = type(cls).__name__ if type(cls) is not type else None
        # Concrete subclasses inherit ABCMeta; only an explicit metaclass counts
        if metaclass == "ABCMeta" and cls.__bases__ != (object,):
            metaclass = None

        methods: list[MethodContract] = []
        for name, member in cls.__dict__.items():
            method = self._method(loaded, cls, name, member)
            if method is not None:
                methods.append(method)

        return ClassSpec(
            name=cls.__name__,
            package=loaded.module.__name__,
            doc_comment=self._doc(loaded, cls, line),
            position=self._position(loaded, line),
            base_names=base_names,
            metaclass=metaclass,
            methods=methods,
            fields=self._fields(loaded, cls),
        )

    def _method(self, loaded: _LoadedModule, cls: type, name: str, member: Any) -> MethodContract | None:
        pointer = False
        has_receiver = True
        if isinstance(member, staticmethod):
            func, has_receiver = member.__func__, False
        elif isinstance(member, classmethod):
            func, pointer = member.__func__, True
        elif isinstance(member, property):
            func = member.fget
        else:
            func = member
        if not inspect.isfunction(func) or func.__module__ != cls.__module__:
            return None
        # Generated members (dataclass __init__, __eq__, ...) have no real source
        if func.__code__.co_filename.startswith("<"):
            return None

        signature = inspect.signature(func)
        hints = _safe_hints(func)
        receiver: ReceiverInfo | None = None
        first = next(iter(signature.parameters), None)
        if has_receiver and first is not None:
            receiver = ReceiverInfo(name=first, type=cls.__name__, pointer=pointer)

        line = _source_line(func)
        return MethodContract(
            name=name,
            doc_comment=self._doc(loaded, func, line),
            receiver=receiver,
            parameters=parameters_from_signature(signature, hints, skip_receiver=receiver is not None),
            results=results_from_signature(signature, hints),
            position=self._position(loaded, line),
        )

    def _fields(self, loaded: _LoadedModule, cls: type) -> list[FieldContract]:
        own_annotations = inspect.get_annotations(cls)
        hints = _safe_hints(cls)
        fields: list[FieldContract] = []
        seen: set[str] = set()

        for name in own_annotations:
            seen.add(name)
            fields.append(
                FieldContract(
                    name=name,
                    type=render_type(hints.get(name, own_annotations[name])),
                    tag=_field_default(cls, name),
                )
            )

        members = getattr(cls, "__members__", None)
        if isinstance(cls, enum.EnumMeta) and members is not None:
            for name, member in members.items():
                if name not in seen:
                    fields.append(FieldContract(name=name, type=cls.__name__, tag=_stable_repr(member.value)))
            return fields

        is_model = isinstance(getattr(cls, "model_fields", None), dict)
        for name, value in cls.__dict__.items():
            if name in seen or name.startswith("__"):
                continue
            if is_model and name.startswith("model_"):
                continue
            if callable(value) or isinstance(value, staticmethod | classmethod | property):
                continue
            fields.append(FieldContract(name=name, type=_type_of(value), tag=_stable_repr(value)))
        return fields


def _field_default(cls: type, name: str) -> str:
    """Textual default of an annotated field, in the class's own field framework."""
    if dataclasses.is_dataclass(cls):
        dc_field = cls.__dataclass_fields__.get(name)
        if dc_field is not None:
            if dc_field.default is not dataclasses.MISSING:
                return _stable_repr(dc_field.default)
            if dc_field.default_factory is not dataclasses.MISSING:
                return f"{getattr(dc_field.default_factory, '__name__', 'factory')}()"
            return ""

    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, dict) and name in model_fields:
        info = model_fields[name]
        if info.default_factory is not None:
            return f"{getattr(info.default_factory, '__name__', 'factory')}()"
        if not info.is_required():
            return _stable_repr(info.default)
        return ""

    if name in cls.__dict__:
        return _stable_repr(cls.__dict__[name])
    return ""
