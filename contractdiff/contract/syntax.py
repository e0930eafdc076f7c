"""
Syntax-only contract extraction.

Module: syntax
Purpose: build a Contract from the ``.py`` files of one directory using ``ast``
alone. No code is imported or executed, so types are taken as written in
annotations and never resolved across files or imports.
Dependencies: contractdiff.contract.builder, contractdiff.contract.signature
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from pathlib import Path

from contractdiff.config import (
    INTERNAL_SEGMENTS,
    SOURCE_SUFFIX,
    TEST_FILE_NAMES,
    TEST_FILE_PREFIXES,
    TEST_FILE_SUFFIXES,
)
from contractdiff.contract.builder import (
    PRIMITIVE_TYPES,
    ClassSpec,
    ContractBuilder,
    ExtractorOptions,
    PackageInfo,
    base_name,
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
    parameters_from_ast,
    render_annotation,
    results_from_ast,
)
from contractdiff.errors import InputError, NoSourceFilesFoundError, ParseError
from contractdiff.observability.logging import get_logger

logger = get_logger(__name__)

CONSTANT_NAME = re.compile(r"^_*[A-Z][A-Z0-9_]*$")

# Names whose subscription or use marks an assignment as a type alias
GENERIC_NAMES: frozenset[str] = frozenset(
    {
        "list",
        "dict",
        "set",
        "frozenset",
        "tuple",
        "type",
        "defaultdict",
        "Callable",
        "Union",
        "Optional",
        "Literal",
        "Annotated",
        "Iterable",
        "Iterator",
        "Generator",
        "AsyncIterator",
        "AsyncIterable",
        "AsyncGenerator",
        "Awaitable",
        "Coroutine",
        "Mapping",
        "MutableMapping",
        "Sequence",
        "MutableSequence",
        "Collection",
    }
)
TYPE_VAR_FACTORIES: frozenset[str] = frozenset({"TypeVar", "ParamSpec", "TypeVarTuple"})
ENUM_BASES: frozenset[str] = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})
_LITERAL_TYPES: dict[type, str] = {
    bool: "bool",
    int: "int",
    float: "float",
    complex: "complex",
    str: "str",
    bytes: "bytes",
}


def is_test_file(name: str) -> bool:
    return (
        name in TEST_FILE_NAMES
        or name.startswith(TEST_FILE_PREFIXES)
        or name.endswith(TEST_FILE_SUFFIXES)
    )


def is_internal_module(name: str) -> bool:
    return name in INTERNAL_SEGMENTS


def dotted_module_path(directory: Path) -> str:
    """Import path of a directory, following the chain of ``__init__.py`` parents."""
    parts: list[str] = []
    current = directory
    while (current / "__init__.py").exists():
        parts.append(current.name)
        if current.parent == current:
            break
        current = current.parent
    return ".".join(reversed(parts))


def infer_literal_type(node: ast.expr | None) -> str:
    """Best-effort type of an unannotated value."""
    if node is None:
        return ""
    if isinstance(node, ast.Constant):
        if node.value is None:
            return "None"
        return _LITERAL_TYPES.get(type(node.value), "")
    if isinstance(node, ast.JoinedStr):
        return "str"
    if isinstance(node, ast.List | ast.ListComp):
        return "list"
    if isinstance(node, ast.Dict | ast.DictComp):
        return "dict"
    if isinstance(node, ast.Set | ast.SetComp):
        return "set"
    if isinstance(node, ast.Tuple):
        return "tuple"
    if isinstance(node, ast.UnaryOp):
        return infer_literal_type(node.operand)
    if isinstance(node, ast.Call):
        callee = render_annotation(node.func)
        return callee if "(" not in callee else ""
    return ""


def _unwrap_final(annotation: ast.expr | None) -> tuple[bool, ast.expr | None]:
    if annotation is None:
        return False, None
    rendered = render_annotation(annotation)
    if rendered == "Final":
        return True, None
    if isinstance(annotation, ast.Subscript) and render_annotation(annotation.value) == "Final":
        return True, annotation.slice
    return False, annotation


def _static_exports(tree: ast.Module) -> list[str] | None:
    """Names listed in a literal ``__all__``, if the module defines one."""
    for node in tree.body:
        targets: list[ast.expr] = []
        value: ast.expr | None = None
        if isinstance(node, ast.Assign):
            targets, value = node.targets, node.value
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            targets, value = [node.target], node.value
        if not any(isinstance(t, ast.Name) and t.id == "__all__" for t in targets):
            continue
        if isinstance(value, ast.List | ast.Tuple):
            return [
                elt.value
                for elt in value.elts
                if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
            ]
    return None


def _decorator_names(node: ast.FunctionDef | ast.AsyncFunctionDef) -> set[str]:
    names = set()
    for decorator in node.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        names.add(render_annotation(target).rsplit(".", 1)[-1])
    return names


def _is_type_expression(node: ast.expr, class_names: set[str]) -> bool:
    if isinstance(node, ast.Subscript):
        return render_annotation(node.value) in GENERIC_NAMES
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _is_type_operand(node.left, class_names) and _is_type_operand(node.right, class_names)
    if isinstance(node, ast.Name):
        return node.id in class_names
    return False


def _is_type_operand(node: ast.expr, class_names: set[str]) -> bool:
    if isinstance(node, ast.Constant) and node.value is None:
        return True
    if isinstance(node, ast.Name) and (node.id in PRIMITIVE_TYPES or node.id in GENERIC_NAMES):
        return True
    return _is_type_expression(node, class_names)


def _factory_name(value: ast.expr | None) -> str:
    if isinstance(value, ast.Call):
        return render_annotation(value.func).rsplit(".", 1)[-1]
    return ""


@dataclass
class _ParsedModule:
    path: Path
    module: str
    tree: ast.Module
    docs: DocIndex


class SyntaxContractSource:
    """Reads one directory's modules with ``ast``; nothing is imported."""

    def __init__(self, directory: str | Path, options: ExtractorOptions) -> None:
        self.directory = Path(directory)
        self.options = options
        self._modules: list[_ParsedModule] = []

    def _eligible_files(self) -> list[Path]:
        files = []
        for path in sorted(self.directory.glob(f"*{SOURCE_SUFFIX}")):
            if not path.is_file():
                continue
            if not self.options.include_tests and is_test_file(path.name):
                continue
            if not self.options.include_internal and is_internal_module(path.stem):
                continue
            files.append(path)
        # __init__ defines the package namespace; it is read first
        return sorted(files, key=lambda p: (p.name != "__init__.py", p.name))

    def load(self) -> PackageInfo:
        if not self.directory.is_dir():
            raise InputError(f"not a directory: {self.directory}")

        files = self._eligible_files()
        if not files:
            raise NoSourceFilesFoundError(str(self.directory))

        module_path = dotted_module_path(self.directory.resolve())
        errors: list[str] = []
        for path in files:
            try:
                source = path.read_text(encoding="utf-8")
                tree = ast.parse(source, filename=str(path))
            except SyntaxError as exc:
                errors.append(f"{path.name}:{exc.lineno}: {exc.msg}")
                continue
            except (OSError, UnicodeDecodeError) as exc:
                errors.append(f"{path.name}: {exc}")
                continue
            if path.stem == "__init__":
                module = module_path or self.directory.resolve().name
            else:
                module = f"{module_path}.{path.stem}" if module_path else path.stem
            self._modules.append(_ParsedModule(path, module, tree, DocIndex(tree, source)))

        if errors:
            raise ParseError(errors)

        logger.debug("Parsed %d modules from %s", len(self._modules), self.directory)
        return PackageInfo(name=self.directory.resolve().name, module_path=module_path)

    def populate(self, builder: ContractBuilder) -> None:
        class_names = {
            node.name
            for parsed in self._modules
            for node in parsed.tree.body
            if isinstance(node, ast.ClassDef)
        }
        for parsed in self._modules:
            builder.begin_module(_static_exports(parsed.tree))
            for index, node in enumerate(parsed.tree.body):
                following = parsed.tree.body[index + 1] if index + 1 < len(parsed.tree.body) else None
                self._visit(builder, parsed, node, following, class_names)

    # -- declarations -----------------------------------------------------

    def _position(self, parsed: _ParsedModule, node: ast.AST) -> PositionInfo:
        return PositionInfo(filename=parsed.path.name, line=node.lineno, column=node.col_offset + 1)

    def _visit(
        self,
        builder: ContractBuilder,
        parsed: _ParsedModule,
        node: ast.stmt,
        following: ast.stmt | None,
        class_names: set[str],
    ) -> None:
        if isinstance(node, ast.ClassDef):
            if builder.exported(node.name):
                builder.add_class(self._class_spec(parsed, node))
        elif isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef):
            if builder.exported(node.name) and "overload" not in _decorator_names(node):
                builder.add_function(
                    FunctionContract(
                        name=node.name,
                        package=parsed.module,
                        doc_comment=parsed.docs.doc_for(node),
                        parameters=parameters_from_ast(node.args),
                        results=results_from_ast(node.returns),
                        position=self._position(parsed, node),
                    )
                )
        elif hasattr(ast, "TypeAlias") and isinstance(node, ast.TypeAlias):
            if builder.exported(node.name.id):
                builder.add_alias(
                    node.name.id,
                    parsed.module,
                    parsed.docs.doc_for(node, following),
                    self._position(parsed, node),
                    render_annotation(node.value),
                )
        elif isinstance(node, ast.Assign | ast.AnnAssign):
            self._visit_assignment(builder, parsed, node, following, class_names)

    def _visit_assignment(
        self,
        builder: ContractBuilder,
        parsed: _ParsedModule,
        node: ast.Assign | ast.AnnAssign,
        following: ast.stmt | None,
        class_names: set[str],
    ) -> None:
        if isinstance(node, ast.AnnAssign):
            targets = [node.target]
            annotation = node.annotation
        else:
            targets = list(node.targets)
            annotation = None
        value = node.value

        names: list[str] = []
        for target in targets:
            if isinstance(target, ast.Name):
                names.append(target.id)
            elif isinstance(target, ast.Tuple | ast.List):
                names.extend(elt.id for elt in target.elts if isinstance(elt, ast.Name))
        single = len(names) == 1

        doc = parsed.docs.doc_for(node, following)
        position = self._position(parsed, node)
        factory = _factory_name(value)
        is_final, inner = _unwrap_final(annotation)

        for name in names:
            if not builder.exported(name) or factory in TYPE_VAR_FACTORIES:
                continue

            if single and annotation is not None and render_annotation(annotation) == "TypeAlias":
                builder.add_alias(name, parsed.module, doc, position, render_annotation(value))
            elif single and factory == "NewType" and isinstance(value, ast.Call) and len(value.args) == 2:
                builder.add_basic(name, parsed.module, doc, position, render_annotation(value.args[1]))
            elif single and annotation is None and value is not None and _is_type_expression(value, class_names):
                builder.add_alias(name, parsed.module, doc, position, render_annotation(value))
            elif is_final or CONSTANT_NAME.match(name):
                type_text = render_annotation(inner) if inner is not None else ""
                builder.add_constant(
                    ConstantContract(
                        name=name,
                        package=parsed.module,
                        type=type_text or (infer_literal_type(value) if single else ""),
                        value=ast.unparse(value) if single and value is not None else "",
                        doc_comment=doc,
                        position=position,
                    )
                )
            else:
                type_text = render_annotation(annotation) if annotation is not None else ""
                builder.add_variable(
                    VariableContract(
                        name=name,
                        package=parsed.module,
                        type=type_text or (infer_literal_type(value) if single else ""),
                        doc_comment=doc,
                        position=position,
                    )
                )

    # -- classes ----------------------------------------------------------

    def _class_spec(self, parsed: _ParsedModule, node: ast.ClassDef) -> ClassSpec:
        base_names = [render_annotation(base) for base in node.bases]
        metaclass = next(
            (render_annotation(kw.value) for kw in node.keywords if kw.arg == "metaclass"),
            None,
        )
        is_enum = any(base_name(name) in ENUM_BASES for name in base_names)

        methods: list[MethodContract] = []
        fields: list[FieldContract] = []
        for index, member in enumerate(node.body):
            following = node.body[index + 1] if index + 1 < len(node.body) else None
            if isinstance(member, ast.FunctionDef | ast.AsyncFunctionDef):
                method = self._method(parsed, node.name, member)
                if method is not None and method.name not in {m.name for m in methods}:
                    methods.append(method)
            elif isinstance(member, ast.AnnAssign) and isinstance(member.target, ast.Name):
                fields.append(
                    FieldContract(
                        name=member.target.id,
                        type=render_annotation(member.annotation),
                        tag=ast.unparse(member.value) if member.value is not None else "",
                        doc_comment=parsed.docs.doc_for(member, following),
                        position=self._position(parsed, member),
                    )
                )
            elif isinstance(member, ast.Assign):
                for target in member.targets:
                    if not isinstance(target, ast.Name):
                        continue
                    fields.append(
                        FieldContract(
                            name=target.id,
                            type=node.name if is_enum else infer_literal_type(member.value),
                            tag=ast.unparse(member.value),
                            doc_comment=parsed.docs.doc_for(member, following),
                            position=self._position(parsed, member),
                        )
                    )

        return ClassSpec(
            name=node.name,
            package=parsed.module,
            doc_comment=parsed.docs.doc_for(node),
            position=self._position(parsed, node),
            base_names=base_names,
            metaclass=metaclass,
            methods=methods,
            fields=fields,
        )

    def _method(
        self, parsed: _ParsedModule, class_name: str, node: ast.FunctionDef | ast.AsyncFunctionDef
    ) -> MethodContract | None:
        decorators = _decorator_names(node)
        if "overload" in decorators:
            return None

        receiver: ReceiverInfo | None = None
        positional = list(node.args.posonlyargs) + list(node.args.args)
        if "staticmethod" not in decorators and positional:
            receiver = ReceiverInfo(
                name=positional[0].arg,
                type=class_name,
                pointer="classmethod" in decorators,
            )

        return MethodContract(
            name=node.name,
            doc_comment=parsed.docs.doc_for(node),
            receiver=receiver,
            parameters=parameters_from_ast(node.args, skip_receiver=receiver is not None),
            results=results_from_ast(node.returns),
            position=self._position(parsed, node),
        )
