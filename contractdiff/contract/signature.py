"""
Canonical type and signature rendering.

Both extraction strategies and the differ go through this module, so a type
written as ``Optional[List[int]]`` in one release and ``list[int] | None`` in
the next renders to the same text and compares equal. The text produced here,
not the raw source tokens, is the unit of signature comparison and the value
shown in diff entries.
"""

from __future__ import annotations

import ast
import collections.abc
import inspect
import types
import typing
from collections.abc import Iterable, Mapping
from typing import Any

from contractdiff.contract.models import (
    ConstantContract,
    FieldContract,
    FunctionContract,
    InterfaceContract,
    MethodContract,
    ParameterInfo,
    TypeContract,
    VariableContract,
)

# Legacy typing aliases and their builtin spelling
_BUILTIN_ALIASES: dict[str, str] = {
    "List": "list",
    "Dict": "dict",
    "Set": "set",
    "FrozenSet": "frozenset",
    "Tuple": "tuple",
    "Type": "type",
    "DefaultDict": "defaultdict",
    "Text": "str",
    "NoneType": "None",
}

# Module prefixes dropped in front of typing constructs
_TYPING_MODULES: frozenset[str] = frozenset(
    {"typing", "typing_extensions", "t", "collections.abc", "abc", "builtins"}
)

KEYWORD_ONLY_MARKER = "*"
POSITIONAL_ONLY_MARKER = "/"


def _normalize_name(name: str) -> str:
    return _BUILTIN_ALIASES.get(name, name)


def _join_union(members: Iterable[str]) -> str:
    """Join already flattened union members, dropping duplicates."""
    seen: list[str] = []
    for member in members:
        if member not in seen:
            seen.append(member)
    # None goes last so Optional[X] and X | None agree
    if "None" in seen:
        seen.remove("None")
        seen.append("None")
    return " | ".join(seen)


# ---------------------------------------------------------------------------
# Syntax trees
# ---------------------------------------------------------------------------


def _dotted(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted(node.value)
        return f"{base}.{node.attr}" if base else None
    return None


def _subscript_args(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.Tuple):
        return list(node.elts)
    return [node]


def _union_members(node: ast.expr) -> list[ast.expr]:
    """Flatten nested unions (``A | B``, ``Union[...]``, ``Optional[...]``) into their members."""
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union_members(node.left) + _union_members(node.right)
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            parsed = ast.parse(node.value.strip(), mode="eval").body
        except SyntaxError:
            return [node]
        return _union_members(parsed)
    if isinstance(node, ast.Subscript):
        base = render_annotation(node.value)
        args = _subscript_args(node.slice)
        if base == "Union":
            return [member for arg in args for member in _union_members(arg)]
        if base == "Optional":
            return _union_members(args[0]) + [ast.Constant(value=None)]
    return [node]


def _render_union(node: ast.expr) -> str:
    return _join_union(render_annotation(member) for member in _union_members(node))


def render_annotation(node: ast.expr | None) -> str:
    """Render an annotation expression into canonical text.

    Missing annotations render as an empty string.
    """
    if node is None:
        return ""

    if isinstance(node, ast.Constant):
        if node.value is None:
            return "None"
        if node.value is Ellipsis:
            return "..."
        if isinstance(node.value, str):
            return render_annotation_text(node.value)
        return repr(node.value)

    if isinstance(node, ast.Name):
        return _normalize_name(node.id)

    if isinstance(node, ast.Attribute):
        dotted = _dotted(node)
        if dotted is None:
            return ast.unparse(node)
        module, _, attr = dotted.rpartition(".")
        if module in _TYPING_MODULES:
            return _normalize_name(attr)
        return dotted

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _render_union(node)

    if isinstance(node, ast.Subscript):
        return _render_subscript(node)

    if isinstance(node, ast.List):
        return "[" + ", ".join(render_annotation(elt) for elt in node.elts) + "]"

    if isinstance(node, ast.Tuple):
        return ", ".join(render_annotation(elt) for elt in node.elts)

    return ast.unparse(node)


def _render_subscript(node: ast.Subscript) -> str:
    base = render_annotation(node.value)
    args = _subscript_args(node.slice)

    if base in ("Optional", "Union"):
        return _render_union(node)
    if base == "Annotated":
        return render_annotation(args[0])
    if base == "Literal":
        return "Literal[" + ", ".join(ast.unparse(arg) for arg in args) + "]"
    if base == "Callable" and len(args) == 2:
        params, result = args
        rendered = "..." if _is_ellipsis(params) else render_annotation(params)
        return f"Callable[{rendered}, {render_annotation(result)}]"
    return f"{base}[{', '.join(render_annotation(arg) for arg in args)}]"


def _is_ellipsis(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is Ellipsis


def render_annotation_text(text: str) -> str:
    """Render a string (forward reference) annotation."""
    try:
        expr = ast.parse(text.strip(), mode="eval").body
    except SyntaxError:
        return text.strip()
    return render_annotation(expr)


# ---------------------------------------------------------------------------
# Runtime objects
# ---------------------------------------------------------------------------


def render_type(tp: Any) -> str:
    """Render a runtime annotation (class, typing construct, string) into canonical text."""
    if tp is inspect.Parameter.empty or tp is inspect.Signature.empty:
        return ""
    if tp is None or tp is type(None):
        return "None"
    if tp is Ellipsis:
        return "..."
    if isinstance(tp, str):
        return render_annotation_text(tp)
    if isinstance(tp, typing.ForwardRef):
        return render_annotation_text(tp.__forward_arg__)
    if isinstance(tp, typing.TypeVar):
        return tp.__name__

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin is typing.Union or origin is types.UnionType:
        return _join_union(_runtime_union_members(tp))
    if origin is typing.Annotated:
        return render_type(args[0])
    if origin is typing.Literal:
        return "Literal[" + ", ".join(repr(arg) for arg in args) + "]"
    if origin is collections.abc.Callable:
        if not args:
            return "Callable"
        params, result = args[:-1], args[-1]
        if len(params) == 1 and params[0] is Ellipsis:
            rendered = "..."
        else:
            flat = params[0] if len(params) == 1 and isinstance(params[0], list) else params
            rendered = "[" + ", ".join(render_type(p) for p in flat) + "]"
        return f"Callable[{rendered}, {render_type(result)}]"
    if origin is not None:
        base = _runtime_name(origin)
        if not args:
            return base
        return f"{base}[{', '.join(render_type(arg) for arg in args)}]"

    if isinstance(tp, list):
        return "[" + ", ".join(render_type(item) for item in tp) + "]"
    return _runtime_name(tp)


def _runtime_union_members(tp: Any) -> list[str]:
    """Rendered members of a runtime union, with nested and string unions flattened."""
    if typing.get_origin(tp) in (typing.Union, types.UnionType):
        return [member for arg in typing.get_args(tp) for member in _runtime_union_members(arg)]
    if isinstance(tp, typing.ForwardRef):
        tp = tp.__forward_arg__
    if isinstance(tp, str):
        return [render_annotation(member) for member in _union_members(ast.Constant(value=tp))]
    return [render_type(tp)]


def _runtime_name(obj: Any) -> str:
    name = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None)
    if isinstance(name, str):
        return _normalize_name(name)
    text = repr(obj)
    for prefix in ("typing.", "typing_extensions.", "collections.abc."):
        text = text.replace(prefix, "")
    return text


# ---------------------------------------------------------------------------
# Parameter lists
# ---------------------------------------------------------------------------


def parameters_from_ast(args: ast.arguments, skip_receiver: bool = False) -> list[ParameterInfo]:
    """Build the canonical parameter list for a function definition."""
    positional = list(args.posonlyargs) + list(args.args)
    posonly_count = len(args.posonlyargs)
    if skip_receiver and positional:
        positional = positional[1:]
        posonly_count = max(posonly_count - 1, 0)

    params: list[ParameterInfo] = []
    for index, arg in enumerate(positional):
        params.append(ParameterInfo(name=arg.arg, type=render_annotation(arg.annotation)))
        if posonly_count and index == posonly_count - 1:
            params.append(ParameterInfo(type=POSITIONAL_ONLY_MARKER))

    if args.vararg is not None:
        params.append(
            ParameterInfo(name=args.vararg.arg, type="*" + render_annotation(args.vararg.annotation))
        )
    elif args.kwonlyargs:
        params.append(ParameterInfo(type=KEYWORD_ONLY_MARKER))

    for arg in args.kwonlyargs:
        params.append(ParameterInfo(name=arg.arg, type=render_annotation(arg.annotation)))

    if args.kwarg is not None:
        params.append(
            ParameterInfo(name=args.kwarg.arg, type="**" + render_annotation(args.kwarg.annotation))
        )
    return params


def results_from_ast(returns: ast.expr | None) -> list[ParameterInfo]:
    if returns is None:
        return []
    return [ParameterInfo(type=render_annotation(returns))]


def parameters_from_signature(
    signature: inspect.Signature,
    hints: Mapping[str, Any],
    skip_receiver: bool = False,
) -> list[ParameterInfo]:
    """Build the canonical parameter list for a runtime signature.

    ``hints`` holds resolved annotations; parameters missing from it fall back
    to the raw annotation on the signature.
    """
    parameters = list(signature.parameters.values())
    if skip_receiver and parameters:
        parameters = parameters[1:]

    def annotation(param: inspect.Parameter) -> str:
        return render_type(hints.get(param.name, param.annotation))

    params: list[ParameterInfo] = []
    kind = inspect.Parameter
    has_varargs = any(p.kind is kind.VAR_POSITIONAL for p in parameters)
    kw_marker_done = False
    for index, param in enumerate(parameters):
        if param.kind is kind.VAR_POSITIONAL:
            params.append(ParameterInfo(name=param.name, type="*" + annotation(param)))
        elif param.kind is kind.VAR_KEYWORD:
            params.append(ParameterInfo(name=param.name, type="**" + annotation(param)))
        else:
            if param.kind is kind.KEYWORD_ONLY and not has_varargs and not kw_marker_done:
                params.append(ParameterInfo(type=KEYWORD_ONLY_MARKER))
                kw_marker_done = True
            params.append(ParameterInfo(name=param.name, type=annotation(param)))
        if param.kind is kind.POSITIONAL_ONLY:
            following = parameters[index + 1] if index + 1 < len(parameters) else None
            if following is None or following.kind is not kind.POSITIONAL_ONLY:
                params.append(ParameterInfo(type=POSITIONAL_ONLY_MARKER))
    return params


def results_from_signature(signature: inspect.Signature, hints: Mapping[str, Any]) -> list[ParameterInfo]:
    if "return" in hints:
        return [ParameterInfo(type=render_type(hints["return"]))]
    if signature.return_annotation is inspect.Signature.empty:
        return []
    return [ParameterInfo(type=render_type(signature.return_annotation))]


# ---------------------------------------------------------------------------
# Display signatures (diff old/new values)
# ---------------------------------------------------------------------------


def format_parameters(params: Iterable[ParameterInfo]) -> str:
    formatted = []
    for param in params:
        if param.type in (KEYWORD_ONLY_MARKER, POSITIONAL_ONLY_MARKER) and not param.name:
            formatted.append(param.type)
            continue
        stars = ""
        type_text = param.type
        for prefix in ("**", "*"):
            if type_text.startswith(prefix):
                stars, type_text = prefix, type_text[len(prefix) :]
                break
        if param.name and type_text:
            formatted.append(f"{stars}{param.name}: {type_text}")
        else:
            formatted.append(f"{stars}{param.name or type_text}")
    return ", ".join(formatted)


def _format_results(results: list[ParameterInfo]) -> str:
    if not results:
        return ""
    if len(results) == 1:
        return f" -> {results[0].type}"
    return " -> (" + ", ".join(result.type for result in results) + ")"


def method_signature(method: MethodContract) -> str:
    receiver = ""
    if method.receiver is not None:
        recv_type = f"type[{method.receiver.type}]" if method.receiver.pointer else method.receiver.type
        recv_name = method.receiver.name or ("cls" if method.receiver.pointer else "self")
        receiver = f"({recv_name}: {recv_type}) "
    return f"{receiver}{method.name}({format_parameters(method.parameters)}){_format_results(method.results)}"


def function_signature(function: FunctionContract) -> str:
    return f"{function.name}({format_parameters(function.parameters)}){_format_results(function.results)}"


def interface_signature(interface: InterfaceContract) -> str:
    methods = sorted(method_signature(method) for method in interface.methods)
    return f"interface {interface.name} {{ {'; '.join(methods)} }}"


def type_signature(type_contract: TypeContract) -> str:
    signature = f"type {type_contract.name} {type_contract.kind}"
    if type_contract.underlying:
        signature += f" = {type_contract.underlying}"
    return signature


def field_signature(field: FieldContract) -> str:
    signature = f"{field.name}: {field.type}" if field.type else field.name
    if field.tag:
        signature += f" = {field.tag}"
    return signature


def variable_signature(variable: VariableContract) -> str:
    if variable.type:
        return f"var {variable.name}: {variable.type}"
    return f"var {variable.name}"


def constant_signature(constant: ConstantContract) -> str:
    signature = f"const {constant.name}"
    if constant.type:
        signature += f": {constant.type}"
    if constant.value:
        signature += f" = {constant.value}"
    return signature
