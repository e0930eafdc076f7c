"""Doc-comment association for parsed modules."""

from __future__ import annotations

import ast
import inspect
from dataclasses import dataclass

_DECLARATIONS = (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef, ast.Assign, ast.AnnAssign)
if hasattr(ast, "TypeAlias"):
    _DECLARATIONS = _DECLARATIONS + (ast.TypeAlias,)


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    depth: int
    doc: str


def _node_start(node: ast.AST) -> int:
    decorators = getattr(node, "decorator_list", None) or []
    return min([node.lineno] + [d.lineno for d in decorators])


class DocIndex:
    """Maps source lines to the documentation of the declaration enclosing them.

    Classes and functions carry their docstring. Assignments carry the string
    literal directly after them (attribute docstring) or, failing that, the
    ``#`` comment block directly above them.
    """

    def __init__(self, tree: ast.Module, source: str) -> None:
        self._lines = source.splitlines()
        self._spans: list[_Span] = []
        self._collect(tree.body, depth=0)

    def _collect(self, body: list[ast.stmt], depth: int) -> None:
        for index, node in enumerate(body):
            if not isinstance(node, _DECLARATIONS):
                continue
            following = body[index + 1] if index + 1 < len(body) else None
            self._spans.append(
                _Span(
                    start=_node_start(node),
                    end=node.end_lineno or node.lineno,
                    depth=depth,
                    doc=self.doc_for(node, following),
                )
            )
            if isinstance(node, ast.ClassDef | ast.FunctionDef | ast.AsyncFunctionDef):
                self._collect(node.body, depth + 1)

    def doc_for(self, node: ast.AST, following: ast.stmt | None = None) -> str:
        if isinstance(node, ast.ClassDef | ast.FunctionDef | ast.AsyncFunctionDef):
            return (ast.get_docstring(node, clean=True) or "").strip()
        if (
            isinstance(following, ast.Expr)
            and isinstance(following.value, ast.Constant)
            and isinstance(following.value.value, str)
        ):
            return inspect.cleandoc(following.value.value).strip()
        return self._comment_block_above(node.lineno)

    def _comment_block_above(self, lineno: int) -> str:
        collected: list[str] = []
        index = lineno - 2
        while index >= 0:
            text = self._lines[index].strip()
            if not text.startswith("#"):
                break
            collected.append(text.lstrip("#").strip())
            index -= 1
        return "\n".join(reversed(collected)).strip()

    def lookup(self, lineno: int) -> str:
        """Documentation of the innermost declaration whose span contains ``lineno``."""
        best: _Span | None = None
        for span in self._spans:
            if span.start <= lineno <= span.end and (best is None or span.depth > best.depth):
                best = span
        return best.doc if best is not None else ""
