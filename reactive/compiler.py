"""
Reactive Kernel — Cell Compiler

Turns one cell's source into a CellDefinition.

Accepted forms:
  name = expression       named cell
  name: type = expression named cell (annotation ignored)
  expression              anonymous cell
  (empty)                 anonymous cell with value None

Free names in the expression become the cell's inputs, in order of first
appearance. Names in SAFE_BUILTINS are never inputs.

Cell bodies are evaluated against SAFE_BUILTINS only. Names and
attributes that start with a double underscore are rejected at compile
time.
"""

from __future__ import annotations

import ast
import builtins
from typing import Any

from reactive.types import CellCompileError, CellDefinition

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(builtins, name)
    for name in (
        "abs", "all", "any", "ascii", "bin", "bool", "bytes", "callable", "chr",
        "complex", "dict", "divmod", "enumerate", "filter", "float", "format",
        "frozenset", "hash", "hex", "int", "isinstance", "issubclass", "iter",
        "len", "list", "map", "max", "min", "next", "oct", "ord", "pow", "range",
        "repr", "reversed", "round", "set", "slice", "sorted", "str", "sum",
        "tuple", "zip",
        "ArithmeticError", "Exception", "IndexError", "KeyError", "TypeError",
        "ValueError", "ZeroDivisionError",
    )
}

_BUILTIN_NAMES = frozenset(SAFE_BUILTINS)


def compile_cell(source: str) -> CellDefinition:
    """
    Compile cell source.

    Raises CellCompileError with the 1-based line and column of the
    problem when the source is not a single supported statement.
    """
    try:
        tree = ast.parse(source, filename="<cell>", mode="exec")
    except SyntaxError as e:
        raise CellCompileError(e.msg, line=e.lineno, offset=e.offset) from e

    if not tree.body:
        return CellDefinition(name=None, inputs=[], definition=None, source=source)

    if len(tree.body) > 1:
        extra = tree.body[1]
        raise CellCompileError(
            "a cell must contain exactly one statement",
            line=extra.lineno,
            offset=extra.col_offset + 1,
        )

    stmt = tree.body[0]
    name, expr = _split(stmt)
    _reject_dunders(stmt)
    inputs = free_names(expr)
    code = compile(ast.Expression(body=expr), filename=f"<cell {name or 'anonymous'}>", mode="eval")

    def definition(*args: Any) -> Any:
        # Inputs go in globals so comprehensions and lambdas can see them
        scope = {"__builtins__": SAFE_BUILTINS, **dict(zip(inputs, args))}
        return eval(code, scope)

    return CellDefinition(name=name, inputs=inputs, definition=definition, source=source)


def free_names(expr: ast.expr) -> list[str]:
    """Names read by `expr` that it does not bind itself and that are not builtins."""
    bound: set[str] = set()
    loaded: list[str] = []
    for node in ast.walk(expr):
        if isinstance(node, ast.Name):
            if isinstance(node.ctx, ast.Store):
                bound.add(node.id)
            elif node.id not in loaded:
                loaded.append(node.id)
        elif isinstance(node, ast.Lambda):
            args = node.args
            for arg in [*args.posonlyargs, *args.args, *args.kwonlyargs]:
                bound.add(arg.arg)
            if args.vararg:
                bound.add(args.vararg.arg)
            if args.kwarg:
                bound.add(args.kwarg.arg)
    return [n for n in loaded if n not in bound and n not in _BUILTIN_NAMES]


def _split(stmt: ast.stmt) -> tuple[str | None, ast.expr]:
    if isinstance(stmt, ast.Assign):
        if len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
            return stmt.targets[0].id, stmt.value
        raise CellCompileError("a cell may only assign a single name", line=stmt.lineno, offset=stmt.col_offset + 1)

    if isinstance(stmt, ast.AnnAssign) and stmt.value is not None and isinstance(stmt.target, ast.Name):
        return stmt.target.id, stmt.value

    if isinstance(stmt, ast.Expr):
        return None, stmt.value

    raise CellCompileError(
        f"unsupported cell statement: {type(stmt).__name__}",
        line=stmt.lineno,
        offset=stmt.col_offset + 1,
    )


def _reject_dunders(stmt: ast.stmt) -> None:
    for node in ast.walk(stmt):
        if isinstance(node, ast.Name):
            ident = node.id
        elif isinstance(node, ast.Attribute):
            ident = node.attr
        else:
            continue
        if ident.startswith("__"):
            raise CellCompileError(f"{ident!r} is not allowed in a cell", line=node.lineno, offset=node.col_offset + 1)
