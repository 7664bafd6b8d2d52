"""
Reactive Kernel — Notebook

Owns one Runtime, its main Module and a set of Cells. Each cell compiles
independently against the main module: one broken cell is reported and
skipped, the rest of the notebook still compiles.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from reactive.cell import Cell
from reactive.library import Library
from reactive.runtime import Module, Runtime, Variable
from reactive.types import CellResult, CompileReport, NotebookSpec, Observer
from reactive.writer import Writer

logger = logging.getLogger(__name__)

_UNSET = object()


class Notebook:
    """A live set of reactive cells sharing one runtime module."""

    def __init__(
        self,
        spec: NotebookSpec | None = None,
        plugins: dict[str, Any] | None = None,
        client: httpx.Client | None = None,
    ):
        self._library = Library(spec.files if spec else None, plugins, client)
        self._runtime = Runtime(self._library.builtins())
        self._main = self._runtime.module()
        # Insertion-ordered set; membership is by identity
        self._cells: dict[Cell, None] = {}

    @property
    def cells(self) -> list[Cell]:
        return list(self._cells)

    @property
    def library(self) -> Library:
        return self._library

    def dispose(self) -> None:
        """Release the runtime. Cells are dropped without individual resets."""
        self._runtime.dispose()
        self._cells.clear()

    def create_cell(self, observer: Observer | None = None) -> Cell:
        cell = Cell(self, observer)
        self._cells[cell] = None
        return cell

    def dispose_cell(self, cell: Cell) -> None:
        cell.reset()
        self._cells.pop(cell, None)

    def compile(self, writer: Writer) -> CompileReport:
        """
        Compile every cell. Never short-circuits.

        Each cell yields exactly one CellResult; failures are reported to
        `writer` once, keyed to their cell.
        """
        report = CompileReport()
        for cell in list(self._cells):
            try:
                result = cell.compile(writer)
            except Exception as e:
                writer.error(str(e), cell=cell)
                result = CellResult(cell=cell, ok=False, error=str(e))
            report.results.append(result)

        if report.failed:
            logger.info("notebook: compiled %d cells, %d failed", len(report.results), len(report.failed))
        return report

    # -- runtime access --

    def main(self) -> Module:
        return self._main

    def value(self, name: str) -> Any:
        return self._main.value(name)

    def create_module(self, define: Callable) -> Module:
        return self._runtime.module(define)

    def create_variable(
        self,
        observer: Observer | None = None,
        name: Any = _UNSET,
        inputs: list[str] | None = None,
        definition: Any = None,
    ) -> Variable:
        """
        Create a variable in the main module, optionally defining it.

        Definition errors are logged, not raised; the undefined variable
        is still returned.
        """
        variable = self._main.variable(observer)
        if name is not _UNSET:
            try:
                variable.define(name, inputs or [], definition)
            except Exception as e:
                logger.error("notebook: failed to define %s: %s", name, e)
        return variable

    def import_variable(self, name: str, alias: str | None, other_module: Module) -> Variable:
        return self._main.import_(name, alias, other_module)
