"""One compiled unit of a notebook: a source string bound to a runtime variable."""

from __future__ import annotations

from typing import TYPE_CHECKING

from reactive.compiler import compile_cell
from reactive.runtime import Variable
from reactive.types import CellCompileError, CellResult, Observer, RuntimeDisposed
from reactive.writer import Writer

if TYPE_CHECKING:
    from reactive.notebook import Notebook


class Cell:
    """
    Created through Notebook.create_cell(), never directly.

    Usage:
        cell = notebook.create_cell(observer)
        cell.text("total = price * quantity")
        result = cell.compile(writer)
    """

    def __init__(self, notebook: Notebook, observer: Observer | None = None):
        self._notebook = notebook
        self._observer = observer
        self._source = ""
        self._variable: Variable | None = None

    def __repr__(self) -> str:
        return f"Cell(name={self.name!r})"

    @property
    def notebook(self) -> Notebook:
        return self._notebook

    @property
    def source(self) -> str:
        return self._source

    @property
    def variable(self) -> Variable | None:
        return self._variable

    @property
    def name(self) -> str | None:
        return self._variable.name if self._variable is not None else None

    def text(self, source: str) -> Cell:
        """Replace the source. Takes effect on the next compile()."""
        self._source = source
        return self

    def compile(self, writer: Writer) -> CellResult:
        """
        Recompile the source into this cell's variable.

        Failures are reported to `writer` and returned as a failed
        CellResult; nothing is raised. A failed compile leaves the
        previous binding in place.
        """
        try:
            compiled = compile_cell(self._source)
        except CellCompileError as e:
            writer.error(str(e), cell=self, line=e.line, offset=e.offset)
            return CellResult(cell=self, ok=False, error=str(e))
        except (ValueError, TypeError) as e:
            writer.error(str(e), cell=self)
            return CellResult(cell=self, ok=False, error=str(e))

        try:
            if self._variable is None:
                self._variable = self._notebook.main().variable(self._observer)
            self._variable.define(compiled.name, compiled.inputs, compiled.definition)
        except (TypeError, RuntimeDisposed) as e:
            writer.error(str(e), cell=self)
            return CellResult(cell=self, ok=False, error=str(e))

        return CellResult(cell=self, ok=True, name=compiled.name)

    def reset(self) -> None:
        """Release the runtime binding. Safe to call more than once."""
        if self._variable is not None:
            self._variable.delete()
            self._variable = None
