"""
Reactive Kernel — cell-based dataflow for live document previews.

Components:
  runtime    Runtime / Module / Variable, dependency-ordered recompute
  library    builtins (FileAttachment, download) plus plugins
  compiler   cell source → CellDefinition
  notebook   Notebook: owns a runtime and its cells, per-cell isolated compile
  sandbox    SandboxPeer: serves the preview protocol over a Notebook
"""

from reactive.cell import Cell
from reactive.compiler import compile_cell
from reactive.library import FileAttachment, Library
from reactive.notebook import Notebook
from reactive.runtime import Module, Runtime, Variable
from reactive.sandbox import SandboxPeer
from reactive.types import CellCompileError, CellResult, CompileReport, NotebookSpec, Observer, VariableError
from reactive.writer import Writer

__all__ = [
    "Cell",
    "CellCompileError",
    "CellResult",
    "CompileReport",
    "FileAttachment",
    "Library",
    "Module",
    "Notebook",
    "NotebookSpec",
    "Observer",
    "Runtime",
    "SandboxPeer",
    "Variable",
    "VariableError",
    "Writer",
    "compile_cell",
]
