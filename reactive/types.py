"""
Reactive Kernel — Shared Types

Data classes and base interfaces used across the runtime, library,
compiler, cell and notebook modules. These are the contracts that bind
the kernel together.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from reactive.cell import Cell

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Cell and variable names follow Python identifier rules.
NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CellCompileError(Exception):
    """A cell's source could not be compiled into a variable definition."""

    def __init__(self, message: str, line: int | None = None, offset: int | None = None):
        super().__init__(message)
        self.line = line
        self.offset = offset


class VariableError(RuntimeError):
    """A reactive variable failed to compute (undefined input, cycle, duplicate)."""

    pass


class RuntimeDisposed(RuntimeError):
    """The runtime was used after dispose()."""

    pass


# ---------------------------------------------------------------------------
# Observer protocol
# ---------------------------------------------------------------------------


class Observer:
    """
    Receives a variable's state transitions.

    The runtime calls pending() before recomputing, then exactly one of
    fulfilled() or rejected(). Subclass and override what you need.
    """

    def pending(self) -> None:
        pass

    def fulfilled(self, value: Any, name: str | None = None) -> None:
        pass

    def rejected(self, error: BaseException, name: str | None = None) -> None:
        pass


class RecordingObserver(Observer):
    """Keeps the last value or error; handy for tests and the sandbox peer."""

    def __init__(self) -> None:
        self.value: Any = None
        self.error: BaseException | None = None
        self.events: list[str] = []

    def pending(self) -> None:
        self.events.append("pending")

    def fulfilled(self, value: Any, name: str | None = None) -> None:
        self.value = value
        self.error = None
        self.events.append("fulfilled")

    def rejected(self, error: BaseException, name: str | None = None) -> None:
        self.value = None
        self.error = error
        self.events.append("rejected")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class FileRef:
    """A named attachment shipped with a notebook document."""

    name: str
    url: str
    mime_type: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FileRef:
        return cls(name=d["name"], url=d["url"], mime_type=d.get("mimeType"))


@dataclass
class NotebookSpec:
    """What a document carries besides its cells: attachments."""

    files: list[FileRef] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> NotebookSpec:
        return cls(files=[FileRef.from_dict(f) for f in d.get("files", [])])


@dataclass
class CellDefinition:
    """Output of the cell compiler: what to hand to Variable.define()."""

    name: str | None
    inputs: list[str]
    definition: Any
    source: str = ""


@dataclass
class CellResult:
    """
    Result of compiling one cell.
    Cell.compile() never throws; it always returns one of these.
    """

    cell: Cell
    ok: bool
    name: str | None = None
    error: str | None = None


@dataclass
class CompileReport:
    """Per-cell results of one Notebook.compile() pass, in iteration order."""

    results: list[CellResult] = field(default_factory=list)

    @property
    def compiled(self) -> list[CellResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[CellResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_valid_name(value: Any) -> bool:
    """Check if a value can name a reactive variable."""
    return isinstance(value, str) and bool(NAME_PATTERN.match(value))
