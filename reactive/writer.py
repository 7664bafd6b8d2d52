"""Compile sink: collects the errors reported while compiling cells."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from reactive.cell import Cell

logger = logging.getLogger(__name__)


@dataclass
class WriterError:
    """One compile failure, keyed to the cell that produced it (if known)."""

    message: str
    cell: Cell | None = None
    line: int | None = None
    offset: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"message": self.message}
        if self.line is not None:
            d["line"] = self.line
        if self.offset is not None:
            d["column"] = self.offset
        return d


class Writer:
    """Accumulates compile errors for one compile pass."""

    def __init__(self) -> None:
        self.errors: list[WriterError] = []

    def error(self, message: str | None, cell: Cell | None = None, line: int | None = None, offset: int | None = None) -> None:
        text = message or "unknown compile error"
        logger.debug("writer: error %s", text)
        self.errors.append(WriterError(message=text, cell=cell, line=line, offset=offset))

    def errors_for(self, cell: Cell) -> list[WriterError]:
        return [e for e in self.errors if e.cell is cell]
