"""
Diagnostics: the document model, the sink, and payload conversion.

The sandbox reports runtime errors as loose JSON. to_diagnostics() turns
those payloads into Diagnostics anchored to positions in a TextDocument.
A payload is one error object or a list of them:

    {"message": str,
     "start": int, "end": int,              # character offsets, or
     "line": int, "column": int,            # 0-based positions
     "endLine": int, "endColumn": int,
     "severity": "error" | "warning" | "information" | "hint"}

A bare string is treated as {"message": <string>}.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Literal

logger = logging.getLogger(__name__)

Severity = Literal["error", "warning", "information", "hint"]

SEVERITIES: frozenset[str] = frozenset({"error", "warning", "information", "hint"})

DIAGNOSTIC_SOURCE = "ojs"


def document_uri(target_id: str) -> str:
    return f"preview://{target_id}"


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Position:
    line: int
    character: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "character": self.character}


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


@dataclass
class Diagnostic:
    range: Range
    message: str
    severity: Severity = "error"
    source: str = DIAGNOSTIC_SOURCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.range.to_dict(),
            "message": self.message,
            "severity": self.severity,
            "source": self.source,
        }


@dataclass
class TextDocument:
    """A document's uri and current text, with offset/position conversion."""

    uri: str
    text: str = ""
    _lines: list[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._lines = self.text.split("\n")

    def update(self, text: str) -> None:
        self.text = text
        self._lines = text.split("\n")

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line_length(self, line: int) -> int:
        if line < 0 or line >= len(self._lines):
            return 0
        return len(self._lines[line])

    def position_at(self, offset: int) -> Position:
        """Character offset to a (line, character) position, clamped to the text."""
        offset = max(0, min(offset, len(self.text)))
        before = self.text[:offset]
        line = before.count("\n")
        character = offset - (before.rfind("\n") + 1)
        return Position(line, character)

    def clamp(self, line: int, character: int) -> Position:
        line = max(0, min(line, len(self._lines) - 1))
        character = max(0, min(character, self.line_length(line)))
        return Position(line, character)


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class DiagnosticSink:
    """
    Abstract diagnostics sink.
    Each call replaces the document's diagnostics with the given list.
    """

    def set_diagnostics(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        raise NotImplementedError


class DiagnosticCollection(DiagnosticSink):
    """In-memory sink keyed by document uri."""

    def __init__(self, name: str = DIAGNOSTIC_SOURCE):
        self.name = name
        self._entries: dict[str, list[Diagnostic]] = {}

    def set_diagnostics(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self._entries[uri] = list(diagnostics)

    def get(self, uri: str) -> list[Diagnostic]:
        return list(self._entries.get(uri, []))

    def delete(self, uri: str) -> None:
        self._entries.pop(uri, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, uri: str) -> bool:
        return uri in self._entries


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def _int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def _range_for(document: TextDocument, error: dict[str, Any]) -> Range:
    start_offset = _int(error.get("start"))
    if start_offset is not None:
        end_offset = _int(error.get("end"))
        start = document.position_at(start_offset)
        end = document.position_at(end_offset) if end_offset is not None else start
        return Range(start, end)

    line = _int(error.get("line")) or 0
    column = _int(error.get("column")) or 0
    start = document.clamp(line, column)

    end_line = _int(error.get("endLine"))
    end_column = _int(error.get("endColumn"))
    if end_line is None and end_column is None:
        # Whole remainder of the line
        end = Position(start.line, document.line_length(start.line))
    else:
        end = document.clamp(
            end_line if end_line is not None else start.line,
            end_column if end_column is not None else document.line_length(start.line),
        )
    if (end.line, end.character) < (start.line, start.character):
        end = start
    return Range(start, end)


def to_diagnostic(document: TextDocument, error: Any) -> Diagnostic | None:
    """Convert one error object. Returns None for entries that are not errors."""
    if isinstance(error, str):
        error = {"message": error}
    if not isinstance(error, dict):
        logger.warning("diagnostics: skipping %s entry", type(error).__name__)
        return None

    message = error.get("message")
    if message is None:
        message = "unknown runtime error"
    severity = error.get("severity", "error")
    if severity not in SEVERITIES:
        severity = "error"
    return Diagnostic(range=_range_for(document, error), message=str(message), severity=severity)


def to_diagnostics(document: TextDocument, payload: Any) -> list[Diagnostic]:
    """Convert one buffered payload (an error object or a list of them)."""
    entries = payload if isinstance(payload, list) else [payload]
    diagnostics = []
    for entry in entries:
        diagnostic = to_diagnostic(document, entry)
        if diagnostic is not None:
            diagnostics.append(diagnostic)
    return diagnostics
