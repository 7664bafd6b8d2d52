"""
Sandbox peer — the rendering-context side of the preview protocol.

Speaks the same messages as the host bridge, backed by a Notebook:

  Host → Sandbox:  {"command": "evaluate", "content": [cell, ...], "callbackID": n}
                   {"command": "evaluate", "content": "<source>", "callbackID": n}
                   {"command": "pull", "content": "<url>", "callbackID": n}
                   {"command": "echo", "content": ...}
  Sandbox → Host:  {"command": "loaded"}
                   {"command": "evaluate", "content": [error, ...], "callbackID": n}
                   {"command": "pull", "content": "<text>", "callbackID": n}
                   {"command": "errors", "content": [error, ...]}
                   {"command": "echo", "content": ...}

A cell is {"source": str, "line": int} where `line` is the 0-based
document line the cell starts on; a bare string is a cell at line 0.
String content is the whole document as a single cell.

Error objects carry document-relative `line`/`column` (0-based) so the
host can anchor them without knowing how the document was split.
A request whose handler raises is answered with a one-element error
list under the same callbackID.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from reactive.notebook import Notebook
from reactive.types import NotebookSpec, Observer
from reactive.writer import Writer

logger = logging.getLogger(__name__)

Post = Callable[[dict[str, Any]], Awaitable[Any]]


class _RuntimeErrorObserver(Observer):
    """Tracks a cell's latest runtime state as a document-anchored error object."""

    def __init__(self, line: int):
        self._line = line
        self.error: dict[str, Any] | None = None

    def fulfilled(self, value: Any, name: str | None = None) -> None:
        self.error = None

    def rejected(self, error: BaseException, name: str | None = None) -> None:
        label = f"{name}: " if name else ""
        self.error = {"message": f"{label}{error}", "line": self._line, "column": 0, "severity": "error"}


class SandboxPeer:
    """Serves host requests against a fresh Notebook per evaluate."""

    def __init__(
        self,
        post: Post,
        plugins: dict[str, Any] | None = None,
        client: httpx.AsyncClient | None = None,
        pull_timeout: float = 30.0,
    ):
        self._post = post
        self._plugins = plugins
        self._client = client
        self._pull_timeout = pull_timeout
        self._notebook: Notebook | None = None
        self._runtime_errors: list[dict[str, Any]] = []
        self._handlers: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "evaluate": self._evaluate,
            "pull": self._pull,
        }

    @property
    def notebook(self) -> Notebook | None:
        return self._notebook

    async def start(self) -> None:
        """Announce readiness to the host."""
        await self._post({"command": "loaded"})

    async def handle(self, message: dict[str, Any]) -> None:
        command = message.get("command")
        content = message.get("content")
        callback_id = message.get("callbackID")

        if command == "echo":
            await self._post({"command": "echo", "content": content})
            return

        handler = self._handlers.get(command)
        if handler is None:
            logger.debug("sandbox: ignoring %r", command)
            return

        try:
            result = await handler(content)
        except Exception as e:
            logger.exception("sandbox: %s failed", command)
            result = [{"message": str(e), "line": 0, "column": 0, "severity": "error"}]

        reply: dict[str, Any] = {"command": command, "content": result}
        if callback_id is not None:
            reply["callbackID"] = callback_id
        await self._post(reply)

        if self._runtime_errors:
            errors, self._runtime_errors = self._runtime_errors, []
            await self._post({"command": "errors", "content": errors})

    def dispose(self) -> None:
        if self._notebook is not None:
            self._notebook.dispose()
            self._notebook = None

    async def _evaluate(self, content: Any) -> list[dict[str, Any]]:
        if isinstance(content, str):
            cells = [content]
        elif isinstance(content, dict):
            cells = content.get("cells", [])
        else:
            cells = content or []
        spec = NotebookSpec.from_dict(content) if isinstance(content, dict) else None

        self.dispose()
        notebook = Notebook(spec, plugins=self._plugins)
        self._notebook = notebook

        lines: dict[Any, int] = {}
        observers: list[_RuntimeErrorObserver] = []
        for raw in cells:
            source, line = (raw, 0) if isinstance(raw, str) else (raw.get("source", ""), raw.get("line", 0))
            observer = _RuntimeErrorObserver(line)
            cell = notebook.create_cell(observer)
            cell.text(source)
            lines[cell] = line
            observers.append(observer)

        writer = Writer()
        notebook.compile(writer)
        self._runtime_errors.extend(o.error for o in observers if o.error is not None)

        errors = []
        for error in writer.errors:
            start = lines.get(error.cell, 0)
            errors.append(
                {
                    "message": error.message,
                    "line": start + (error.line - 1 if error.line else 0),
                    "column": error.offset - 1 if error.offset else 0,
                    "severity": "error",
                }
            )
        return errors

    async def _pull(self, url: Any) -> Any:
        """Fetch `url` as text. Failures are answered with {"error": ...}, never raised."""
        client = self._client or httpx.AsyncClient(timeout=self._pull_timeout, follow_redirects=True)
        try:
            response = await client.get(str(url))
            response.raise_for_status()
            return response.text
        except httpx.HTTPError as e:
            logger.warning("sandbox: pull %s failed: %s", url, e)
            return {"error": str(e)}
        finally:
            if self._client is None:
                await client.aclose()
