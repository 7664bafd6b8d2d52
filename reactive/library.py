"""
Reactive Kernel — Standard Library

Builtins every notebook cell can reference without defining them:

  FileAttachment(name)  — a handle on a named attachment; the URL is
                          looked up in the notebook's file table on first use
  download(blob, name)  — a download descriptor whose href is the
                          attachment URL when `name` is a known attachment

Caller-supplied plugins are merged over these and win on name clashes.
"""

from __future__ import annotations

import json
import mimetypes
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from reactive.types import FileRef

_UNRESOLVED = object()


class FileAttachment:
    """Lazy handle on one named attachment."""

    def __init__(self, name: str, resolve: Callable[[str], str | None], client: httpx.Client | None = None):
        self.name = name
        self._resolve = resolve
        self._client = client
        self._url: Any = _UNRESOLVED

    def __repr__(self) -> str:
        return f"FileAttachment({self.name!r})"

    @property
    def url(self) -> str:
        """Resolved URL. Raises FileNotFoundError for an unknown attachment."""
        if self._url is _UNRESOLVED:
            self._url = self._resolve(self.name)
        if self._url is None:
            raise FileNotFoundError(f"File not found: {self.name}")
        return self._url

    @property
    def mime_type(self) -> str | None:
        return mimetypes.guess_type(self.name)[0]

    def text(self) -> str:
        response = self._get()
        return response.text

    def json(self) -> Any:
        return json.loads(self.text())

    def _get(self) -> httpx.Response:
        client = self._client or httpx.Client(timeout=30.0, follow_redirects=True)
        try:
            response = client.get(self.url)
            response.raise_for_status()
            return response
        finally:
            if self._client is None:
                client.close()


@dataclass
class Download:
    """What download() hands back: enough for a surface to offer the file."""

    filename: str
    href: str
    blob: Any = None


class Library:
    """Builds the builtins dict for a notebook runtime."""

    def __init__(
        self,
        files: list[FileRef] | None = None,
        plugins: dict[str, Any] | None = None,
        client: httpx.Client | None = None,
    ):
        self._files = {f.name: f.url for f in files or []}
        self._plugins = dict(plugins or {})
        self._client = client

    def resolve(self, name: str) -> str | None:
        """Attachment name → URL, or None when the notebook has no such file."""
        return self._files.get(name)

    def file_attachment(self, name: str) -> FileAttachment:
        return FileAttachment(name, self.resolve, self._client)

    def download(self, blob: Any, name: str) -> Download:
        return Download(filename=name, href=self._files.get(name, name), blob=blob)

    def builtins(self) -> dict[str, Any]:
        return {
            "FileAttachment": self.file_attachment,
            "download": self.download,
            **self._plugins,
        }
