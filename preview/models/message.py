"""Wire messages exchanged between the host bridge and the sandbox."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, get_args

Command = Literal["loaded", "errors", "alert", "evaluate", "pull", "echo"]

COMMANDS: frozenset[str] = frozenset(get_args(Command))


class MalformedMessage(ValueError):
    """An inbound frame is not a message object."""

    pass


@dataclass
class Message:
    """
    One transport frame.

    `command` is kept verbatim; it is None when the frame had none.
    `callback_id` is only set for positive integer ids.
    """

    command: str | None
    content: Any = None
    callback_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"command": self.command}
        if self.content is not None:
            d["content"] = self.content
        if self.callback_id is not None:
            d["callbackID"] = self.callback_id
        return d

    @classmethod
    def from_dict(cls, d: Any) -> Message:
        """Lenient parse: missing fields default, bad ids are dropped."""
        if not isinstance(d, dict):
            raise MalformedMessage(f"expected a message object, got {type(d).__name__}")
        command = d.get("command")
        return cls(
            command=command if isinstance(command, str) else None,
            content=d.get("content"),
            callback_id=_callback_id(d.get("callbackID")),
        )


def _callback_id(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value
