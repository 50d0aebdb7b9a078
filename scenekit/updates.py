"""Normalized incoming updates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union


def session_key(chat_id: Union[int, str], user_id: Optional[Union[int, str]] = None) -> str:
    """Build the key identifying one conversation."""
    if user_id is None:
        return str(chat_id)
    return f"{chat_id}:{user_id}"


def chat_id_from_key(key: str) -> str:
    """Return the chat part of a key built by :func:`session_key`."""
    return key.split(":", 1)[0]


@dataclass(frozen=True)
class Update:
    """Transport independent view of one incoming update."""

    session_id: str
    kind: str = "message"
    text: Optional[str] = None
    callback_data: Optional[str] = None
    content_type: Optional[str] = None
    raw: Any = None

    @property
    def is_message(self) -> bool:
        return self.kind == "message"

    @property
    def is_callback(self) -> bool:
        return self.kind == "callback_query"

    @property
    def command(self) -> Optional[str]:
        """Command name without slash and bot mention, if the text is a command."""
        if not self.is_message or not self.text or not self.text.startswith("/"):
            return None
        token = self.text.split(maxsplit=1)[0][1:]
        name = token.split("@", 1)[0]
        return name or None

    @property
    def command_args(self) -> str:
        if self.command is None:
            return ""
        parts = self.text.split(maxsplit=1)
        return parts[1] if len(parts) > 1 else ""
