"""Reply sinks used by scene handlers to answer a conversation."""

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Protocol

from aiogram import Bot

from scenekit.updates import chat_id_from_key


class ReplySink(Protocol):
    """Destination for replies. Payloads are passed through untouched."""

    async def send(self, session_id: str, payload: Any) -> Any:
        ...


class BotReplySink:
    """Send replies through an aiogram bot.

    A ``str`` payload becomes the message text. A mapping payload is passed
    as keyword arguments to ``Bot.send_message`` (``text``, ``reply_markup``,
    ``parse_mode`` ...).
    """

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(self, session_id: str, payload: Any) -> Any:
        chat_id = chat_id_from_key(session_id)
        if isinstance(payload, Mapping):
            return await self.bot.send_message(chat_id=chat_id, **payload)
        if isinstance(payload, str):
            return await self.bot.send_message(chat_id=chat_id, text=payload)
        raise TypeError(f"Unsupported reply payload type: {type(payload).__name__}")


class RecordingReplySink:
    """Collect replies in memory instead of sending them."""

    def __init__(self) -> None:
        self.sent: Dict[str, List[Any]] = defaultdict(list)

    async def send(self, session_id: str, payload: Any) -> None:
        self.sent[session_id].append(payload)

    def texts(self, session_id: str) -> List[str]:
        result = []
        for payload in self.sent.get(session_id, []):
            if isinstance(payload, Mapping):
                result.append(str(payload.get("text", "")))
            else:
                result.append(str(payload))
        return result

    def clear(self) -> None:
        self.sent.clear()
