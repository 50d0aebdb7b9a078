"""Middleware routing aiogram events through the scene stage."""

from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from aiogram import BaseMiddleware
from aiogram.dispatcher.event.bases import UNHANDLED
from aiogram.types import CallbackQuery, Message, TelegramObject

from scenekit.scenes.context import SceneContext
from scenekit.scenes.stage import Stage
from scenekit.updates import Update, session_key

logger = structlog.get_logger(__name__)


def _content_type(message: Message) -> str:
    content_type = message.content_type
    return getattr(content_type, "value", content_type)


def update_from_event(event: TelegramObject) -> Optional[Update]:
    """Decode a message or callback query into an :class:`Update`."""
    if isinstance(event, Message):
        user_id = event.from_user.id if event.from_user else None
        return Update(
            session_id=session_key(event.chat.id, user_id),
            kind="message",
            text=event.text,
            content_type=_content_type(event),
            raw=event,
        )
    if isinstance(event, CallbackQuery):
        if event.message is None:
            return None
        return Update(
            session_id=session_key(event.message.chat.id, event.from_user.id),
            kind="callback_query",
            callback_data=event.data,
            raw=event,
        )
    return None


class StageMiddleware(BaseMiddleware):
    """
    Outer middleware giving the active scene the first look at every event.

    Events the scene does not handle continue to the routers, which receive
    the scene context as the ``scene`` handler argument.
    """

    def __init__(self, stage: Stage) -> None:
        self.stage = stage

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        update = update_from_event(event)
        if update is None:
            return await handler(event, data)

        result: Any = UNHANDLED

        async def fallback(ctx: SceneContext) -> bool:
            nonlocal result
            data["scene"] = ctx
            result = await handler(event, data)
            return result is not UNHANDLED

        handled = await self.stage.dispatch(update, fallback=fallback)
        if handled and result is UNHANDLED:
            logger.debug("Event handled by scene", session_id=update.session_id)
            return None
        return result
