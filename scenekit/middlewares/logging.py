"""Logging middleware for structured logging of bot events."""

from typing import Any, Awaitable, Callable, Dict
import uuid

import structlog
from aiogram import BaseMiddleware
from aiogram.types import Message, CallbackQuery, TelegramObject


class LoggingMiddleware(BaseMiddleware):
    """Middleware for structured logging of bot interactions."""

    def __init__(self) -> None:
        self.logger = structlog.get_logger("scenekit.middleware")

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        request_id = str(uuid.uuid4())
        data["request_id"] = request_id

        user_id = None
        if isinstance(event, (Message, CallbackQuery)) and event.from_user:
            user_id = event.from_user.id

        logger = self.logger.bind(
            request_id=request_id,
            user_id=user_id,
            event_type=type(event).__name__,
        )

        if isinstance(event, Message):
            logger.info(
                "Message received",
                text=(event.text or event.caption or "")[:200] or None,
                content_type=getattr(event.content_type, "value", event.content_type),
            )
        elif isinstance(event, CallbackQuery):
            logger.info("Callback received", data=(event.data or "")[:200] or None)
        else:
            logger.info("Event received")

        try:
            result = await handler(event, data)
        except Exception as exc:
            logger.error("Event processing failed", error=str(exc), exc_info=True)
            raise

        logger.debug("Event processed")
        return result
