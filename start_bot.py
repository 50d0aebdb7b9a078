"""Startup script for the scene demo bot."""

import asyncio

from scenekit.logging_config import setup_logging

setup_logging()

import structlog

from scenekit.bot import start_polling
from scenekit.config import settings

logger = structlog.get_logger(__name__)


if __name__ == "__main__":
    if not settings.telegram_bot_token:
        raise SystemExit("TELEGRAM_BOT_TOKEN is not set")
    logger.info("🚀 Starting scene bot...", debug=settings.debug, store=settings.session_store)
    try:
        asyncio.run(start_polling())
    except KeyboardInterrupt:
        logger.info("👋 Bot stopped")
