"""Bot initialization and configuration."""

import asyncio
from typing import List, Optional

import structlog
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import BotCommand, BotCommandScopeDefault

from scenekit.config import Settings, settings as default_settings
from scenekit.handlers import start
from scenekit.middlewares.logging import LoggingMiddleware
from scenekit.middlewares.stage import StageMiddleware
from scenekit.scenes.base_scene import Scene
from scenekit.scenes.config_loader import build_scenes, load_scene_config
from scenekit.scenes.echo_scene import build_echo_scene
from scenekit.scenes.greeter_scene import build_greeter_scene
from scenekit.scenes.session import SessionStore
from scenekit.scenes.stage import Stage
from scenekit.scenes.super_wizard import build_super_wizard
from scenekit.services.reply_service import BotReplySink
from scenekit.services.storage_service import storage_service

logger = structlog.get_logger()


def default_scenes(config: Settings) -> List[Scene]:
    """Scenes declared in YAML when configured, the built-in demo scenes otherwise."""
    if config.scenes_config_path:
        scene_config = load_scene_config(config.scenes_config_path)
        logger.info(
            "Loaded scenes from config",
            path=config.scenes_config_path,
            scenes=scene_config.scene_names,
        )
        return build_scenes(scene_config)
    return [build_greeter_scene(), build_echo_scene(), build_super_wizard()]


def create_stage(
    bot: Bot,
    store: SessionStore,
    config: Optional[Settings] = None,
) -> Stage:
    config = config or default_settings
    return Stage(
        default_scenes(config),
        store=store,
        sink=BotReplySink(bot),
        ttl_seconds=config.stage_ttl_seconds,
        default_scene=config.default_scene,
    )


def create_dispatcher(stage: Stage) -> Dispatcher:
    dp = Dispatcher()

    # Logging first so scene-handled events are logged too
    dp.message.outer_middleware(LoggingMiddleware())
    dp.callback_query.outer_middleware(LoggingMiddleware())
    dp.message.outer_middleware(StageMiddleware(stage))
    dp.callback_query.outer_middleware(StageMiddleware(stage))

    start.register_handlers(dp)
    return dp


async def set_bot_commands(bot: Bot) -> None:
    """Set bot commands for the menu."""
    commands = [
        BotCommand(command="greeter", description="Enter the greeter scene"),
        BotCommand(command="echo", description="Enter the echo scene"),
        BotCommand(command="wizard", description="Start the step by step wizard"),
    ]

    await bot.set_my_commands(commands, BotCommandScopeDefault())
    logger.info("Bot commands set successfully")


async def start_polling(config: Optional[Settings] = None) -> None:
    """Start bot in polling mode."""
    config = config or default_settings
    bot = Bot(
        token=config.telegram_bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    store = await storage_service.initialize()
    stage = create_stage(bot, store, config)
    dp = create_dispatcher(stage)

    logger.info(
        "Starting bot in polling mode",
        scenes=stage.registry.names,
        ttl_seconds=stage.ttl_seconds,
        default_scene=stage.default_scene,
    )

    try:
        await set_bot_commands(bot)
        await bot.delete_webhook(drop_pending_updates=True)
        await dp.start_polling(bot)
    except Exception as e:
        logger.error("Bot polling error", error=str(e), exc_info=True)
        raise
    finally:
        await storage_service.close()
        await bot.session.close()
        logger.info("Bot shutdown completed")


if __name__ == "__main__":
    asyncio.run(start_polling())
