"""Global command handlers reached when no scene handles an update."""

import structlog
from aiogram import Dispatcher, Router
from aiogram.filters import Command
from aiogram.types import Message

from scenekit.scenes.context import SceneContext
from scenekit.scenes.super_wizard import SUPER_WIZARD

logger = structlog.get_logger()

router = Router(name="global")


@router.message(Command("greeter"))
async def enter_greeter(message: Message, scene: SceneContext) -> None:
    await scene.enter("greeter")


@router.message(Command("echo"))
async def enter_echo(message: Message, scene: SceneContext) -> None:
    await scene.enter("echo")


@router.message(Command("wizard"))
async def enter_wizard(message: Message, scene: SceneContext) -> None:
    await scene.enter(SUPER_WIZARD)
    await message.answer("Wizard started, send anything to begin")


@router.message()
async def fallback(message: Message) -> None:
    logger.debug("No scene handled message", chat_id=message.chat.id)
    await message.answer("Try /echo or /greeter")


def register_handlers(dp: Dispatcher) -> None:
    """Register global handlers."""
    dp.include_router(router)
