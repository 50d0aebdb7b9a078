"""Five step wizard driven by replies, an inline button and /next.

Steps: a prompt with the Next keyboard, silent session bookkeeping, the
Next confirmation, "Step 3", then "Done", which leaves the wizard. There is
no separate "Step 4" reply; the wizard is kept at five steps.
"""

from aiogram.utils.keyboard import InlineKeyboardBuilder

from .context import SceneContext
from .handlers import HandlerChain
from .wizard_scene import WizardScene

SUPER_WIZARD = "super-wizard"
PROJECT_URL = "https://docs.aiogram.dev"


def _step_one_keyboard():
    builder = InlineKeyboardBuilder()
    builder.button(text="❤️", url=PROJECT_URL)
    builder.button(text="➡️ Next", callback_data="next")
    builder.adjust(2)
    return builder.as_markup()


def build_super_wizard() -> WizardScene:
    async def step_one(ctx: SceneContext) -> None:
        await ctx.reply({"text": "Step 1", "reply_markup": _step_one_keyboard()})
        await ctx.next()

    async def step_two(ctx: SceneContext) -> None:
        ctx.extras.setdefault("context_prop", "")
        ctx.session["visits"] = ctx.session.get("visits", 0) + 1
        ctx.scene_data.setdefault("answers", [])
        await ctx.next()

    confirm = HandlerChain()

    @confirm.action("next")
    async def via_button(ctx: SceneContext) -> None:
        await ctx.reply("Step 2. Via inline button")
        await ctx.next()

    @confirm.command("next")
    async def via_command(ctx: SceneContext) -> None:
        await ctx.reply("Step 2. Via command")
        await ctx.next()

    @confirm.use()
    async def remind(ctx: SceneContext) -> None:
        await ctx.reply({"text": "Press <code>Next</code> button or type /next", "parse_mode": "HTML"})

    async def announce_step_three(ctx: SceneContext) -> None:
        await ctx.reply("Step 3")
        await ctx.next()

    async def finish(ctx: SceneContext) -> None:
        await ctx.reply("Done")
        await ctx.next()

    return WizardScene(SUPER_WIZARD, step_one, step_two, confirm, announce_step_three, finish)
