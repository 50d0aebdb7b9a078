"""Echo scene: repeats text messages until /back."""

from .base_scene import Scene
from .context import SceneContext
from .stage import leave


def build_echo_scene() -> Scene:
    scene = Scene("echo")

    @scene.on_enter
    async def announce(ctx: SceneContext) -> None:
        await ctx.reply("echo scene")

    @scene.on_leave
    async def goodbye(ctx: SceneContext) -> None:
        await ctx.reply("exiting echo scene")

    scene.command("back", leave())

    @scene.on("text")
    async def echo(ctx: SceneContext):
        if ctx.update.command:
            return False
        # User text is sent verbatim, never parsed as markup.
        await ctx.reply({"text": ctx.update.text, "parse_mode": None})

    @scene.on("message")
    async def text_only(ctx: SceneContext):
        if ctx.update.command:
            return False
        await ctx.reply("Only text messages please")

    return scene
