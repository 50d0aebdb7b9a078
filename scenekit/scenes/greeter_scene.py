"""Greeter scene: says hi on enter and bye on leave."""

from .base_scene import Scene
from .context import SceneContext
from .stage import enter


def build_greeter_scene() -> Scene:
    scene = Scene("greeter")

    @scene.on_enter
    async def greet(ctx: SceneContext) -> None:
        ctx.scene_data["greetings"] = ctx.scene_data.get("greetings", 0) + 1
        await ctx.reply("Hi")

    @scene.on_leave
    async def farewell(ctx: SceneContext) -> None:
        await ctx.reply("Bye")

    scene.hears("hi", enter("greeter"))

    @scene.on("message")
    async def prompt(ctx: SceneContext):
        # Commands belong to the global handlers.
        if ctx.update.command:
            return False
        await ctx.reply({"text": "Send <code>hi</code>", "parse_mode": "HTML"})

    return scene
