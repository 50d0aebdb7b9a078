"""Wizard scenes: ordered steps advanced explicitly by handlers."""

from typing import TYPE_CHECKING, Optional, Tuple, Union

from .base_scene import Scene
from .handlers import Handler, HandlerChain

if TYPE_CHECKING:
    from .context import SceneContext


Step = Union[Handler, HandlerChain]


class WizardScene(Scene):
    """Scene whose handlers are a sequence of steps.

    Scene level routes run first. When none of them handles the update, the
    step at the session cursor runs. A step moves the wizard forward by
    calling ``ctx.next()``; moving past the last step leaves the scene.
    """

    def __init__(self, name: str, *steps: Step, ttl: Optional[float] = None):
        super().__init__(name, ttl=ttl)
        if not steps:
            raise ValueError(f"Wizard '{name}' needs at least one step")
        for index, step in enumerate(steps):
            if not callable(step):
                raise TypeError(f"Wizard '{name}': step #{index} is not callable")
        self.steps: Tuple[Step, ...] = tuple(steps)

    @property
    def is_wizard(self) -> bool:
        return True

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def freeze(self) -> None:
        super().freeze()
        for step in self.steps:
            if isinstance(step, HandlerChain):
                step.freeze()

    async def handle(self, ctx: "SceneContext") -> bool:
        if await self.chain.handle(ctx):
            return True
        cursor = ctx.step or 0
        if not 0 <= cursor < self.step_count:
            return False
        step = self.steps[cursor]
        if isinstance(step, HandlerChain):
            return await step.handle(ctx)
        await step(ctx)
        return True
