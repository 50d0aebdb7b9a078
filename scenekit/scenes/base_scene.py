"""Base scene class for conversation modes."""

from typing import TYPE_CHECKING, Optional, Sequence, Union

from .errors import SceneFrozenError
from .handlers import Handler, HandlerChain, TextTrigger

if TYPE_CHECKING:
    from .context import SceneContext


class Scene:
    """Named set of update handlers with optional enter and leave hooks.

    Routes are matched in registration order while a session is inside the
    scene. A scene becomes immutable once it is registered on a stage.
    """

    def __init__(self, name: str, *, ttl: Optional[float] = None):
        if not name:
            raise ValueError("Scene name must be a non-empty string")
        self.name = name
        self.ttl = ttl
        self.chain = HandlerChain()
        self.enter_hook: Optional[Handler] = None
        self.leave_hook: Optional[Handler] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    @property
    def frozen(self) -> bool:
        return self.chain.frozen

    @property
    def is_wizard(self) -> bool:
        return False

    def freeze(self) -> None:
        self.chain.freeze()

    def _check_mutable(self) -> None:
        if self.frozen:
            raise SceneFrozenError(f"Scene '{self.name}' is already registered")

    def on_enter(self, handler: Handler) -> Handler:
        self._check_mutable()
        self.enter_hook = handler
        return handler

    def on_leave(self, handler: Handler) -> Handler:
        self._check_mutable()
        self.leave_hook = handler
        return handler

    def hears(self, trigger: TextTrigger, handler: Optional[Handler] = None):
        return self.chain.hears(trigger, handler)

    def command(self, name: Union[str, Sequence[str]], handler: Optional[Handler] = None):
        return self.chain.command(name, handler)

    def action(self, trigger: TextTrigger, handler: Optional[Handler] = None):
        return self.chain.action(trigger, handler)

    def on(self, kind: str, handler: Optional[Handler] = None):
        return self.chain.on(kind, handler)

    def use(self, handler: Optional[Handler] = None):
        return self.chain.use(handler)

    async def handle(self, ctx: "SceneContext") -> bool:
        """Route an update through the scene; return True when handled."""
        return await self.chain.handle(ctx)
