"""Trigger predicates and ordered handler chains."""

from __future__ import annotations

import re
from dataclasses import dataclass
from re import Pattern
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Sequence, Union

from scenekit.updates import Update

from .errors import SceneFrozenError

if TYPE_CHECKING:
    from .context import SceneContext


Handler = Callable[["SceneContext"], Awaitable[Any]]
Predicate = Callable[[Update], bool]
TextTrigger = Union[str, Pattern[str], Sequence[Union[str, Pattern[str]]]]

# Update kinds that are messages, used by ``on("message")``.
_MESSAGE_KINDS = frozenset({"message", "edited_message", "channel_post"})


def _as_list(trigger: TextTrigger) -> List[Union[str, Pattern[str]]]:
    if isinstance(trigger, (str, re.Pattern)):
        return [trigger]
    return list(trigger)


def _matches(value: Optional[str], triggers: List[Union[str, Pattern[str]]]) -> bool:
    if value is None:
        return False
    for trigger in triggers:
        if isinstance(trigger, re.Pattern):
            if trigger.search(value):
                return True
        elif trigger == value:
            return True
    return False


def hears(trigger: TextTrigger) -> Predicate:
    """Match message text exactly or by regular expression."""
    triggers = _as_list(trigger)

    def predicate(update: Update) -> bool:
        return update.is_message and _matches(update.text, triggers)

    return predicate


def command(name: Union[str, Sequence[str]]) -> Predicate:
    """Match ``/name`` commands, with or without a bot mention."""
    names = {name.lstrip("/")} if isinstance(name, str) else {item.lstrip("/") for item in name}

    def predicate(update: Update) -> bool:
        return update.command in names

    return predicate


def action(trigger: TextTrigger) -> Predicate:
    """Match callback query data exactly or by regular expression."""
    triggers = _as_list(trigger)

    def predicate(update: Update) -> bool:
        return update.is_callback and _matches(update.callback_data, triggers)

    return predicate


def on(kind: str) -> Predicate:
    """Match by update kind or message content type."""

    def predicate(update: Update) -> bool:
        if kind == "message":
            return update.kind in _MESSAGE_KINDS
        if kind == update.kind:
            return True
        if kind == "text":
            return update.is_message and update.text is not None
        return update.is_message and update.content_type == kind

    return predicate


def always(update: Update) -> bool:
    return True


@dataclass(frozen=True)
class Route:
    """Single predicate/handler pair."""

    predicate: Predicate
    handler: Handler


class HandlerChain:
    """Ordered list of routes; the first route that handles an update wins.

    A matched handler that returns ``False`` passes the update on to the
    following routes. Any other return value marks the update handled.
    """

    def __init__(self) -> None:
        self._routes: List[Route] = []
        self._frozen = False

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add(self, predicate: Predicate, handler: Handler) -> Handler:
        if self._frozen:
            raise SceneFrozenError("Cannot add routes to a registered handler chain")
        if not callable(handler):
            raise TypeError("Route handler must be callable")
        self._routes.append(Route(predicate, handler))
        return handler

    def _register(self, predicate: Predicate, handler: Optional[Handler]):
        if handler is not None:
            self.add(predicate, handler)
            return handler

        def decorator(func: Handler) -> Handler:
            return self.add(predicate, func)

        return decorator

    def hears(self, trigger: TextTrigger, handler: Optional[Handler] = None):
        return self._register(hears(trigger), handler)

    def command(self, name: Union[str, Sequence[str]], handler: Optional[Handler] = None):
        return self._register(command(name), handler)

    def action(self, trigger: TextTrigger, handler: Optional[Handler] = None):
        return self._register(action(trigger), handler)

    def on(self, kind: str, handler: Optional[Handler] = None):
        return self._register(on(kind), handler)

    def use(self, handler: Optional[Handler] = None):
        return self._register(always, handler)

    async def handle(self, ctx: "SceneContext") -> bool:
        for route in self._routes:
            if not route.predicate(ctx.update):
                continue
            result = await route.handler(ctx)
            if result is not False:
                return True
        return False

    async def __call__(self, ctx: "SceneContext") -> bool:
        return await self.handle(ctx)

    def __len__(self) -> int:
        return len(self._routes)
