"""Stage controller routing updates through per-session scenes."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, Optional, Union

import structlog

from scenekit.services.reply_service import ReplySink
from scenekit.updates import Update

from .base_scene import Scene
from .context import SceneContext
from .errors import HandlerError, SceneError, UnknownSceneError
from .handlers import Handler, HandlerChain
from .registry import SceneRegistry
from .session import InMemorySessionStore, SessionSceneState, SessionStore
from .wizard_scene import WizardScene

TRANSITION_LOGGER = "scenekit.transitions"

Fallback = Union[HandlerChain, Callable[[SceneContext], Awaitable[Any]]]
ErrorCallback = Callable[[HandlerError, SceneContext], Awaitable[None]]


def enter(name: str, payload: Optional[Dict[str, Any]] = None) -> Handler:
    """Build a route handler that enters ``name``."""

    async def handler(ctx: SceneContext) -> None:
        await ctx.enter(name, payload)

    handler.__qualname__ = f"enter({name!r})"
    return handler


def leave() -> Handler:
    """Build a route handler that leaves the active scene."""

    async def handler(ctx: SceneContext) -> None:
        await ctx.leave()

    handler.__qualname__ = "leave()"
    return handler


class Stage:
    """Controller holding the scene registry and per-session routing.

    The stage keeps no conversation state between dispatches. Scene position
    lives in the injected session store and is read and written once per
    update, under a lock scoped to that session.
    """

    def __init__(
        self,
        scenes: Iterable[Scene] = (),
        *,
        store: Optional[SessionStore] = None,
        sink: Optional[ReplySink] = None,
        ttl_seconds: Optional[float] = 0,
        default_scene: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.registry = SceneRegistry()
        self.store = store if store is not None else InMemorySessionStore()
        self.sink = sink
        self.ttl_seconds = ttl_seconds or 0
        self.default_scene = default_scene or None
        self.clock = clock
        self.on_error = on_error
        self.logger = structlog.get_logger(__name__)
        self.transitions = structlog.get_logger(TRANSITION_LOGGER)

        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

        for scene in scenes:
            self.register(scene)

    def register(self, scene: Scene) -> Scene:
        self.registry.register(scene)
        return scene

    def _freeze(self) -> None:
        if self.registry.frozen:
            return
        if self.default_scene is not None:
            # Fail fast on a misconfigured default instead of on first update.
            self.registry.lookup(self.default_scene)
        self.registry.freeze()

    # Session handling

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                self._locks.pop(session_id, None)

    async def _open(self, update: Update) -> SceneContext:
        state = await self.store.get(update.session_id)
        ctx = SceneContext(self, update, state or SessionSceneState(), self.sink)

        if state is None:
            if self.default_scene is not None:
                await self.enter_scene(ctx, self.default_scene)
            return ctx

        if state.scene is not None and self._expired(state):
            self.transitions.info(
                "scene_expired",
                session_id=update.session_id,
                scene=state.scene,
                step=state.step,
            )
            state.clear_scene()
        return ctx

    def _scene_ttl(self, name: str) -> float:
        if name in self.registry:
            scene_ttl = self.registry.lookup(name).ttl
            if scene_ttl is not None:
                return scene_ttl
        return self.ttl_seconds

    def _expired(self, state: SessionSceneState) -> bool:
        ttl = self._scene_ttl(state.scene)
        if not ttl or state.touched_at is None:
            return False
        return self.clock() - state.touched_at > ttl

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[SceneContext]:
        """Open a locked context for ``session_id`` outside of dispatch.

        State changes made through the context are persisted on exit.
        """
        self._freeze()
        async with self._session_lock(session_id):
            ctx = await self._open(Update(session_id=session_id, kind="internal"))
            try:
                yield ctx
            finally:
                await self.store.set(session_id, ctx.state)

    # Dispatch

    async def dispatch(self, update: Update, *, fallback: Optional[Fallback] = None) -> bool:
        """Route ``update`` through the active scene, then through ``fallback``.

        Returns True when a scene route, wizard step or fallback handled it.
        Exceptions raised by the fallback propagate after the session state,
        including any transition it made, has been persisted.
        """
        self._freeze()
        async with self._session_lock(update.session_id):
            ctx = await self._open(update)
            try:
                handled = await self._route_scene(ctx)
                if not handled and fallback is not None:
                    handled = await self._run_fallback(ctx, fallback)
            finally:
                await self.store.set(update.session_id, ctx.state)
            return handled

    async def _route_scene(self, ctx: SceneContext) -> bool:
        state = ctx.state
        if state.scene is None:
            return False
        try:
            scene = self.registry.lookup(state.scene)
        except UnknownSceneError:
            self.logger.warning(
                "Discarding state of unregistered scene",
                session_id=ctx.session_id,
                scene=state.scene,
            )
            state.clear_scene()
            return False

        if isinstance(scene, WizardScene) and not 0 <= (state.step or 0) < scene.step_count:
            self.logger.warning(
                "Discarding out of range wizard step",
                session_id=ctx.session_id,
                scene=state.scene,
                step=state.step,
            )
            state.clear_scene()
            return False

        state.touched_at = self.clock()
        try:
            return await scene.handle(ctx)
        except Exception as exc:
            phase = f"step {state.step}" if scene.is_wizard else "handler"
            await self._report(ctx, scene.name, phase, exc)
            return True

    async def _run_fallback(self, ctx: SceneContext, fallback: Fallback) -> bool:
        if isinstance(fallback, HandlerChain):
            return await fallback.handle(ctx)
        return (await fallback(ctx)) is not False

    # Transitions

    async def enter_scene(
        self,
        ctx: SceneContext,
        name: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        scene = self.registry.lookup(name)
        state = ctx.state
        previous = state.scene

        if previous is not None:
            await self._run_leave_hook(ctx, previous)

        if payload is not None:
            scene_data = dict(payload)
        elif previous == name:
            scene_data = state.scene_data
        else:
            scene_data = {}

        state.scene = name
        state.step = 0 if isinstance(scene, WizardScene) else None
        state.scene_data = scene_data
        state.touched_at = self.clock()

        self.transitions.info(
            "scene_entered",
            session_id=ctx.session_id,
            scene=name,
            from_scene=previous,
        )

        if scene.enter_hook is not None:
            await self._run_hook(ctx, scene.enter_hook, name, "enter")

    async def leave_scene(self, ctx: SceneContext) -> None:
        name = ctx.state.scene
        if name is None:
            return
        await self._run_leave_hook(ctx, name)
        ctx.state.clear_scene()
        self.transitions.info("scene_left", session_id=ctx.session_id, scene=name)

    async def advance_step(self, ctx: SceneContext) -> None:
        name = ctx.state.scene
        if name is None:
            raise SceneError("Cannot advance: no active scene")
        scene = self.registry.lookup(name)
        if not isinstance(scene, WizardScene):
            raise SceneError(f"Scene '{name}' is not a wizard")

        cursor = (ctx.state.step or 0) + 1
        if cursor >= scene.step_count:
            await self.leave_scene(ctx)
            return
        ctx.state.step = cursor
        self.logger.debug("wizard_advanced", session_id=ctx.session_id, scene=name, step=cursor)

    async def _run_leave_hook(self, ctx: SceneContext, name: str) -> None:
        if name not in self.registry:
            return
        hook = self.registry.lookup(name).leave_hook
        if hook is not None:
            await self._run_hook(ctx, hook, name, "leave")

    async def _run_hook(self, ctx: SceneContext, hook: Handler, scene: str, phase: str) -> None:
        try:
            await hook(ctx)
        except Exception as exc:
            await self._report(ctx, scene, phase, exc)

    async def _report(self, ctx: SceneContext, scene: Optional[str], phase: str, exc: Exception) -> None:
        error = HandlerError(scene, phase, ctx.session_id)
        error.__cause__ = exc
        self.logger.error(
            "Scene handler failed",
            session_id=ctx.session_id,
            scene=scene,
            phase=phase,
            error=str(exc),
            exc_info=exc,
        )
        if self.on_error is None:
            return
        try:
            await self.on_error(error, ctx)
        except Exception as callback_exc:
            self.logger.error(
                "Error callback failed",
                session_id=ctx.session_id,
                error=str(callback_exc),
                exc_info=True,
            )
