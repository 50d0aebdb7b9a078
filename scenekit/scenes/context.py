"""Per-update context handed to scene handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from scenekit.updates import Update

from .session import SessionSceneState

if TYPE_CHECKING:
    from scenekit.services.reply_service import ReplySink

    from .stage import Stage


class SceneContext:
    """Context passed to scene hooks, routes and wizard steps.

    Created for a single update and discarded after dispatch. Scene
    transitions requested through ``enter``, ``leave`` and ``next`` are
    applied to ``state`` and persisted by the stage when dispatch ends.
    """

    def __init__(
        self,
        stage: "Stage",
        update: Update,
        state: SessionSceneState,
        sink: Optional["ReplySink"] = None,
    ):
        self.stage = stage
        self.update = update
        self.state = state
        self.sink = sink
        self.extras: Dict[str, Any] = {}

    @property
    def session_id(self) -> str:
        return self.update.session_id

    @property
    def session(self) -> Dict[str, Any]:
        """Conversation wide payload, kept across scenes."""
        return self.state.data

    @property
    def scene_data(self) -> Dict[str, Any]:
        """Payload of the active scene, dropped when the scene is left."""
        return self.state.scene_data

    @property
    def scene_name(self) -> Optional[str]:
        return self.state.scene

    @property
    def step(self) -> Optional[int]:
        return self.state.step

    async def reply(self, payload: Any) -> Any:
        if self.sink is None:
            raise RuntimeError("No reply sink configured for this stage")
        return await self.sink.send(self.session_id, payload)

    async def enter(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        await self.stage.enter_scene(self, name, payload)

    async def leave(self) -> None:
        await self.stage.leave_scene(self)

    async def next(self) -> None:
        await self.stage.advance_step(self)
