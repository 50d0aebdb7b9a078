"""Exceptions raised by the scene engine."""

from typing import Optional


class SceneError(Exception):
    """Base class for scene engine errors."""


class UnknownSceneError(SceneError, KeyError):
    """Raised when a scene name is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Scene '{name}' is not registered")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class DuplicateSceneError(SceneError):
    """Raised when a scene name is registered twice."""

    def __init__(self, name: str):
        super().__init__(f"Scene '{name}' is already registered")
        self.name = name


class SceneFrozenError(SceneError):
    """Raised when a registered scene or a started registry is mutated."""


class HandlerError(SceneError):
    """Wraps an exception raised by user supplied scene logic."""

    def __init__(self, scene: Optional[str], phase: str, session_id: str):
        super().__init__(f"Handler failed during {phase} (scene={scene}, session={session_id})")
        self.scene = scene
        self.phase = phase
        self.session_id = session_id
