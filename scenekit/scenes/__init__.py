"""Scenes package for managing conversation modes.

This package contains the stage controller that keeps every conversation
in at most one scene at a time and routes updates through it.
"""

from .base_scene import Scene
from .context import SceneContext
from .errors import (
    DuplicateSceneError,
    HandlerError,
    SceneError,
    SceneFrozenError,
    UnknownSceneError,
)
from .handlers import HandlerChain
from .registry import SceneRegistry
from .session import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionSceneState,
    SessionStore,
)
from .stage import Stage, enter, leave
from .wizard_scene import WizardScene

__all__ = [
    "Scene",
    "WizardScene",
    "SceneContext",
    "HandlerChain",
    "SceneRegistry",
    "Stage",
    "enter",
    "leave",
    "SessionSceneState",
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SceneError",
    "UnknownSceneError",
    "DuplicateSceneError",
    "SceneFrozenError",
    "HandlerError",
]
