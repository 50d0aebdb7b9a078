"""Registry of scenes available to a stage."""

from typing import Dict, Iterator, List

import structlog

from .base_scene import Scene
from .errors import DuplicateSceneError, SceneFrozenError, UnknownSceneError


class SceneRegistry:
    """Registry storing mapping between scene names and scenes."""

    def __init__(self) -> None:
        self._scenes: Dict[str, Scene] = {}
        self._frozen = False
        self._logger = structlog.get_logger(__name__)

    def register(self, scene: Scene) -> None:
        if self._frozen:
            raise SceneFrozenError(
                f"Cannot register scene '{scene.name}' after dispatching started"
            )
        if scene.name in self._scenes:
            raise DuplicateSceneError(scene.name)
        scene.freeze()
        self._scenes[scene.name] = scene
        self._logger.debug("scene_registered", scene=scene.name, wizard=scene.is_wizard)

    def lookup(self, name: str) -> Scene:
        try:
            return self._scenes[name]
        except KeyError:
            raise UnknownSceneError(name) from None

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def names(self) -> List[str]:
        return list(self._scenes)

    def __contains__(self, name: object) -> bool:
        return name in self._scenes

    def __iter__(self) -> Iterator[Scene]:
        return iter(self._scenes.values())

    def __len__(self) -> int:
        return len(self._scenes)
