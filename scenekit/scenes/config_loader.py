"""YAML configuration loader for declarative scenes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .base_scene import Scene
from .context import SceneContext
from .handlers import Handler, HandlerChain
from .wizard_scene import WizardScene


class SceneConfigError(Exception):
    """Raised when scene configuration is invalid."""


class _SceneLoader(yaml.SafeLoader):
    """Safe loader that reads only true/false as booleans.

    Plain YAML 1.1 resolves ``on``, ``off``, ``yes`` and ``no`` to booleans,
    which would turn the ``on:`` trigger key into ``True``.
    """


_BOOL_TAG = "tag:yaml.org,2002:bool"
_SceneLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_SceneLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


_TRIGGER_KEYS = ("hears", "command", "action", "on", "use")
_ACTION_KEYS = ("reply", "echo", "enter", "leave", "next")


@dataclass(frozen=True)
class ActionConfig:
    """What to do when a hook, route or step fires. Applied in key order."""

    reply: Optional[str] = None
    echo: bool = False
    enter: Optional[str] = None
    leave: bool = False
    next: bool = False


@dataclass(frozen=True)
class RouteConfig:
    """Trigger descriptor together with its action."""

    trigger: str
    value: Any
    action: ActionConfig


@dataclass(frozen=True)
class SceneDefinition:
    """Single scene: hooks, routes and, for wizards, steps."""

    name: str
    ttl: Optional[float] = None
    enter: Optional[ActionConfig] = None
    leave: Optional[ActionConfig] = None
    routes: List[RouteConfig] = field(default_factory=list)
    steps: List[List[RouteConfig]] = field(default_factory=list)

    @property
    def is_wizard(self) -> bool:
        return bool(self.steps)


@dataclass(frozen=True)
class SceneConfig:
    """Root configuration holding every declared scene."""

    version: int
    scenes: Mapping[str, SceneDefinition]

    @property
    def scene_names(self) -> List[str]:
        return list(self.scenes.keys())


def _ensure_mapping(node: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(node, Mapping):
        raise SceneConfigError(f"Expected mapping for '{path}', got {type(node).__name__}")
    return node


def _parse_action(node: Any, path: str) -> ActionConfig:
    raw = _ensure_mapping(node, path)
    if not any(key in raw for key in _ACTION_KEYS):
        raise SceneConfigError(f"'{path}' must define one of: {', '.join(_ACTION_KEYS)}")
    reply = raw.get("reply")
    if reply is not None and not isinstance(reply, str):
        raise SceneConfigError(f"'{path}.reply' must be a string")
    target = raw.get("enter")
    if target is not None and (not isinstance(target, str) or not target):
        raise SceneConfigError(f"'{path}.enter' must be a scene name")
    return ActionConfig(
        reply=reply,
        echo=bool(raw.get("echo", False)),
        enter=target,
        leave=bool(raw.get("leave", False)),
        next=bool(raw.get("next", False)),
    )


def _parse_trigger_value(trigger: str, value: Any, path: str) -> Any:
    if trigger == "use":
        return True
    if trigger == "on":
        if not isinstance(value, str):
            raise SceneConfigError(f"'{path}.on' must be a string")
        return value
    values = value if isinstance(value, list) else [value]
    if not values or not all(isinstance(item, str) and item for item in values):
        raise SceneConfigError(f"'{path}.{trigger}' must be a string or list of strings")
    if trigger in ("hears", "action"):
        return [re.compile(item[1:-1]) if _is_regex(item) else item for item in values]
    return values


def _is_regex(value: str) -> bool:
    return len(value) > 2 and value.startswith("/") and value.endswith("/")


def _parse_route(node: Any, path: str) -> RouteConfig:
    raw = _ensure_mapping(node, path)
    triggers = [key for key in _TRIGGER_KEYS if key in raw]
    if len(triggers) != 1:
        raise SceneConfigError(
            f"'{path}' must define exactly one trigger of: {', '.join(_TRIGGER_KEYS)}"
        )
    trigger = triggers[0]
    value = _parse_trigger_value(trigger, raw[trigger], path)
    action_node = {key: item for key, item in raw.items() if key != trigger}
    return RouteConfig(trigger=trigger, value=value, action=_parse_action(action_node, path))


def _parse_routes(node: Any, path: str) -> List[RouteConfig]:
    if node is None:
        return []
    if not isinstance(node, list):
        raise SceneConfigError(f"'{path}' must be a list")
    return [_parse_route(item, f"{path}[{idx}]") for idx, item in enumerate(node)]


def _parse_step(node: Any, path: str) -> List[RouteConfig]:
    raw = _ensure_mapping(node, path)
    if "routes" in raw:
        return _parse_routes(raw["routes"], f"{path}.routes")
    return [RouteConfig(trigger="use", value=True, action=_parse_action(raw, path))]


def _parse_scene(name: str, node: Any) -> SceneDefinition:
    path = f"scenes.{name}"
    raw = _ensure_mapping(node or {}, path)
    ttl = raw.get("ttl")
    if ttl is not None and (not isinstance(ttl, (int, float)) or ttl < 0):
        raise SceneConfigError(f"'{path}.ttl' must be a non-negative number")
    steps_node = raw.get("steps")
    if steps_node is not None and (not isinstance(steps_node, list) or not steps_node):
        raise SceneConfigError(f"'{path}.steps' must be a non-empty list")
    return SceneDefinition(
        name=name,
        ttl=ttl,
        enter=_parse_action(raw["enter"], f"{path}.enter") if "enter" in raw else None,
        leave=_parse_action(raw["leave"], f"{path}.leave") if "leave" in raw else None,
        routes=_parse_routes(raw.get("routes"), f"{path}.routes"),
        steps=[_parse_step(item, f"{path}.steps[{idx}]") for idx, item in enumerate(steps_node or [])],
    )


def parse_scene_config(raw: Any) -> SceneConfig:
    root = _ensure_mapping(raw, "root")
    version = root.get("version", 1)
    if version != 1:
        raise SceneConfigError(f"Unsupported scene config version: {version}")
    scenes_node = _ensure_mapping(root.get("scenes"), "scenes")
    scenes: Dict[str, SceneDefinition] = {}
    for name, node in scenes_node.items():
        if not isinstance(name, str) or not name:
            raise SceneConfigError("Scene names must be non-empty strings")
        scenes[name] = _parse_scene(name, node)

    for definition in scenes.values():
        for target in _enter_targets(definition):
            if target not in scenes:
                raise SceneConfigError(
                    f"Scene '{definition.name}' enters unknown scene '{target}'"
                )
    return SceneConfig(version=version, scenes=scenes)


def _enter_targets(definition: SceneDefinition) -> List[str]:
    actions = [definition.enter, definition.leave]
    actions.extend(route.action for route in definition.routes)
    for step in definition.steps:
        actions.extend(route.action for route in step)
    return [action.enter for action in actions if action is not None and action.enter]


def load_scene_config(path: Union[str, Path]) -> SceneConfig:
    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.load(handle, Loader=_SceneLoader)
        except yaml.YAMLError as exc:
            raise SceneConfigError(f"Invalid YAML in '{config_path}': {exc}") from exc
    return parse_scene_config(raw)


def _make_handler(config: ActionConfig) -> Handler:
    async def handler(ctx: SceneContext) -> None:
        if config.reply is not None:
            await ctx.reply(config.reply)
        if config.echo and ctx.update.text is not None:
            await ctx.reply({"text": ctx.update.text, "parse_mode": None})
        if config.enter:
            await ctx.enter(config.enter)
        if config.leave:
            await ctx.leave()
        if config.next:
            await ctx.next()

    return handler


def _add_route(scene_or_chain: Any, route: RouteConfig) -> None:
    handler = _make_handler(route.action)
    register = getattr(scene_or_chain, route.trigger)
    if route.trigger == "use":
        register(handler)
    else:
        register(route.value, handler)


def build_scene(definition: SceneDefinition) -> Scene:
    if definition.is_wizard:
        steps = []
        for step_routes in definition.steps:
            if len(step_routes) == 1 and step_routes[0].trigger == "use":
                steps.append(_make_handler(step_routes[0].action))
                continue
            chain = HandlerChain()
            for route in step_routes:
                _add_route(chain, route)
            steps.append(chain)
        scene: Scene = WizardScene(definition.name, *steps, ttl=definition.ttl)
    else:
        scene = Scene(definition.name, ttl=definition.ttl)

    if definition.enter is not None:
        scene.on_enter(_make_handler(definition.enter))
    if definition.leave is not None:
        scene.on_leave(_make_handler(definition.leave))
    for route in definition.routes:
        _add_route(scene, route)
    return scene


def build_scenes(config: SceneConfig) -> List[Scene]:
    return [build_scene(definition) for definition in config.scenes.values()]
