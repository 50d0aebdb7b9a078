"""Per-conversation scene state and the stores that persist it."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import structlog
from redis.asyncio import Redis


@dataclass
class SessionSceneState:
    """Scene position of one conversation.

    ``scene_data`` belongs to the active scene and is dropped when the scene
    is left. ``data`` belongs to the conversation and survives scene changes.
    """

    scene: Optional[str] = None
    step: Optional[int] = None
    scene_data: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)
    touched_at: Optional[float] = None

    @property
    def in_scene(self) -> bool:
        return self.scene is not None

    def clear_scene(self) -> None:
        self.scene = None
        self.step = None
        self.scene_data = {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scene": self.scene,
            "step": self.step,
            "scene_data": self.scene_data,
            "data": self.data,
            "touched_at": self.touched_at,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SessionSceneState":
        step = raw.get("step")
        touched_at = raw.get("touched_at")
        return cls(
            scene=raw.get("scene") or None,
            step=int(step) if step is not None else None,
            scene_data=dict(raw.get("scene_data") or {}),
            data=dict(raw.get("data") or {}),
            touched_at=float(touched_at) if touched_at is not None else None,
        )


class SessionStore(Protocol):
    """Storage for :class:`SessionSceneState` keyed by session id."""

    async def get(self, session_id: str) -> Optional[SessionSceneState]:
        ...

    async def set(self, session_id: str, state: SessionSceneState) -> None:
        ...


class InMemorySessionStore:
    """Process local store. Keeps serialized copies so callers never share state."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    async def get(self, session_id: str) -> Optional[SessionSceneState]:
        raw = self._items.get(session_id)
        if raw is None:
            return None
        return SessionSceneState.from_dict(json.loads(raw))

    async def set(self, session_id: str, state: SessionSceneState) -> None:
        self._items[session_id] = json.dumps(state.to_dict())

    async def delete(self, session_id: str) -> None:
        self._items.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._items

    def __len__(self) -> int:
        return len(self._items)


class RedisSessionStore:
    """Store backed by Redis, one JSON document per session."""

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = "scene_session",
        expiry_seconds: Optional[int] = None,
    ):
        self.redis = redis
        self.prefix = prefix
        self.expiry_seconds = expiry_seconds
        self.logger = structlog.get_logger(__name__)

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}:{session_id}"

    async def get(self, session_id: str) -> Optional[SessionSceneState]:
        raw = await self.redis.get(self._key(session_id))
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return SessionSceneState.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as exc:
            self.logger.warning(
                "Discarding unreadable scene session",
                session_id=session_id,
                error=str(exc),
            )
            return None

    async def set(self, session_id: str, state: SessionSceneState) -> None:
        payload = json.dumps(state.to_dict())
        if self.expiry_seconds:
            await self.redis.setex(self._key(session_id), self.expiry_seconds, payload)
        else:
            await self.redis.set(self._key(session_id), payload)
