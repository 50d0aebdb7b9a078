"""Configuration management for the scene bot."""

import os
from typing import Optional

from dotenv import load_dotenv


class Settings:
    """Simple settings class."""

    def __init__(self) -> None:
        load_dotenv()

        # Telegram Bot
        self.telegram_bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

        # Application
        self.debug: bool = os.getenv("DEBUG", "true").lower() == "true"
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.log_dir: str = os.getenv("LOG_DIR", "logs")

        # Redis
        self.redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

        # Session storage
        self.session_store: str = os.getenv("SESSION_STORE", "memory").lower()
        if self.session_store not in {"memory", "redis"}:
            self.session_store = "memory"
        self.session_key_prefix: str = os.getenv("SESSION_KEY_PREFIX", "scene_session")
        self.session_expiry_seconds: int = int(os.getenv("SESSION_EXPIRY_SECONDS", "0"))

        # Stage
        self.stage_ttl_seconds: float = float(os.getenv("STAGE_TTL_SECONDS", "0"))
        self.stage_default_scene: str = os.getenv("STAGE_DEFAULT_SCENE", "")
        self.scenes_config_path: str = os.getenv("SCENES_CONFIG_PATH", "")

    @property
    def default_scene(self) -> Optional[str]:
        """Return the default scene name, or None when unset."""
        return self.stage_default_scene.strip() or None

    @property
    def use_redis(self) -> bool:
        return self.session_store == "redis"


settings = Settings()
