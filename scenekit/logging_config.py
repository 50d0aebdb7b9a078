"""Centralized logging configuration for the scene bot."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.types import Processor

from scenekit.config import settings

TRANSITION_LOGGER_PREFIX = "scenekit.transitions"
TRANSITION_LOG_FILE = "scene_transitions.log"

_logging_configured = False


def _transition_renderer(
    _: logging.Logger,
    __: str,
    event_dict: dict[str, Any],
) -> str:
    """Format a structlog event as a single ``key=value`` line."""

    timestamp = event_dict.pop("timestamp", "")
    level = str(event_dict.pop("level", "")).upper()
    event = str(event_dict.pop("event", ""))
    event_dict.pop("logger", None)

    session_id = event_dict.pop("session_id", None)
    scene = event_dict.pop("scene", None)

    details: list[str] = []
    if session_id is not None:
        details.append(f"session={session_id}")
    if scene is not None:
        details.append(f"scene={scene}")

    for key, value in event_dict.items():
        if value in (None, "", []):
            continue
        if isinstance(value, dict):
            value = ", ".join(f"{dict_key}={dict_value}" for dict_key, dict_value in value.items())
        details.append(f"{key}={value}")

    parts = [str(timestamp) if timestamp else "", level, event, " ".join(details)]
    return " | ".join(part for part in parts if part)


def setup_logging(*, log_dir: Optional[str] = None) -> None:
    """
    Configure structured logging for the entire application.

    Verbose diagnostics go to stdout. Scene transitions are also persisted in
    ``<log_dir>/scene_transitions.log`` as one ``key=value`` line per event.
    """

    global _logging_configured

    if _logging_configured:
        return

    log_level = settings.log_level.upper()
    log_file_path = Path(log_dir or settings.log_dir) / TRANSITION_LOG_FILE

    # Ensure log directory exists before configuring handlers
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    shared_processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s",
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=settings.debug),
        foreign_pre_chain=shared_processors,
    )

    file_formatter = structlog.stdlib.ProcessorFormatter(
        processor=_transition_renderer,
        foreign_pre_chain=shared_processors,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)

    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setFormatter(file_formatter)
    file_handler.addFilter(logging.Filter(TRANSITION_LOGGER_PREFIX))

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(log_level)

    # Reduce noise from third-party libraries
    for noisy_logger in ("aiogram", "asyncio", "redis"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logger = structlog.get_logger("logging_setup")
    logger.info(
        "Logging configured",
        level=log_level,
        file_path=str(log_file_path),
    )

    _logging_configured = True
