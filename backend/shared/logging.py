"""Structured logging configuration with structlog.

Log events go through stdlib logging, so third-party loggers and pytest's
caplog see the same records. Output is controlled by the environment:

- LOG_FORMAT: "json" for log aggregation, "console" or unset for
  human-readable output.
- LOG_LEVEL: "DEBUG", "INFO" (default), "WARNING", "ERROR", or "CRITICAL".
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

# Chatty at INFO: httpx logs every lobby round trip.
_QUIET_LOGGERS = ("httpx", "httpcore")
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LogSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOG_")

    format: Literal["json", "console", ""] = ""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("format", mode="before")
    @classmethod
    def validate_format(cls, v: object) -> object:
        if isinstance(v, str) and v.lower() in {"json", "console", ""}:
            return v.lower()
        raise ValueError(f"Invalid LOG_FORMAT={v!r}. Must be 'json', 'console', or unset.")

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: object) -> object:
        if isinstance(v, str) and v.upper() in _LEVELS:
            return v.upper()
        raise ValueError(f"Invalid LOG_LEVEL={v!r}. Must be DEBUG, INFO, WARNING, ERROR or CRITICAL.")

    @property
    def json_mode(self) -> bool:
        return self.format == "json"

    @property
    def level_number(self) -> int:
        return getattr(logging, self.level)


def _serialize_models(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Replace pydantic models (games, players) with plain dicts for log output."""
    for key, value in event_dict.items():
        if isinstance(value, BaseModel):
            event_dict[key] = value.model_dump(mode="json")
    return event_dict


def _is_test() -> bool:
    return "pytest" in sys.modules


def configure_structlog() -> None:
    """Point structlog at stdlib logging. Handlers and levels are left to the caller."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_models,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _formatter(*, json_mode: bool, colors: bool = False) -> logging.Formatter:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Install stdout (and optionally file) handlers on the root logger.

    Replaces any handlers installed by a previous call. When log_dir is
    given and we are not under pytest, events are also written to a file
    named after the current UTC time; its path is returned.
    """
    settings = LogSettings()
    configure_structlog()

    root = logging.getLogger()
    root.setLevel(settings.level_number if level is None else level)
    root.handlers.clear()
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_formatter(json_mode=settings.json_mode, colors=sys.stdout.isatty()))
    root.addHandler(console)

    if log_dir is None or _is_test():
        return None

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(_formatter(json_mode=settings.json_mode))
    root.addHandler(file_handler)
    return log_file
