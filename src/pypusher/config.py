"""Configuration system for PyPusher."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import structlog

from .auth import Authorizer

logger = structlog.get_logger(__name__)

DEFAULT_HOST = "ws.pusherapp.com"

_TRUTHY = ("true", "1", "yes")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    structured: bool = True


@dataclass
class PusherOptions:
    """Options for a PusherClient."""

    host: str = DEFAULT_HOST
    cluster: str | None = None
    encrypted: bool = True
    authorizer: Authorizer | None = None
    client_name: str = "pypusher"
    connect_timeout: float = 10.0
    tracing_enabled: bool = False
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def resolved_host(self) -> str:
        """The host to connect to, derived from the cluster when no host is set."""
        if self.cluster and self.host == DEFAULT_HOST:
            return f"ws-{self.cluster}.pusher.com"
        return self.host

    @classmethod
    def from_env(cls) -> "PusherOptions":
        """Create options from environment variables."""
        options = cls()

        options.host = os.getenv("PYPUSHER_HOST", options.host)
        options.cluster = os.getenv("PYPUSHER_CLUSTER", options.cluster)
        options.encrypted = os.getenv("PYPUSHER_ENCRYPTED", "true").lower() in _TRUTHY
        options.client_name = os.getenv("PYPUSHER_CLIENT_NAME", options.client_name)
        options.connect_timeout = float(
            os.getenv("PYPUSHER_CONNECT_TIMEOUT", str(options.connect_timeout))
        )
        options.tracing_enabled = os.getenv("PYPUSHER_TRACING", "").lower() in _TRUTHY

        options.logging.level = os.getenv("PYPUSHER_LOG_LEVEL", options.logging.level).upper()
        options.logging.structured = (
            os.getenv("PYPUSHER_LOG_STRUCTURED", "true").lower() in _TRUTHY
        )

        logger.info("config.loaded_from_env", options=options.to_dict())
        return options

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PusherOptions":
        """Create options from a dictionary."""
        options = cls()

        options.host = data.get("host", options.host)
        options.cluster = data.get("cluster", options.cluster)
        options.encrypted = data.get("encrypted", options.encrypted)
        options.authorizer = data.get("authorizer", options.authorizer)
        options.client_name = data.get("client_name", options.client_name)
        options.connect_timeout = data.get("connect_timeout", options.connect_timeout)
        options.tracing_enabled = data.get("tracing_enabled", options.tracing_enabled)

        if "logging" in data:
            logging_data = data["logging"]
            options.logging.level = logging_data.get("level", options.logging.level)
            options.logging.structured = logging_data.get(
                "structured", options.logging.structured
            )

        logger.info("config.loaded_from_dict", options=options.to_dict())
        return options

    def to_dict(self) -> dict[str, Any]:
        """Convert options to a dictionary, leaving out the authorizer."""
        return {
            "host": self.host,
            "cluster": self.cluster,
            "encrypted": self.encrypted,
            "client_name": self.client_name,
            "connect_timeout": self.connect_timeout,
            "tracing_enabled": self.tracing_enabled,
            "logging": {
                "level": self.logging.level,
                "structured": self.logging.structured,
            },
        }

    def validate(self) -> list[str]:
        """Validate options and return a list of errors."""
        errors = []

        if not isinstance(self.host, str) or not self.host:
            errors.append("host must be a non-empty string")

        if not isinstance(self.client_name, str) or not self.client_name:
            errors.append("client_name must be a non-empty string")

        if self.connect_timeout <= 0:
            errors.append("connect_timeout must be positive")

        if self.authorizer is not None and not callable(
            getattr(self.authorizer, "authorize", None)
        ):
            errors.append("authorizer must provide an authorize(channel_name, socket_id) method")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.logging.level not in valid_log_levels:
            errors.append(f"logging.level must be one of: {', '.join(valid_log_levels)}")

        if errors:
            logger.error("config.validation_errors", errors=errors)

        return errors


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure structlog for an application using PyPusher.

    Call this once at startup; libraries should leave logging alone.
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)

    renderer = (
        structlog.processors.JSONRenderer()
        if config.structured
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
