"""Structured logging for the resilience layer (structlog over stdlib logging).

Production renders JSON lines; every other environment gets the colored
console renderer. Provider credentials never reach a log line.
"""

import logging
import sys
from collections.abc import Iterable

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

APP_LOG_NAME = "attendry-resilience-layer"

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"api_key", "authorization", "password", "token", "key"})

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "redis")


class AppContext:
    """Processor stamping app name, version and environment on every event."""

    def __init__(self, version: str | None = None, environment: str | None = None):
        self.version = version
        self.environment = environment

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["app"] = APP_LOG_NAME
        if self.version:
            event_dict.setdefault("app_version", self.version)
        if self.environment:
            event_dict.setdefault("environment", self.environment)
        return event_dict


def redact_sensitive(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace credential-looking fields with a placeholder."""
    for field in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[field]:
            event_dict[field] = REDACTED
    return event_dict


def _renderer(json_output: bool) -> tuple[list[Processor], Processor]:
    if json_output:
        return [structlog.processors.format_exc_info], structlog.processors.JSONRenderer()
    return [structlog.processors.ExceptionPrettyPrinter()], structlog.dev.ConsoleRenderer(colors=True)


def quiet_loggers(names: Iterable[str] = NOISY_LOGGERS, level: int = logging.WARNING) -> None:
    for name in names:
        logging.getLogger(name).setLevel(level)


def configure_logging(
    log_level: str = "INFO",
    environment: str = "development",
    app_version: str | None = None,
) -> None:
    """Configure structlog and route stdlib loggers through the same renderer.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (unknown -> INFO)
        environment: "production" selects JSON output
        app_version: Stamped on every event when given
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    json_output = environment.lower() == "production"
    exc_processors, renderer = _renderer(json_output)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        AppContext(app_version, environment),
        redact_sensitive,
        *exc_processors,
    ]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors)
    )
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    quiet_loggers()

    structlog.get_logger(__name__).info(
        "Logging configured",
        log_level=logging.getLevelName(level),
        renderer="json" if json_output else "console",
    )
