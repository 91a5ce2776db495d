"""structlog setup shared by the API process and the Celery worker.

Events go through the stdlib root logger so uvicorn, celery and library
records share one handler and one renderer. Production emits one JSON
object per line; every other environment gets the colored console view.

Two redaction passes run before rendering:

* credential-like keys (anything *containing* ``token``, ``secret``,
  ``authorization`` ...) become ``[REDACTED]``;
* profile PII keys (``email``, ``username`` ...) become ``[PII_REDACTED]``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from app.config import Settings, get_settings

EventDict = dict[str, Any]

SENSITIVE_KEYS = frozenset({
    "api_key",
    "anon_key",
    "service_role_key",
    "password",
    "secret",
    "token",
    "authorization",
    "cookie",
})

PII_KEYS = frozenset({"email", "user_email", "username", "github_username", "ip_address"})

# Third-party loggers that only matter when something goes wrong
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "hpack")


def _redactor(
    should_redact: Callable[[str], bool], placeholder: str
) -> Callable[[Any, str, EventDict], EventDict]:
    def processor(_logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
        hits = [key for key in event_dict if should_redact(key)]
        for key in hits:
            event_dict[key] = placeholder
        return event_dict

    return processor


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEYS)


_filter_sensitive_data = _redactor(_is_secret_key, "[REDACTED]")
_filter_pii = _redactor(PII_KEYS.__contains__, "[PII_REDACTED]")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _filter_sensitive_data,
        _filter_pii,
    ]


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.is_production:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def _install_root_handler(formatter: logging.Formatter, level: str) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.getLevelName(level.upper()))


def _quiet(names: Iterable[str]) -> None:
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(settings: Settings | None = None) -> None:
    """Route structlog and stdlib records through one redacting handler.

    Safe to call more than once; the root handler is replaced, not added.
    """
    settings = settings or get_settings()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(settings),
        ],
    )
    _install_root_handler(formatter, settings.log_level)
    _quiet(QUIET_LOGGERS)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
