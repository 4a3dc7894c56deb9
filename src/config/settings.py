import logging.config
import re

import structlog
from decouple import config

# ---------------------------------------------------------------------------
# Backend API
# ---------------------------------------------------------------------------
ORDERS_API_BASE_URL = config("ORDERS_API_BASE_URL", default="http://localhost:3001")

# Authentication is handled elsewhere; the token is only forwarded.
ORDERS_API_TOKEN = config("ORDERS_API_TOKEN", default="")

ORDERS_API_TIMEOUT = config("ORDERS_API_TIMEOUT", default=15.0, cast=float)

DEFAULT_PAGE_SIZE = config("DEFAULT_PAGE_SIZE", default=20, cast=int)

# Internationalization
TIME_ZONE = config("TIME_ZONE", default="Europe/Copenhagen")

LOG_LEVEL = config("LOG_LEVEL", default="INFO")

# "json" for shipping, "console" for a readable local terminal.
LOG_FORMAT = config("LOG_FORMAT", default="json")

# ---------------------------------------------------------------------------
# Structured Logging (structlog + stdlib logging)
# ---------------------------------------------------------------------------
SENSITIVE_PATTERN = re.compile(
    r"(bearer\s+[A-Za-z0-9\-._~+/]+=*)"  # Authorization header values
    r"|([A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,})"  # e-mail
    r"|(password|passwd|secret|token|authorization)"
    r"""([=:]\s*["']?)((?:bearer\s+)?[^\s,}"']+)""",
    re.IGNORECASE,
)


def _mask(value):
    if isinstance(value, str):
        return SENSITIVE_PATTERN.sub("***MASKED***", value)
    if isinstance(value, dict):
        return {k: _mask(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_mask(v) for v in value]
    return value


def mask_sensitive_data(_, __, event_dict):
    """Processor that masks tokens, credentials and e-mail addresses in log values.

    Nested dicts and lists (e.g. a logged request body) are masked too.
    """
    for key, value in list(event_dict.items()):
        event_dict[key] = _mask(value)
    return event_dict


# Shared processors used by both structlog and stdlib logging
_shared_processors = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    mask_sensitive_data,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]

structlog.configure(
    processors=[
        *_shared_processors,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
            "foreign_pre_chain": _shared_processors,
        },
        "console": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            "foreign_pre_chain": _shared_processors,
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console" if LOG_FORMAT == "console" else "json",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "httpx": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}


def configure_logging() -> None:
    """Install ``LOGGING`` on the stdlib root logger."""
    logging.config.dictConfig(LOGGING)
