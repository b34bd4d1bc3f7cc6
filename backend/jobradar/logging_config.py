"""structlog configuration module."""

import logging
import sys

import structlog

# Event keys whose values must never reach the log sink
SENSITIVE_KEYS = frozenset(
    {"authorization", "stripe_signature", "webhook_secret", "secret_key", "api_key"}
)


def mask_sensitive_values(_logger, _method_name: str, event_dict: dict) -> dict:
    """structlog processor replacing secret-bearing values with a placeholder."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def setup_logging(debug: bool = False) -> None:
    """
    Configure structlog and stdlib logging.

    Debug mode renders colored console lines; otherwise every event is a JSON
    object so webhook and billing traces can be searched by request_id.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,  # request_id, method, path
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        mask_sensitive_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # stripe and httpx log through stdlib; keep them on the same stream.
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
