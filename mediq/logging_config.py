"""Structured logging for the queue service.

Every log line is a structlog event (JSON in production, key=value on a
terminal). Request ids are bound into structlog's contextvars by
RequestIDMiddleware, so anything logged while a request is handled,
including inside the store and the sequencer, carries the same
``request_id``.
"""
import logging
import sys
import uuid

import structlog

# Third-party loggers that are chatty at INFO. Twilio's HTTP client logs
# request bodies, which include patient phone numbers.
_QUIET_LOGGERS = ("twilio.http_client", "uvicorn.access")


def setup_structured_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_logs: Render JSON lines (False gives coloured console output)
    """
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


def generate_request_id() -> str:
    """'req-' followed by 12 hex characters."""
    return f"req-{uuid.uuid4().hex[:12]}"


class RequestIDMiddleware:
    """
    ASGI middleware that tags each HTTP request with an id.

    The id is stored in ``request.state.request_id``, bound for log lines
    and returned to the client as the X-Request-ID header.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = generate_request_id()
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message):
            if message["type"] == "http.response.start":
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-request-id", request_id.encode()),
                ]
            await send(message)

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            await self.app(scope, receive, send_with_request_id)
