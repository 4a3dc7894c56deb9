import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

import structlog

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger()


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Run one operator action under a correlation ID.

    Uses the given ID or generates a new UUID4.  The ID is stored in a
    ContextVar so structlog processors inject it into every log line, and
    the HTTP gateway forwards it to the backend via the X-Request-ID header.
    The previous ID is restored on exit, so scopes nest.
    """
    cid = correlation_id or str(uuid.uuid4())
    token = correlation_id_var.set(cid)
    previous = structlog.contextvars.get_contextvars().get("correlation_id")
    structlog.contextvars.bind_contextvars(correlation_id=cid)
    try:
        yield cid
    finally:
        correlation_id_var.reset(token)
        if previous is None:
            structlog.contextvars.unbind_contextvars("correlation_id")
        else:
            structlog.contextvars.bind_contextvars(correlation_id=previous)


def current_correlation_id() -> str:
    """Return the active correlation ID, or an empty string outside a scope."""
    return correlation_id_var.get()
