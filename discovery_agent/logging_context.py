"""Per-conversation logging context.

Every turn runs with the current user's ID bound to a ContextVar. The
handler built by ``build_log_handler`` stamps that ID onto each record and
prints it, so one family's path through the discovery stages can be
followed in interleaved logs:

    2026-10-19 09:00:01 [user-42] [discovery_agent.conversation.record_store] INFO: ...

Usage:
    with user_context("user-42"):
        logger.info("Advancing stage")  # ... [user-42] [...] INFO: Advancing stage
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Iterator, Optional

NO_USER = "-"

LOG_FORMAT = "%(asctime)s [%(user_id)s] [%(name)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_user_id: ContextVar[str] = ContextVar("user_id", default=NO_USER)


def get_user_id() -> str:
    return _user_id.get()


@contextmanager
def user_context(user_id: str) -> Iterator[None]:
    """Bind ``user_id`` to log records emitted inside the block."""
    token = _user_id.set(user_id or NO_USER)
    try:
        yield
    finally:
        _user_id.reset(token)


class UserIdFilter(logging.Filter):
    """Sets ``record.user_id`` unless the caller already passed one via ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "user_id"):
            record.user_id = _user_id.get()  # type: ignore[attr-defined]
        return True


def build_log_handler(stream: Optional[IO[str]] = None) -> logging.Handler:
    """Stream handler whose format carries the conversation's user ID."""
    handler = logging.StreamHandler(stream)
    handler.addFilter(UserIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    return handler
