"""Request-scoped logging: every record emitted while serving a user carries that user's id."""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from correction_pipeline.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

user_id_context: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


@contextmanager
def logging_user(user_id: str) -> Iterator[None]:
    """Tags log records with user_id for the duration of the block.

    Nested blocks restore the outer caller on exit.
    """
    token = user_id_context.set(user_id)
    try:
        yield
    finally:
        user_id_context.reset(token)


class ContextFilter(logging.Filter):
    """Prefixes the message with ``[user=<id>]`` while a caller is set."""

    def filter(self, record: logging.LogRecord) -> bool:
        user_id = user_id_context.get()
        if user_id:
            record.msg = f"[user={user_id}] {record.msg}"
        return True


def setup_logging() -> None:
    """Routes the root logger to a single console handler at settings.LOG_LEVEL.

    Safe to call again on a warm Lambda container: existing root handlers are replaced, not added to.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(ContextFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(settings.LOG_LEVEL)
